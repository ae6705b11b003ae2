"""
Session backends: where auth requests actually go.

``HttpSessionBackend`` talks to the live API through the request gateway.
``MockSessionBackend`` is a deterministic in-memory stand-in used in
development and tests. Both return raw server-shaped payloads; mapping into
models is the auth flow's job. The strategy is picked once, when the client is
built.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Protocol
from uuid import uuid4

from .errors import RemoteError
from .gateway import RequestGateway

logger = logging.getLogger(__name__)


class SessionBackend(Protocol):
    async def send_otp(self, phone: str) -> dict: ...

    async def verify_otp(self, phone: str, code: str) -> dict: ...

    async def signup(self, payload: dict[str, Any]) -> dict: ...

    async def logout(self) -> dict: ...

    async def refresh_token(self) -> dict: ...

    async def fetch_profile(self) -> dict: ...

    async def ping(self) -> bool: ...


class HttpSessionBackend:
    """Live backend over HTTP."""

    def __init__(self, gateway: RequestGateway) -> None:
        self.gateway = gateway

    async def send_otp(self, phone: str) -> dict:
        return await self.gateway.execute("send_otp", "POST", {"phone": phone})

    async def verify_otp(self, phone: str, code: str) -> dict:
        return await self.gateway.execute(
            "verify_otp", "POST", {"phone": phone, "code": code}
        )

    async def signup(self, payload: dict[str, Any]) -> dict:
        return await self.gateway.execute("signup", "POST", payload)

    async def logout(self) -> dict:
        return await self.gateway.execute("logout", "POST")

    async def refresh_token(self) -> dict:
        return await self.gateway.execute("refresh_token", "POST")

    async def fetch_profile(self) -> dict:
        return await self.gateway.execute("user_profile")

    async def ping(self) -> bool:
        return await self.gateway.ping()


class MockSessionBackend:
    """
    Deterministic in-memory backend.

    Accepts ``sentinel_code`` for any normalized phone and issues a fresh
    token per verification. Other codes are delegated to ``fallback`` when one
    is configured (a development build against a live API), otherwise they
    get an invalid-OTP response.
    """

    def __init__(
        self,
        sentinel_code: str = "123456",
        fallback: SessionBackend | None = None,
    ) -> None:
        self.sentinel_code = sentinel_code
        self.fallback = fallback
        self._counter = itertools.count(1)
        self._users: dict[str, dict[str, Any]] = {}
        self._tokens: dict[str, str] = {}
        self._current: str | None = None

    def _issue_token(self) -> str:
        return f"mock_token_{next(self._counter)}_{uuid4().hex}"

    def _user_for(self, phone: str) -> dict[str, Any]:
        user = self._users.get(phone)
        if user is None:
            user = {
                "user_id": f"user_{len(self._users) + 1}",
                "first_name": "Test",
                "last_name": "User",
                "email": "test@example.com",
                "phone": phone,
            }
            self._users[phone] = user
        return user

    def _login(self, phone: str) -> str:
        token = self._issue_token()
        self._tokens[token] = phone
        self._current = token
        return token

    async def send_otp(self, phone: str) -> dict:
        if self.fallback is not None:
            return await self.fallback.send_otp(phone)
        return {"msg": "OTP sent successfully", "otp": self.sentinel_code}

    async def verify_otp(self, phone: str, code: str) -> dict:
        if code == self.sentinel_code:
            logger.info("mock_otp_verification")
            user = self._user_for(phone)
            return {"msg": "OTP verified successfully", "user": dict(user), "token": self._login(phone)}
        if self.fallback is not None:
            self._current = None
            return await self.fallback.verify_otp(phone, code)
        return {"msg": "Invalid OTP", "code": "otp_invalid"}

    async def signup(self, payload: dict[str, Any]) -> dict:
        if self.fallback is not None:
            self._current = None
            return await self.fallback.signup(payload)
        phone = payload.get("phone", "")
        user = self._user_for(phone)
        user.update(
            first_name=payload.get("first_name", ""),
            last_name=payload.get("last_name", ""),
            email=payload.get("email", ""),
        )
        return {
            "success": True,
            "message": "Signup successful",
            "data": {"token": self._login(phone), "user": dict(user)},
        }

    def _delegates(self) -> bool:
        # A session established through the fallback is owned by the fallback.
        return self._current is None and self.fallback is not None

    async def logout(self) -> dict:
        if self._delegates():
            return await self.fallback.logout()
        if self._current is not None:
            self._tokens.pop(self._current, None)
            self._current = None
        return {"success": True, "message": "Logged out"}

    async def refresh_token(self) -> dict:
        if self._delegates():
            return await self.fallback.refresh_token()
        if self._current is None or self._current not in self._tokens:
            raise RemoteError("Session expired", code="token_invalid", status_code=401)
        phone = self._tokens.pop(self._current)
        token = self._login(phone)
        return {"success": True, "data": {"token": token}}

    async def fetch_profile(self) -> dict:
        if self._delegates():
            return await self.fallback.fetch_profile()
        if self._current is None or self._current not in self._tokens:
            raise RemoteError("Session expired", code="token_invalid", status_code=401)
        user = self._users[self._tokens[self._current]]
        return {"success": True, "data": dict(user)}

    async def ping(self) -> bool:
        if self.fallback is not None:
            return await self.fallback.ping()
        return True
