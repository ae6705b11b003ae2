"""Phone OTP authentication and session lifecycle."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from .backends import SessionBackend
from .errors import RemoteError, SamayaError, ValidationError, surface
from .models import (
    AuthResult,
    AuthState,
    AuthStatus,
    OTPChallenge,
    OTPDiagnosis,
    OTPResult,
    SignupProfile,
    UserProfile,
)
from .phone import INVALID_PHONE_MESSAGE, mask_phone, normalize_phone
from .session import Session

logger = logging.getLogger(__name__)

REJECTED_OTP_MESSAGE = "The OTP code is invalid or has expired. Please request a new OTP."
INVALID_CODE_MESSAGE = "OTP must be a 6-digit code"

# Structured codes a server may attach to a rejected verification.
REJECTED_OTP_CODES = {"otp_invalid", "otp_expired", "invalid_otp", "expired_otp"}
_REJECTED_OTP_TEXT = re.compile(r"invalid|expired", re.IGNORECASE)
_OTP_CODE = re.compile(r"^\d{6}$")


def is_rejected_otp(code: Optional[str], message: Optional[str]) -> bool:
    """
    Decide whether a verify response is a negative-but-normal outcome.

    A structured ``code`` from the server wins; message matching is only
    used for servers that do not send one.
    """
    if code:
        if code in REJECTED_OTP_CODES:
            return True
        if not code.startswith("backend_error_"):
            return False
    return bool(message and _REJECTED_OTP_TEXT.search(message))


def split_name(full_name: str) -> tuple[str, str]:
    """First token is the first name; the rest, joined, is the last name."""
    parts = full_name.strip().split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def map_user(raw: Optional[dict[str, Any]]) -> Optional[UserProfile]:
    """Flatten the server's nested user payload into a ``UserProfile``."""
    if not raw:
        return None
    user_id = raw.get("user_id", raw.get("id"))
    name = f"{raw.get('first_name') or ''} {raw.get('last_name') or ''}".strip()
    return UserProfile(
        id=str(user_id) if user_id is not None else "",
        display_name=name or raw.get("name") or "",
        email=raw.get("email") or "",
        phone=str(raw.get("phone") or ""),
    )


def _token_and_user(response: dict) -> tuple[Optional[str], Optional[dict]]:
    data = response.get("data")
    if isinstance(data, dict) and data.get("token"):
        return data["token"], data.get("user") or response.get("user")
    return response.get("token") or None, response.get("user")


class AuthFlow:
    """
    Drives the ``anonymous -> challenged -> authenticated`` lifecycle.

    The flow is the only writer of the session. Network work goes through a
    ``SessionBackend`` strategy chosen when the client is built.
    """

    def __init__(self, backend: SessionBackend, session: Session) -> None:
        self.backend = backend
        self.session = session
        self._state = AuthState.ANONYMOUS

    @property
    def state(self) -> AuthState:
        return self._state

    async def send_otp(self, phone: str) -> OTPResult:
        formatted = normalize_phone(phone)
        logger.info("otp_send phone=%s", mask_phone(formatted))
        try:
            response = await self.backend.send_otp(formatted)
        except SamayaError as exc:
            logger.warning("otp_send_failed phone=%s error=%s", mask_phone(formatted), exc)
            raise surface(exc, "Failed to send OTP") from exc

        if self._state is not AuthState.AUTHENTICATED:
            self._state = AuthState.CHALLENGED
        return OTPResult(
            success=True,
            message=response.get("msg") or response.get("message") or "OTP sent successfully",
            data=response,
        )

    async def verify_otp(self, phone: str, code: str) -> AuthResult:
        challenge = OTPChallenge(phone=normalize_phone(phone), submitted_code=(code or "").strip())
        if not _OTP_CODE.match(challenge.submitted_code):
            raise ValidationError(INVALID_CODE_MESSAGE, code="invalid_otp_format")

        logger.info("otp_verify phone=%s", mask_phone(challenge.phone))
        try:
            response = await self.backend.verify_otp(challenge.phone, challenge.submitted_code)
        except RemoteError as exc:
            if is_rejected_otp(exc.code, exc.message):
                logger.info("otp_rejected phone=%s", mask_phone(challenge.phone))
                return AuthResult(success=False, message=REJECTED_OTP_MESSAGE, error=exc.message)
            raise surface(exc, "OTP verification failed") from exc
        except SamayaError as exc:
            raise surface(exc, "OTP verification failed") from exc

        message = response.get("msg") or response.get("message") or ""
        token, raw_user = _token_and_user(response)
        if token:
            user = map_user(raw_user)
            await self.session.establish(token, user)
            self._state = AuthState.AUTHENTICATED
            return AuthResult(
                success=True,
                message=message or "OTP verified successfully",
                token=token,
                user=user,
            )

        logger.info("otp_verify_without_token phone=%s", mask_phone(challenge.phone))
        if is_rejected_otp(response.get("code"), message):
            return AuthResult(success=False, message=REJECTED_OTP_MESSAGE, error=message)
        return AuthResult(success=False, message=message or "OTP verification failed")

    async def signup(
        self,
        profile: SignupProfile,
        extra: Optional[dict[str, Any]] = None,
    ) -> AuthResult:
        formatted = normalize_phone(profile.phone)
        first_name, last_name = split_name(profile.name)
        payload: dict[str, Any] = dict(extra or {})
        payload.update(
            first_name=first_name,
            last_name=last_name,
            phone=formatted,
            email=profile.email.strip(),
            password=profile.password,
        )

        try:
            response = await self.backend.signup(payload)
        except SamayaError as exc:
            raise surface(exc, "Failed to signup") from exc

        token, raw_user = _token_and_user(response)
        user = map_user(raw_user)
        if token:
            await self.session.establish(token, user)
            self._state = AuthState.AUTHENTICATED
        return AuthResult(
            success=bool(response.get("success", token is not None)),
            message=response.get("message") or response.get("msg") or "",
            token=token,
            user=user,
        )

    async def logout(self) -> AuthResult:
        """Log out remotely if possible; the local session is cleared regardless."""
        remote_error: Optional[str] = None
        try:
            await self.backend.logout()
        except SamayaError as exc:
            remote_error = exc.message
            logger.warning("logout_remote_failed error=%s", exc)
        finally:
            await self.session.clear()
            self._state = AuthState.ANONYMOUS

        if remote_error:
            return AuthResult(
                success=True,
                message="Logged out on this device",
                error=remote_error,
            )
        return AuthResult(success=True, message="Logged out")

    async def is_authenticated(self) -> bool:
        return bool(await self.session.token())

    async def get_current_user(self) -> dict[str, Any]:
        try:
            response = await self.backend.fetch_profile()
        except SamayaError as exc:
            raise surface(exc, "Failed to get user info") from exc
        data = response.get("data")
        return data if isinstance(data, dict) else response

    async def check_auth_status(self) -> AuthStatus:
        """Validate the stored token, clearing it if the server no longer accepts it."""
        snapshot = await self.session.snapshot()
        if snapshot is None:
            self._state = AuthState.ANONYMOUS
            return AuthStatus(is_authenticated=False)

        try:
            user = await self.get_current_user()
        except SamayaError as exc:
            logger.info(
                "stored_session_invalid user_id=%s error=%s",
                snapshot.user.id if snapshot.user else None,
                exc,
            )
            await self.session.clear()
            self._state = AuthState.ANONYMOUS
            return AuthStatus(is_authenticated=False)

        profile = map_user(user)
        if profile is not None:
            await self.session.remember_user(profile)
        self._state = AuthState.AUTHENTICATED
        return AuthStatus(is_authenticated=True, user=user)

    async def refresh_token(self) -> AuthResult:
        try:
            response = await self.backend.refresh_token()
        except SamayaError as exc:
            raise surface(exc, "Failed to refresh token") from exc

        token, _ = _token_and_user(response)
        if not token:
            raise RemoteError(
                "Failed to refresh token: no token in response",
                code="refresh_failed",
            )
        await self.session.replace_token(token)
        return AuthResult(
            success=True,
            message=response.get("message") or "Token refreshed",
            token=token,
            user=self.session.user,
        )

    async def diagnose_otp(self, phone: str) -> OTPDiagnosis:
        """Check a phone number and API reachability before attempting OTP."""
        suggestions: list[str] = []
        formatted = (phone or "").strip()
        try:
            formatted = normalize_phone(phone)
        except ValidationError:
            suggestions.append(INVALID_PHONE_MESSAGE)
            if formatted.startswith("+91"):
                formatted = formatted[3:]
            if not formatted.lstrip("0").isdigit():
                suggestions.append("Phone number should contain only digits")

        if not await self.backend.ping():
            suggestions.append("Cannot connect to server. Check your internet connection.")

        return OTPDiagnosis(
            status="ready" if not suggestions else "issues_found",
            suggestions=suggestions,
        )
