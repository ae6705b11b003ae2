"""Session token storage and the injectable session capability."""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .models import SessionSnapshot, UserProfile

logger = logging.getLogger(__name__)


class TokenStore(ABC):
    """Durable key/value storage for the opaque session token."""

    @abstractmethod
    async def get(self) -> str | None: ...

    @abstractmethod
    async def set(self, token: str) -> None: ...

    @abstractmethod
    async def clear(self) -> None: ...


class InMemoryTokenStore(TokenStore):
    """Process-lifetime token storage."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token

    async def get(self) -> str | None:
        return self._token

    async def set(self, token: str) -> None:
        self._token = token

    async def clear(self) -> None:
        self._token = None


class FileTokenStore(TokenStore):
    """
    Stores the token in a small JSON document under a fixed key.

    Other keys in the document are preserved so the file can be shared with
    other client-side preferences.
    """

    def __init__(self, path: Path, key: str = "auth_token") -> None:
        self.path = Path(path)
        self.key = key

    def _read(self) -> dict:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("token_file_corrupt path=%s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data), encoding="utf-8")
        tmp_path.replace(self.path)

    def _get_sync(self) -> str | None:
        value = self._read().get(self.key)
        return value if isinstance(value, str) and value else None

    def _set_sync(self, token: str) -> None:
        data = self._read()
        data[self.key] = token
        self._write(data)

    def _clear_sync(self) -> None:
        data = self._read()
        if self.key in data:
            del data[self.key]
            self._write(data)

    # File I/O runs in a worker thread to keep the event loop free.
    async def get(self) -> str | None:
        return await asyncio.to_thread(self._get_sync)

    async def set(self, token: str) -> None:
        await asyncio.to_thread(self._set_sync, token)

    async def clear(self) -> None:
        await asyncio.to_thread(self._clear_sync)


class Session:
    """
    The single session capability shared by the auth and booking layers.

    The auth flow is the only writer; the request gateway only reads. Writes
    are serialized so concurrent verify/refresh calls cannot interleave.
    """

    def __init__(self, store: TokenStore) -> None:
        self.store = store
        self._user: Optional[UserProfile] = None
        self._write_lock = asyncio.Lock()

    async def token(self) -> str | None:
        return await self.store.get()

    @property
    def user(self) -> Optional[UserProfile]:
        return self._user

    async def snapshot(self) -> SessionSnapshot | None:
        token = await self.store.get()
        if not token:
            return None
        return SessionSnapshot(token=token, user=self._user)

    async def establish(self, token: str, user: UserProfile | None = None) -> None:
        if not token:
            raise ValueError("session token must be non-empty")
        async with self._write_lock:
            await self.store.set(token)
            self._user = user
        logger.info("session_established user_id=%s", user.id if user else None)

    async def replace_token(self, token: str) -> None:
        """Swap the token while keeping the current user."""
        if not token:
            raise ValueError("session token must be non-empty")
        async with self._write_lock:
            await self.store.set(token)

    async def remember_user(self, user: UserProfile) -> None:
        async with self._write_lock:
            self._user = user

    async def clear(self) -> None:
        async with self._write_lock:
            await self.store.clear()
            self._user = None
        logger.info("session_cleared")
