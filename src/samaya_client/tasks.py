"""Best-effort background work.

A best-effort operation never raises and never reports failure to its caller
beyond a boolean outcome. Failures are logged and dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_background: set[asyncio.Task[Any]] = set()


async def best_effort(name: str, awaitable: Awaitable[Any]) -> bool:
    """Await ``awaitable``; return True on success, False (logged) on any failure."""
    try:
        await awaitable
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.warning("best_effort_failed task=%s error=%s", name, exc, exc_info=True)
        return False
    return True


def fire_and_forget(name: str, awaitable: Awaitable[Any]) -> asyncio.Task[bool]:
    """Schedule a best-effort operation without waiting for it."""
    task = asyncio.ensure_future(best_effort(name, awaitable))
    _background.add(task)
    task.add_done_callback(_background.discard)
    return task


async def guarded(
    name: str, factory: Callable[[], Awaitable[T]]
) -> tuple[bool, T | None]:
    """Run one branch of a concurrent join, returning ``(ok, result)``."""
    try:
        return True, await factory()
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.warning("preload_failed task=%s error=%s", name, exc)
        return False, None
