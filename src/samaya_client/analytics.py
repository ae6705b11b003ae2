"""Content view counters. Best-effort only: never blocks the caller, never raises."""

from __future__ import annotations

import asyncio
import logging

from .gateway import RequestGateway
from .tasks import best_effort, fire_and_forget

logger = logging.getLogger(__name__)

CONTENT_KINDS = {"article", "blog"}


class ViewCounter:
    def __init__(self, gateway: RequestGateway) -> None:
        self.gateway = gateway

    async def increment_views(self, kind: str, content_id: int | str) -> bool:
        """Record one view. Returns whether the server accepted it."""
        if kind not in CONTENT_KINDS:
            logger.warning("view_count_unknown_kind kind=%s", kind)
            return False
        return await best_effort(
            f"increment_views:{kind}:{content_id}",
            self.gateway.execute(
                "content_views",
                "POST",
                path_params={"kind": kind, "content_id": content_id},
            ),
        )

    def track_view(self, kind: str, content_id: int | str) -> asyncio.Task[bool]:
        """Schedule ``increment_views`` in the background and return immediately."""
        return fire_and_forget(
            f"track_view:{kind}:{content_id}",
            self.increment_views(kind, content_id),
        )
