"""App initialization: concurrent preload with a minimum duration floor."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping

from .tasks import guarded

logger = logging.getLogger(__name__)

PreloadTask = Callable[[], Awaitable[Any]]


@dataclass
class StartupReport:
    """Outcome of the preload join."""

    results: dict[str, Any] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> list[str]:
        return [name for name in self.results if name not in self.failed]


async def run_preload(
    tasks: Mapping[str, PreloadTask],
    min_duration: float = 2.0,
) -> StartupReport:
    """
    Run independent preload tasks concurrently and join them.

    Each task is guarded separately, so one failure never stops the others.
    The join also waits for ``min_duration`` so startup takes a consistent
    minimum time regardless of network speed.
    """
    started = time.monotonic()
    names = list(tasks)

    async def _floor() -> None:
        await asyncio.sleep(min_duration)

    outcomes = await asyncio.gather(
        *(guarded(name, tasks[name]) for name in names),
        _floor(),
    )

    report = StartupReport(elapsed_seconds=time.monotonic() - started)
    for name, (ok, result) in zip(names, outcomes):
        report.results[name] = result
        if not ok:
            report.failed.append(name)

    logger.info(
        "startup_preload_complete elapsed=%.2fs failed=%s",
        report.elapsed_seconds,
        ",".join(report.failed) or "none",
    )
    return report
