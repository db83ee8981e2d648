"""Progress monitors — Count units of work during an ingestion run.

Databases call :meth:`ProgressMonitor.signal` once per scheduled record.
Signals are dispatched fire-and-forget, so ``signal()`` must be cheap and
must not block.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class ProgressMonitor(ABC):
    """Abstract progress monitor."""

    async def start(self) -> None:  # noqa: B027
        """Start monitoring. Optional."""

    async def stop(self) -> None:  # noqa: B027
        """Stop monitoring. Optional."""

    @abstractmethod
    def signal(self) -> None:
        """Record one unit of progress."""


class NullMonitor(ProgressMonitor):
    """A monitor that ignores every signal."""

    def signal(self) -> None:
        pass


class CounterMonitor(ProgressMonitor):
    """Counts signals and logs the running total at a fixed interval.

    Args:
        interval: Seconds between progress log lines.
        label: Name used in log lines.
    """

    def __init__(self, interval: float = 60.0, label: str = "records") -> None:
        self._interval = interval
        self._label = label
        self._count = 0
        self._started: float | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def count(self) -> int:
        return self._count

    def signal(self) -> None:
        self._count += 1

    async def start(self) -> None:
        self._started = time.monotonic()
        self._task = asyncio.create_task(self._report_loop())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self._report()

    async def _report_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._report()

    def _report(self) -> None:
        elapsed = time.monotonic() - self._started if self._started is not None else 0.0
        logger.info("Processed %d %s in %.1fs", self._count, self._label, elapsed)
