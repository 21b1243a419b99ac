"""Polling change detector for the shared buffer.

There is no change notification to subscribe to, so the buffer's version
counter is polled on an APScheduler interval job. A new version is recorded
as soon as it is seen; the content is read only after a short grace delay
so producers that publish in several steps have finished. If the buffer
changes again during the delay, the listener gets whatever is current when
the delay ends (last write wins).
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from apscheduler.schedulers.asyncio import (  # type: ignore[import-untyped]
    AsyncIOScheduler,
)
from apscheduler.triggers.interval import (  # type: ignore[import-untyped]
    IntervalTrigger,
)

from clipflow.services.clipboard.content import ClassifiedContent


logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.15
DEFAULT_LEEWAY = 0.05
DEFAULT_GRACE_DELAY = 0.08
JOB_ID = "buffer_change_detector"

ChangeListener = Callable[[ClassifiedContent], Awaitable[None] | None]


class PolledBuffer(Protocol):
    def current_version(self) -> int: ...

    def has_marker(self) -> bool: ...

    def read_text(self) -> ClassifiedContent: ...


class BufferChangeDetector:
    def __init__(
        self,
        buffer: PolledBuffer,
        listener: ChangeListener,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        leeway: float = DEFAULT_LEEWAY,
        grace_delay: float = DEFAULT_GRACE_DELAY,
        scheduler: AsyncIOScheduler | None = None,
        ignore_self_writes: bool = True,
    ):
        self.buffer = buffer
        self.listener = listener
        self.poll_interval = poll_interval
        self.leeway = leeway
        self.grace_delay = grace_delay
        self.ignore_self_writes = ignore_self_writes

        self._owns_scheduler = scheduler is None
        self._scheduler = scheduler
        self._last_version = buffer.current_version()
        self._running = False
        self._suspended = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_suspended(self) -> bool:
        return self._suspended

    @property
    def last_version(self) -> int:
        return self._last_version

    def start(self) -> None:
        """Begin polling. Must be called with the event loop running."""
        if self._running:
            return
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler(timezone="UTC")

        self._last_version = self.buffer.current_version()
        self._scheduler.add_job(
            self.check_buffer,
            trigger=IntervalTrigger(seconds=self.poll_interval, jitter=self.leeway),
            id=JOB_ID,
            name="Buffer change detection",
            coalesce=True,
            max_instances=1,
            replace_existing=True,
        )
        if not self._scheduler.running:
            self._scheduler.start()
        self._running = True
        self._suspended = False
        logger.info(
            f"Buffer change detector started (interval={self.poll_interval}s, "
            f"leeway={self.leeway}s)"
        )

    def stop(self) -> None:
        if not self._running or self._scheduler is None:
            return
        if self._scheduler.get_job(JOB_ID) is not None:
            self._scheduler.remove_job(JOB_ID)
        if self._owns_scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        self._running = False
        self._suspended = False
        logger.info("Buffer change detector stopped")

    def suspend(self) -> None:
        """Pause polling; the version baseline is kept."""
        if not self._running or self._suspended or self._scheduler is None:
            return
        self._scheduler.pause_job(JOB_ID)
        self._suspended = True
        logger.debug("Buffer change detector suspended")

    def resume(self) -> None:
        """Resume polling without reporting changes made while suspended."""
        if not self._running or not self._suspended or self._scheduler is None:
            return
        self._last_version = self.buffer.current_version()
        self._scheduler.resume_job(JOB_ID)
        self._suspended = False
        logger.debug("Buffer change detector resumed")

    async def check_buffer(self) -> None:
        """One poll tick."""
        version = self.buffer.current_version()
        if version == self._last_version:
            return
        # Record first so a slow listener cannot make us fire twice
        self._last_version = version

        await asyncio.sleep(self.grace_delay)

        if self.ignore_self_writes and self.buffer.has_marker():
            logger.debug("Skipping self-written buffer content")
            return

        content = self.buffer.read_text()
        try:
            result = self.listener(content)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Buffer change listener failed: {e}", exc_info=True)
