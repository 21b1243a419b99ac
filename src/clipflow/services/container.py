"""Explicit wiring of the flow collaborators.

One instance of each collaborator per process (or per test), passed by
reference. Nothing here is a module-level singleton.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clipflow.core.config import Settings
from clipflow.services.clipboard.buffer import InMemoryBuffer
from clipflow.services.clipboard.content import ClassifiedContent
from clipflow.services.clipboard.paste import PasteSimulator
from clipflow.services.flow.coordinator import TransformationFlowCoordinator
from clipflow.services.flow.detector import BufferChangeDetector
from clipflow.services.flow.queue import SingleFlightQueue
from clipflow.services.flow.recovery import ErrorRecoveryManager
from clipflow.services.history_store import HistoryStore
from clipflow.services.notifications import LoggingNotificationSink
from clipflow.services.transformations.registry import (
    TransformationRegistry,
    build_registry,
)


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FlowServices:
    settings: Settings
    buffer: InMemoryBuffer
    paste: PasteSimulator
    notifier: LoggingNotificationSink
    recovery: ErrorRecoveryManager
    queue: SingleFlightQueue
    registry: TransformationRegistry
    history: HistoryStore
    coordinator: TransformationFlowCoordinator
    detector: BufferChangeDetector
    last_external_change: ClassifiedContent | None = None

    def record_external_change(self, content: ClassifiedContent) -> None:
        """Detector listener: remember the latest content copied by someone else."""
        self.last_external_change = content
        logger.debug(f"External buffer change detected ({content.kind.value})")

    def start(self) -> None:
        if self.settings.DETECTOR_ENABLED:
            self.detector.start()

    async def stop(self) -> None:
        self.detector.stop()
        await self.coordinator.shutdown()


def build_flow_services(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    buffer: InMemoryBuffer | None = None,
) -> FlowServices:
    buffer = buffer or InMemoryBuffer()
    paste = PasteSimulator(buffer, permission_granted=settings.PASTE_PERMISSION_GRANTED)
    notifier = LoggingNotificationSink(
        enabled=settings.NOTIFICATIONS_ENABLED,
        history_size=settings.NOTIFICATION_HISTORY_SIZE,
    )
    recovery = ErrorRecoveryManager(buffer, notifier)
    queue = SingleFlightQueue()
    registry = build_registry(settings)
    history = HistoryStore(
        session_factory,
        entry_limit=settings.HISTORY_ENTRY_LIMIT,
        enabled=settings.HISTORY_ENABLED,
    )
    coordinator = TransformationFlowCoordinator(
        buffer,
        paste,
        recovery,
        registry.resolve(settings.ACTIVE_TRANSFORMATION),
        queue=queue,
        history=history,
        timeout=settings.TRANSFORMATION_TIMEOUT_SECONDS,
        paste_delay=settings.PASTE_DELAY_SECONDS,
        max_input_bytes=settings.MAX_INPUT_BYTES,
    )

    services: FlowServices
    detector = BufferChangeDetector(
        buffer,
        lambda content: services.record_external_change(content),
        poll_interval=settings.DETECTOR_POLL_INTERVAL_SECONDS,
        leeway=settings.DETECTOR_LEEWAY_SECONDS,
        grace_delay=settings.DETECTOR_GRACE_DELAY_SECONDS,
    )
    services = FlowServices(
        settings=settings,
        buffer=buffer,
        paste=paste,
        notifier=notifier,
        recovery=recovery,
        queue=queue,
        registry=registry,
        history=history,
        coordinator=coordinator,
        detector=detector,
    )
    logger.info(
        f"Flow services ready (active transformation: {settings.ACTIVE_TRANSFORMATION})"
    )
    return services
