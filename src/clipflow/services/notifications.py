"""User-facing notification sink.

There is no desktop toast here; every notification is logged and kept in a
bounded ring that the API exposes.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime

from clipflow.core.error_handler import StructuredLogger
from clipflow.services.flow.recovery import ErrorCategory


notification_logger = StructuredLogger(__name__)


@dataclass(frozen=True, slots=True)
class Notification:
    title: str
    message: str
    category: ErrorCategory
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class LoggingNotificationSink:
    def __init__(self, enabled: bool = True, history_size: int = 50):
        self.enabled = enabled
        self._recent: deque[Notification] = deque(maxlen=history_size)

    async def notify(self, title: str, message: str, category: ErrorCategory) -> None:
        if not self.enabled:
            notification_logger.debug(
                "Notification suppressed", title=title, category=category.kind.value
            )
            return
        self._recent.append(Notification(title, message, category))
        notification_logger.warning(
            f"{title}: {message}", category=category.kind.value
        )

    @property
    def recent(self) -> list[Notification]:
        """Most recent first."""
        return list(reversed(self._recent))

    def clear(self) -> None:
        self._recent.clear()
