"""Paste side-effect trigger.

Delivering the result to the focused application requires a permission the
user grants outside the service. This trigger models that permission and
records each delivered paste so the outcome can be inspected.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol


logger = logging.getLogger(__name__)


class PasteError(Exception):
    """Raised when the paste side-effect cannot be performed."""


class _TextSource(Protocol):
    def plain_text(self) -> str | None: ...


@dataclass(frozen=True, slots=True)
class PasteEvent:
    text_length: int
    pasted_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class PasteSimulator:
    """Records a paste of whatever text the buffer currently holds."""

    def __init__(
        self,
        buffer: _TextSource,
        permission_granted: bool = True,
        history_size: int = 50,
    ):
        self._buffer = buffer
        self.permission_granted = permission_granted
        self._events: deque[PasteEvent] = deque(maxlen=history_size)

    def is_permission_granted(self) -> bool:
        return self.permission_granted

    def perform(self) -> None:
        if not self.permission_granted:
            raise PasteError("Paste permission has not been granted")
        text = self._buffer.plain_text()
        if text is None:
            raise PasteError("Buffer has no text to paste")
        self._events.append(PasteEvent(text_length=len(text)))
        logger.info(f"Paste delivered ({len(text)} chars)")

    @property
    def events(self) -> list[PasteEvent]:
        return list(self._events)
