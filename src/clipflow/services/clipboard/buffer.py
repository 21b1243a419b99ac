"""In-process model of the shared clipboard buffer.

The buffer is a single mutable cell: a mapping of representation type to
payload plus a change counter. Every mutation swaps the whole mapping in one
synchronous step on the event loop thread, so a reader polling between two
awaits never sees a half-written state (text without its marker, or a
cleared buffer waiting to be filled).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType

from clipflow.services.clipboard.content import (
    PLAIN_TEXT_TYPE,
    SELF_WRITE_MARKER_TYPE,
    ClassifiedContent,
    classify,
)


logger = logging.getLogger(__name__)


class BufferWriteErrorKind(StrEnum):
    TEXT_WRITE_FAILED = "text_write_failed"
    MARKER_WRITE_FAILED = "marker_write_failed"
    BUFFER_UNAVAILABLE = "buffer_unavailable"


_WRITE_ERROR_MESSAGES = {
    BufferWriteErrorKind.TEXT_WRITE_FAILED: "Failed to write text to the buffer",
    BufferWriteErrorKind.MARKER_WRITE_FAILED: "Failed to write self-write marker",
    BufferWriteErrorKind.BUFFER_UNAVAILABLE: "Buffer is not available",
}


@dataclass(slots=True, eq=False)
class BufferWriteError(Exception):
    kind: BufferWriteErrorKind
    detail: str | None = None

    def __str__(self) -> str:
        message = _WRITE_ERROR_MESSAGES[self.kind]
        return f"{message}: {self.detail}" if self.detail else message


@dataclass(frozen=True, slots=True)
class BufferSnapshot:
    version: int
    representations: Mapping[str, str | bytes]

    @property
    def types(self) -> list[str]:
        return list(self.representations)

    @property
    def has_marker(self) -> bool:
        return SELF_WRITE_MARKER_TYPE in self.representations


class InMemoryBuffer:
    """Multi-representation buffer with a monotonically increasing version.

    External producers publish through `set_representations` (or
    `set_text`); the flow writes through `write_text`.
    """

    def __init__(self, representations: Mapping[str, str | bytes] | None = None):
        self._items: Mapping[str, str | bytes] = MappingProxyType(
            dict(representations or {})
        )
        self._change_count = 0
        self.available = True

    def current_version(self) -> int:
        return self._change_count

    def snapshot(self) -> BufferSnapshot:
        return BufferSnapshot(self._change_count, self._items)

    def types(self) -> list[str]:
        return list(self._items)

    def has_marker(self) -> bool:
        return SELF_WRITE_MARKER_TYPE in self._items

    def read_text(self) -> ClassifiedContent:
        return classify(dict(self._items))

    def plain_text(self) -> str | None:
        """Return the plain-text representation regardless of other types."""
        payload = self._items.get(PLAIN_TEXT_TYPE)
        if isinstance(payload, bytes):
            return payload.decode("utf-8", errors="replace")
        return payload

    def write_text(self, text: str, marker: bool = True) -> None:
        """Replace the buffer with `text`, tagged with the self-write marker.

        Declaring both types and filling them happens in a single swap.
        """
        if not self.available:
            raise BufferWriteError(BufferWriteErrorKind.BUFFER_UNAVAILABLE)
        items: dict[str, str | bytes] = {PLAIN_TEXT_TYPE: text}
        if marker:
            items[SELF_WRITE_MARKER_TYPE] = b""
        self._swap(items)

    def set_representations(self, representations: Mapping[str, str | bytes]) -> None:
        self._swap(dict(representations))

    def set_text(self, text: str) -> None:
        self._swap({PLAIN_TEXT_TYPE: text})

    def clear(self) -> None:
        self._swap({})

    def _swap(self, items: dict[str, str | bytes]) -> None:
        self._items = MappingProxyType(items)
        self._change_count += 1
        logger.debug(
            f"Buffer changed (version={self._change_count}, types={list(items)})"
        )
