"""Self-write marker checks.

The marker is an empty payload stored under its own representation type
next to every text the flow writes back. Only its presence matters.
"""

from typing import Protocol

from clipflow.services.clipboard.content import SELF_WRITE_MARKER_TYPE


class _MarkedBuffer(Protocol):
    def has_marker(self) -> bool: ...


def is_self_write(buffer: _MarkedBuffer) -> bool:
    """True when the current buffer content was produced by the flow itself."""
    return buffer.has_marker()


def is_safe_to_process(buffer: _MarkedBuffer) -> bool:
    return not is_self_write(buffer)


__all__ = ["SELF_WRITE_MARKER_TYPE", "is_safe_to_process", "is_self_write"]
