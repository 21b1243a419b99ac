"""Everything that can abort a transformation flow.

`FlowError` is a tagged union: `kind` says what went wrong and only the
fields belonging to that kind are set. Rendering lives in the pure
`format_flow_error` / `short_flow_error` functions below.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from clipflow.services.clipboard.content import friendly_type_name
from clipflow.services.transformations.errors import (
    PipelineError,
    TransformationError,
    truncate,
)


class FlowErrorKind(StrEnum):
    PERMISSION_REQUIRED = "permission_required"
    BUFFER_EMPTY = "buffer_empty"
    BINARY_CONTENT = "binary_content"
    SELF_WRITE_DETECTED = "self_write_detected"
    NO_TEXT_CONTENT = "no_text_content"
    INPUT_TOO_LARGE = "input_too_large"
    TRANSFORMATION_FAILED = "transformation_failed"
    WRITE_BACK_FAILED = "write_back_failed"
    SIDE_EFFECT_FAILED = "side_effect_failed"
    ALREADY_PROCESSING = "already_processing"


SILENT_KINDS = frozenset(
    {
        FlowErrorKind.SELF_WRITE_DETECTED,
        FlowErrorKind.BUFFER_EMPTY,
        FlowErrorKind.ALREADY_PROCESSING,
    }
)

# Failures raised before a strategy ever sees the text
PRECONDITION_KINDS = frozenset(
    {
        FlowErrorKind.PERMISSION_REQUIRED,
        FlowErrorKind.BUFFER_EMPTY,
        FlowErrorKind.BINARY_CONTENT,
        FlowErrorKind.SELF_WRITE_DETECTED,
        FlowErrorKind.NO_TEXT_CONTENT,
        FlowErrorKind.INPUT_TOO_LARGE,
    }
)


@dataclass(slots=True, eq=False)
class FlowError(Exception):
    kind: FlowErrorKind
    content_type: str | None = None
    cause: BaseException | None = None
    byte_count: int | None = None
    max_bytes: int | None = None

    @classmethod
    def permission_required(cls) -> FlowError:
        return cls(FlowErrorKind.PERMISSION_REQUIRED)

    @classmethod
    def buffer_empty(cls) -> FlowError:
        return cls(FlowErrorKind.BUFFER_EMPTY)

    @classmethod
    def binary_content(cls, content_type: str) -> FlowError:
        return cls(FlowErrorKind.BINARY_CONTENT, content_type=content_type)

    @classmethod
    def self_write_detected(cls) -> FlowError:
        return cls(FlowErrorKind.SELF_WRITE_DETECTED)

    @classmethod
    def no_text_content(cls) -> FlowError:
        return cls(FlowErrorKind.NO_TEXT_CONTENT)

    @classmethod
    def input_too_large(cls, byte_count: int, max_bytes: int) -> FlowError:
        return cls(
            FlowErrorKind.INPUT_TOO_LARGE, byte_count=byte_count, max_bytes=max_bytes
        )

    @classmethod
    def transformation_failed(cls, cause: BaseException) -> FlowError:
        return cls(FlowErrorKind.TRANSFORMATION_FAILED, cause=cause)

    @classmethod
    def write_back_failed(cls, cause: BaseException) -> FlowError:
        return cls(FlowErrorKind.WRITE_BACK_FAILED, cause=cause)

    @classmethod
    def side_effect_failed(cls, cause: BaseException) -> FlowError:
        return cls(FlowErrorKind.SIDE_EFFECT_FAILED, cause=cause)

    @classmethod
    def already_processing(cls) -> FlowError:
        return cls(FlowErrorKind.ALREADY_PROCESSING)

    @property
    def is_silent(self) -> bool:
        """Silent errors drive the state machine but never notify the user."""
        return self.kind in SILENT_KINDS

    @property
    def requires_restore(self) -> bool:
        return not self.is_silent and self.kind is not FlowErrorKind.SIDE_EFFECT_FAILED

    def __str__(self) -> str:
        return format_flow_error(self)


def _format_size(byte_count: int | None) -> str:
    if byte_count is None:
        return "unknown size"
    if byte_count < 1024:
        return f"{byte_count} bytes"
    return f"{byte_count / 1024:.0f} KB"


def format_flow_error(error: FlowError) -> str:
    """Full user-facing message for a flow error."""
    match error.kind:
        case FlowErrorKind.PERMISSION_REQUIRED:
            return (
                "Accessibility/Paste permission is required. "
                "Grant it in system settings and try again."
            )
        case FlowErrorKind.BUFFER_EMPTY:
            return "Clipboard is empty"
        case FlowErrorKind.BINARY_CONTENT:
            friendly = friendly_type_name(error.content_type or "")
            return f"Cannot transform {friendly} - only text content is supported"
        case FlowErrorKind.SELF_WRITE_DETECTED:
            return "Content was already transformed"
        case FlowErrorKind.NO_TEXT_CONTENT:
            return "No text content found"
        case FlowErrorKind.INPUT_TOO_LARGE:
            return (
                f"Text is too large to transform ({_format_size(error.byte_count)}, "
                f"limit {_format_size(error.max_bytes)})"
            )
        case FlowErrorKind.TRANSFORMATION_FAILED:
            return f"Transformation failed: {error.cause}"
        case FlowErrorKind.WRITE_BACK_FAILED:
            return f"Failed to write to buffer: {error.cause}"
        case FlowErrorKind.SIDE_EFFECT_FAILED:
            return f"Failed to paste: {error.cause}"
        case FlowErrorKind.ALREADY_PROCESSING:
            return "A transformation is already in progress"
    return error.kind.value


def short_flow_error(error: FlowError) -> str:
    """Compact message for menus and status lines."""
    match error.kind:
        case FlowErrorKind.PERMISSION_REQUIRED:
            return "Permission required"
        case FlowErrorKind.BUFFER_EMPTY:
            return "Clipboard empty"
        case FlowErrorKind.BINARY_CONTENT:
            return "Not text content"
        case FlowErrorKind.SELF_WRITE_DETECTED:
            return "Already transformed"
        case FlowErrorKind.NO_TEXT_CONTENT:
            return "No text found"
        case FlowErrorKind.INPUT_TOO_LARGE:
            return "Text too large"
        case FlowErrorKind.TRANSFORMATION_FAILED:
            cause = error.cause
            if isinstance(cause, TransformationError | PipelineError):
                return cause.short_message
            return truncate(str(cause), 40)
        case FlowErrorKind.WRITE_BACK_FAILED:
            return "Write failed"
        case FlowErrorKind.SIDE_EFFECT_FAILED:
            return "Paste failed"
        case FlowErrorKind.ALREADY_PROCESSING:
            return "Already processing"
    return error.kind.value
