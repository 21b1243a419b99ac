"""Rollback and user-facing classification for failed flows.

The rule enforced here: a failed flow must leave the buffer as it was
before the trigger. The manager captures the buffer text when a flow
starts and writes it back on any failure that needs it.

Categorization and recovery-action selection are pure functions so they
can be tested without a buffer or notifier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from clipflow.services.clipboard.buffer import BufferWriteError
from clipflow.services.clipboard.content import ClassifiedContent, friendly_type_name
from clipflow.services.flow.errors import FlowError, FlowErrorKind, format_flow_error
from clipflow.services.transformations.errors import (
    PipelineError,
    PipelineErrorKind,
    TransformationError,
    TransformationErrorKind,
)


logger = logging.getLogger(__name__)


class ErrorCategoryKind(StrEnum):
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    SERVICE_UNAVAILABLE = "service_unavailable"
    PERMISSION_REQUIRED = "permission_required"
    CONTENT_ISSUE = "content_issue"
    PROCESSING_ERROR = "processing_error"


@dataclass(frozen=True, slots=True)
class ErrorCategory:
    kind: ErrorCategoryKind
    retry_after: float | None = None
    seconds: float | None = None

    @classmethod
    def of(cls, kind: ErrorCategoryKind) -> ErrorCategory:
        return cls(kind)

    @classmethod
    def rate_limit(cls, retry_after: float | None) -> ErrorCategory:
        return cls(ErrorCategoryKind.RATE_LIMIT, retry_after=retry_after)

    @classmethod
    def timeout(cls, seconds: float | None) -> ErrorCategory:
        return cls(ErrorCategoryKind.TIMEOUT, seconds=seconds)


class RecoveryActionKind(StrEnum):
    OPEN_SETTINGS = "open_settings"
    RETRY = "retry"
    WAIT_AND_RETRY = "wait_and_retry"
    REQUEST_PERMISSION = "request_permission"
    INFORM_ONLY = "inform_only"


@dataclass(frozen=True, slots=True)
class RecoveryAction:
    kind: RecoveryActionKind
    seconds: float | None = None


class NotificationSink(Protocol):
    async def notify(
        self, title: str, message: str, category: ErrorCategory
    ) -> None: ...


class RecoverableBuffer(Protocol):
    def current_version(self) -> int: ...

    def plain_text(self) -> str | None: ...

    def read_text(self) -> ClassifiedContent: ...

    def write_text(self, text: str, marker: bool = True) -> None: ...


def _categorize_transformation_error(error: TransformationError) -> ErrorCategory:
    match error.kind:
        case (
            TransformationErrorKind.EMPTY_INPUT
            | TransformationErrorKind.CONTENT_TOO_LARGE
        ):
            return ErrorCategory.of(ErrorCategoryKind.CONTENT_ISSUE)
        case TransformationErrorKind.TIMEOUT:
            return ErrorCategory.timeout(error.seconds)
        case TransformationErrorKind.NETWORK:
            return ErrorCategory.of(ErrorCategoryKind.NETWORK)
        case TransformationErrorKind.AUTHENTICATION:
            return ErrorCategory.of(ErrorCategoryKind.AUTHENTICATION)
        case TransformationErrorKind.RATE_LIMITED:
            return ErrorCategory.rate_limit(error.retry_after)
    if error.status_code is not None and error.status_code >= 500:
        return ErrorCategory.of(ErrorCategoryKind.SERVICE_UNAVAILABLE)
    return ErrorCategory.of(ErrorCategoryKind.PROCESSING_ERROR)


def _categorize_cause(cause: BaseException | None) -> ErrorCategory:
    if isinstance(cause, PipelineError):
        if cause.kind is PipelineErrorKind.STAGE_FAILED:
            return _categorize_cause(cause.cause)
        if cause.kind is PipelineErrorKind.TIMEOUT:
            return ErrorCategory.timeout(cause.seconds)
        return ErrorCategory.of(ErrorCategoryKind.PROCESSING_ERROR)
    if isinstance(cause, TransformationError):
        return _categorize_transformation_error(cause)
    if isinstance(cause, TimeoutError):
        return ErrorCategory.timeout(None)
    if isinstance(cause, ConnectionError):
        return ErrorCategory.of(ErrorCategoryKind.NETWORK)
    return ErrorCategory.of(ErrorCategoryKind.PROCESSING_ERROR)


def categorize(error: FlowError) -> ErrorCategory:
    """Map a flow error onto the coarser category that drives messaging."""
    match error.kind:
        case FlowErrorKind.PERMISSION_REQUIRED:
            return ErrorCategory.of(ErrorCategoryKind.PERMISSION_REQUIRED)
        case (
            FlowErrorKind.BUFFER_EMPTY
            | FlowErrorKind.BINARY_CONTENT
            | FlowErrorKind.SELF_WRITE_DETECTED
            | FlowErrorKind.NO_TEXT_CONTENT
            | FlowErrorKind.INPUT_TOO_LARGE
        ):
            return ErrorCategory.of(ErrorCategoryKind.CONTENT_ISSUE)
        case FlowErrorKind.TRANSFORMATION_FAILED:
            return _categorize_cause(error.cause)
    return ErrorCategory.of(ErrorCategoryKind.PROCESSING_ERROR)


def determine_recovery_action(category: ErrorCategory) -> RecoveryAction:
    match category.kind:
        case ErrorCategoryKind.AUTHENTICATION:
            return RecoveryAction(RecoveryActionKind.OPEN_SETTINGS)
        case ErrorCategoryKind.RATE_LIMIT:
            if category.retry_after is not None:
                return RecoveryAction(
                    RecoveryActionKind.WAIT_AND_RETRY, seconds=category.retry_after
                )
            return RecoveryAction(RecoveryActionKind.RETRY)
        case ErrorCategoryKind.PERMISSION_REQUIRED:
            return RecoveryAction(RecoveryActionKind.REQUEST_PERMISSION)
        case ErrorCategoryKind.NETWORK | ErrorCategoryKind.SERVICE_UNAVAILABLE:
            return RecoveryAction(RecoveryActionKind.RETRY)
    return RecoveryAction(RecoveryActionKind.INFORM_ONLY)


_TITLES = {
    ErrorCategoryKind.NETWORK: "Connection Problem",
    ErrorCategoryKind.AUTHENTICATION: "Invalid API Key",
    ErrorCategoryKind.RATE_LIMIT: "Rate Limited",
    ErrorCategoryKind.TIMEOUT: "Request Timed Out",
    ErrorCategoryKind.SERVICE_UNAVAILABLE: "Service Unavailable",
    ErrorCategoryKind.PERMISSION_REQUIRED: "Permission Required",
    ErrorCategoryKind.CONTENT_ISSUE: "Cannot Transform",
    ErrorCategoryKind.PROCESSING_ERROR: "Transformation Failed",
}


def user_friendly_title(category: ErrorCategory) -> str:
    return _TITLES[category.kind]


def user_guidance(category: ErrorCategory) -> str:
    match category.kind:
        case ErrorCategoryKind.NETWORK:
            return "Check your internet connection and try again."
        case ErrorCategoryKind.AUTHENTICATION:
            return "Your API key may be invalid or expired. Update it in Settings."
        case ErrorCategoryKind.RATE_LIMIT:
            if category.retry_after is not None:
                return f"Wait {int(category.retry_after)} seconds before trying again."
            return "Please wait a moment before trying again."
        case ErrorCategoryKind.TIMEOUT:
            if category.seconds is not None:
                return (
                    f"The request took longer than {category.seconds:g}s. "
                    "Try shorter text or check your connection."
                )
            return (
                "The request took too long. "
                "Try shorter text or check your connection."
            )
        case ErrorCategoryKind.SERVICE_UNAVAILABLE:
            return (
                "The provider is temporarily unavailable. "
                "Try again shortly or use a different provider."
            )
        case ErrorCategoryKind.PERMISSION_REQUIRED:
            return "Grant paste permission in system settings, then try again."
        case ErrorCategoryKind.CONTENT_ISSUE:
            return "Only text content can be transformed. Copy text and try again."
    return "An unexpected error occurred. Please try again."


def notification_message(error: FlowError, category: ErrorCategory) -> str | None:
    """Body for the user notification, or None when nothing should be shown."""
    if error.is_silent:
        return None
    if category.kind is ErrorCategoryKind.CONTENT_ISSUE:
        if error.kind is FlowErrorKind.BINARY_CONTENT:
            found = friendly_type_name(error.content_type or "")
            return f"Only text content can be transformed. Found: {found}"
        if error.kind is not FlowErrorKind.INPUT_TOO_LARGE:
            return None
    return f"{format_flow_error(error).rstrip('.')}. {user_guidance(category)}"


@dataclass(frozen=True, slots=True)
class _CapturedContent:
    text: str | None
    version: int


class ErrorRecoveryManager:
    """Holds the single captured-original slot and performs rollback."""

    def __init__(
        self, buffer: RecoverableBuffer, notifier: NotificationSink | None = None
    ):
        self._buffer = buffer
        self._notifier = notifier
        self._captured: _CapturedContent | None = None

    @property
    def has_captured_content(self) -> bool:
        return self._captured is not None

    @property
    def captured_text(self) -> str | None:
        return self._captured.text if self._captured else None

    def capture(self) -> None:
        """Snapshot the buffer text before anything reads or writes it."""
        self._captured = _CapturedContent(
            text=self._buffer.plain_text(),
            version=self._buffer.current_version(),
        )

    def clear(self) -> None:
        self._captured = None

    def restore(self) -> bool:
        """Put the captured text back and clear the slot.

        When nothing has touched the buffer since capture, the original
        representations are still in place and no write happens.
        """
        captured = self._captured
        if captured is None:
            return False
        self._captured = None

        if self._buffer.current_version() == captured.version:
            return True
        if captured.text is None:
            logger.warning("Captured buffer had no text; nothing to restore")
            return False
        try:
            self._buffer.write_text(captured.text, marker=False)
        except BufferWriteError as exc:
            logger.error(f"Failed to restore original buffer content: {exc}")
            return False
        logger.info("Restored original buffer content")
        return True

    async def handle_error(self, error: FlowError) -> RecoveryAction:
        """Roll back, then tell the user. Returns the suggested action."""
        if error.requires_restore:
            self.restore()
        else:
            self.clear()

        category = categorize(error)
        action = determine_recovery_action(category)

        message = notification_message(error, category)
        if message is not None and self._notifier is not None:
            await self._notifier.notify(
                user_friendly_title(category), message, category
            )
        return action
