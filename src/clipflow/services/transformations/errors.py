"""Failure types raised by transformation strategies and pipelines."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class TransformationErrorKind(StrEnum):
    EMPTY_INPUT = "empty_input"
    TIMEOUT = "timeout"
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    PROCESSING = "processing"
    RATE_LIMITED = "rate_limited"
    CONTENT_TOO_LARGE = "content_too_large"


_SHORT_MESSAGES = {
    TransformationErrorKind.EMPTY_INPUT: "Empty input",
    TransformationErrorKind.TIMEOUT: "Timed out",
    TransformationErrorKind.NETWORK: "Network error",
    TransformationErrorKind.AUTHENTICATION: "Auth failed",
    TransformationErrorKind.PROCESSING: "Processing error",
    TransformationErrorKind.RATE_LIMITED: "Rate limited",
    TransformationErrorKind.CONTENT_TOO_LARGE: "Content too large",
}


@dataclass(slots=True, eq=False)
class TransformationError(Exception):
    """A strategy failed to turn its input into output.

    Use the classmethod constructors; each kind only fills the fields that
    belong to it.
    """

    kind: TransformationErrorKind
    message: str | None = None
    seconds: float | None = None
    retry_after: float | None = None
    byte_count: int | None = None
    limit: int | None = None
    status_code: int | None = None

    @classmethod
    def empty_input(cls) -> TransformationError:
        return cls(TransformationErrorKind.EMPTY_INPUT)

    @classmethod
    def timeout(cls, seconds: float) -> TransformationError:
        return cls(TransformationErrorKind.TIMEOUT, seconds=seconds)

    @classmethod
    def network(cls, message: str) -> TransformationError:
        return cls(TransformationErrorKind.NETWORK, message=message)

    @classmethod
    def authentication(cls) -> TransformationError:
        return cls(TransformationErrorKind.AUTHENTICATION)

    @classmethod
    def processing(
        cls, message: str, status_code: int | None = None
    ) -> TransformationError:
        return cls(
            TransformationErrorKind.PROCESSING, message=message, status_code=status_code
        )

    @classmethod
    def rate_limited(cls, retry_after: float | None = None) -> TransformationError:
        return cls(TransformationErrorKind.RATE_LIMITED, retry_after=retry_after)

    @classmethod
    def content_too_large(cls, byte_count: int, limit: int) -> TransformationError:
        return cls(
            TransformationErrorKind.CONTENT_TOO_LARGE,
            byte_count=byte_count,
            limit=limit,
        )

    @property
    def short_message(self) -> str:
        return _SHORT_MESSAGES[self.kind]

    def __str__(self) -> str:
        match self.kind:
            case TransformationErrorKind.EMPTY_INPUT:
                return "No text to transform"
            case TransformationErrorKind.TIMEOUT:
                return f"Transformation timed out after {self.seconds:g} seconds"
            case TransformationErrorKind.NETWORK:
                return f"Network error: {self.message}"
            case TransformationErrorKind.AUTHENTICATION:
                return "Invalid API key or authentication failed"
            case TransformationErrorKind.PROCESSING:
                return f"Processing error: {self.message}"
            case TransformationErrorKind.RATE_LIMITED:
                if self.retry_after is not None:
                    return f"Rate limited. Try again in {int(self.retry_after)} seconds"
                return "Rate limited. Please wait and try again"
            case TransformationErrorKind.CONTENT_TOO_LARGE:
                return (
                    f"Content too large ({self.byte_count} bytes, limit {self.limit})"
                )
        return self.kind.value


class PipelineErrorKind(StrEnum):
    EMPTY_PIPELINE = "empty_pipeline"
    STAGE_FAILED = "stage_failed"
    TIMEOUT = "timeout"


@dataclass(slots=True, eq=False)
class PipelineError(Exception):
    kind: PipelineErrorKind
    stage: int | None = None
    transformation_id: str | None = None
    cause: BaseException | None = None
    seconds: float | None = None

    @classmethod
    def empty_pipeline(cls) -> PipelineError:
        return cls(PipelineErrorKind.EMPTY_PIPELINE)

    @classmethod
    def stage_failed(
        cls, stage: int, transformation_id: str, cause: BaseException
    ) -> PipelineError:
        return cls(
            PipelineErrorKind.STAGE_FAILED,
            stage=stage,
            transformation_id=transformation_id,
            cause=cause,
        )

    @classmethod
    def timeout(cls, seconds: float) -> PipelineError:
        return cls(PipelineErrorKind.TIMEOUT, seconds=seconds)

    @property
    def short_message(self) -> str:
        match self.kind:
            case PipelineErrorKind.EMPTY_PIPELINE:
                return "No transforms configured"
            case PipelineErrorKind.STAGE_FAILED:
                if isinstance(self.cause, TransformationError):
                    return self.cause.short_message
                return truncate(str(self.cause), 40)
        return "Timed out"

    def __str__(self) -> str:
        match self.kind:
            case PipelineErrorKind.EMPTY_PIPELINE:
                return "No transformations configured"
            case PipelineErrorKind.STAGE_FAILED:
                stage = (self.stage or 0) + 1
                return f"Stage {stage} ({self.transformation_id}) failed: {self.cause}"
        return f"Pipeline timed out after {self.seconds:g} seconds"


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
