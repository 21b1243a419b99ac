"""Requests, outcomes and the processing state machine's states."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from clipflow.services.transformations.base import HistoryMetadata


if TYPE_CHECKING:
    from clipflow.services.flow.errors import FlowError


DEFAULT_TIMEOUT_SECONDS = 30.0


class RequestSourceKind(StrEnum):
    SINGLE = "single"
    PIPELINE = "pipeline"


@dataclass(frozen=True, slots=True)
class RequestSource:
    kind: RequestSourceKind
    transformation_id: str | None = None

    @classmethod
    def single(cls, transformation_id: str) -> RequestSource:
        return cls(RequestSourceKind.SINGLE, transformation_id)

    @classmethod
    def pipeline(cls, pipeline_id: str | None = None) -> RequestSource:
        return cls(RequestSourceKind.PIPELINE, pipeline_id)


@dataclass(frozen=True, slots=True)
class TransformationRequest:
    """One accepted trigger. Never mutated after creation."""

    source: RequestSource
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True, slots=True)
class HistoryDescriptor:
    """Which strategy produced a result, as recorded in history."""

    transformation_id: str
    transformation_name: str
    provider_name: str | None = None
    model_used: str | None = None
    system_prompt: str | None = None

    @classmethod
    def for_strategy(
        cls,
        transformation_id: str,
        transformation_name: str,
        metadata: HistoryMetadata | None,
    ) -> HistoryDescriptor:
        if metadata is None:
            return cls(transformation_id, transformation_name)
        return cls(
            transformation_id,
            transformation_name,
            provider_name=metadata.provider_name,
            model_used=metadata.model_used,
            system_prompt=metadata.system_prompt,
        )


@dataclass(frozen=True, slots=True)
class TransformationFlowOutcome:
    request: TransformationRequest
    original_text: str
    transformed_text: str
    descriptor: HistoryDescriptor
    finished_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def processing_time_ms(self) -> int:
        elapsed = (self.finished_at - self.request.created_at).total_seconds()
        return int(max(elapsed, 0) * 1000)


@dataclass(frozen=True, slots=True)
class Idle:
    name = "idle"


@dataclass(frozen=True, slots=True)
class Processing:
    request: TransformationRequest
    name = "processing"


@dataclass(frozen=True, slots=True)
class Completed:
    outcome: TransformationFlowOutcome
    name = "completed"


@dataclass(frozen=True, slots=True)
class Failed:
    request: TransformationRequest
    error: FlowError
    name = "failed"


@dataclass(frozen=True, slots=True)
class Cancelled:
    request: TransformationRequest
    name = "cancelled"


ProcessingState = Idle | Processing | Completed | Failed | Cancelled

IDLE = Idle()


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """What the flow hands to the history sink for one finished request."""

    transformation_id: str
    transformation_name: str
    input_text: str
    output_text: str
    processing_time_ms: int
    was_successful: bool
    error_message: str | None = None
    provider_name: str | None = None
    model_used: str | None = None
    system_prompt: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def input_char_count(self) -> int:
        return len(self.input_text)
