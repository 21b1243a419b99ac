"""Schemas for the transformation flow endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from clipflow.services.flow.errors import FlowError, short_flow_error
from clipflow.services.flow.recovery import categorize
from clipflow.services.flow.types import (
    Cancelled,
    Completed,
    Failed,
    Processing,
    ProcessingState,
)


class FlowErrorInfo(BaseModel):
    kind: str
    message: str
    short_message: str
    category: str
    silent: bool

    @classmethod
    def from_error(cls, error: FlowError) -> FlowErrorInfo:
        return cls(
            kind=error.kind.value,
            message=str(error),
            short_message=short_flow_error(error),
            category=categorize(error).kind.value,
            silent=error.is_silent,
        )


class ProcessingStateInfo(BaseModel):
    """A processing state without any buffer content."""

    name: str
    request_id: UUID | None = None
    transformation_id: str | None = None
    error: FlowErrorInfo | None = None

    @classmethod
    def from_state(cls, state: ProcessingState) -> ProcessingStateInfo:
        match state:
            case Processing(request=request) | Cancelled(request=request):
                return cls(
                    name=state.name,
                    request_id=request.id,
                    transformation_id=request.source.transformation_id,
                )
            case Completed(outcome=outcome):
                return cls(
                    name=state.name,
                    request_id=outcome.request.id,
                    transformation_id=outcome.request.source.transformation_id,
                )
            case Failed(request=request, error=error):
                return cls(
                    name=state.name,
                    request_id=request.id,
                    transformation_id=request.source.transformation_id,
                    error=FlowErrorInfo.from_error(error),
                )
        return cls(name=state.name)


class FlowStateResponse(BaseModel):
    state: ProcessingStateInfo
    is_processing: bool
    last_error: FlowErrorInfo | None = None
    last_terminal_state: ProcessingStateInfo | None = None
    active_transformation: str


class TriggerRequest(BaseModel):
    """Start a flow, optionally overriding the configured transformation."""

    transformation_id: Annotated[
        str | None,
        Field(default=None, description="Registered transformation or pipeline id"),
    ]
    pipeline: Annotated[
        list[str] | None,
        Field(
            default=None,
            min_length=1,
            description="Ordered transformation ids to run as an ad-hoc pipeline",
        ),
    ]
    timeout_seconds: Annotated[
        float | None, Field(default=None, gt=0, description="Per-request timeout")
    ]

    model_config = ConfigDict(extra="forbid")


class TriggerResponse(BaseModel):
    accepted: bool
    request_id: UUID | None = None


class NotificationInfo(BaseModel):
    title: str
    message: str
    category: str
    created_at: datetime
