"""Schemas for transformation history."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class HistoryEntryResponse(BaseModel):
    id: int
    timestamp: datetime
    transformation_id: str
    transformation_name: str
    provider_name: str | None = None
    model_used: str | None = None
    input_text: str
    output_text: str
    input_char_count: int
    processing_time_ms: int
    was_successful: bool
    error_message: str | None = None

    model_config = ConfigDict(from_attributes=True)


class HistoryLimitRequest(BaseModel):
    limit: Annotated[int, Field(ge=0, description="Entries to keep; 0 keeps all")]

    model_config = ConfigDict(extra="forbid")


class HistoryLimitResponse(BaseModel):
    limit: int
    pruned: int


class HistoryClearResponse(BaseModel):
    deleted: int
