"""Schemas for listing and trying out transformations."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class TransformationInfo(BaseModel):
    id: str
    display_name: str
    kind: str
    stages: list[str] = []


class TransformationTestRequest(BaseModel):
    text: Annotated[str, Field(min_length=1, description="Input to transform")]

    model_config = ConfigDict(extra="forbid")


class TransformationTestResponse(BaseModel):
    transformation_id: str
    output: str
    duration_ms: int
