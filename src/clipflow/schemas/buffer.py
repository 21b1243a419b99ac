"""Schemas for reading and simulating external writes to the buffer."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BufferContentResponse(BaseModel):
    version: int
    types: list[str]
    has_marker: bool
    kind: Annotated[str, Field(description="text | binary | empty | unknown")]
    text: str | None = None
    binary_type: str | None = None
    last_external_change_kind: str | None = None


class BufferUpdateRequest(BaseModel):
    """Simulate another application copying content.

    Send either `text` or a full `representations` mapping, not both.
    """

    text: str | None = None
    representations: Annotated[
        dict[str, str] | None,
        Field(default=None, description="Representation type to payload"),
    ]

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _exactly_one(self) -> BufferUpdateRequest:
        if (self.text is None) == (self.representations is None):
            raise ValueError("Provide exactly one of 'text' or 'representations'")
        return self
