"""The strategy contract every transformation implements."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from clipflow.services.transformations.errors import TransformationError


@dataclass(frozen=True, slots=True)
class HistoryMetadata:
    """Provider details a strategy contributes to history entries."""

    provider_name: str | None = None
    model_used: str | None = None
    system_prompt: str | None = None


@runtime_checkable
class Transformation(Protocol):
    """Text in, text out, or a TransformationError.

    Implementations run inside a background task and must let
    `asyncio.CancelledError` propagate promptly.
    """

    @property
    def id(self) -> str: ...

    @property
    def display_name(self) -> str: ...

    async def transform(self, text: str) -> str: ...


def history_metadata_for(transformation: object) -> HistoryMetadata | None:
    """Return the strategy's history metadata, if it publishes any."""
    metadata = getattr(transformation, "history_metadata", None)
    return metadata if isinstance(metadata, HistoryMetadata) else None


class IdentityTransformation:
    """Returns its input unchanged; useful as a default and in tests."""

    id = "identity"
    display_name = "Identity (No Change)"

    async def transform(self, text: str) -> str:
        if not text:
            raise TransformationError.empty_input()
        return text
