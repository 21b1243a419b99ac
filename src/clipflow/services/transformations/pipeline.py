"""Ordered, fail-fast chains of transformations."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from clipflow.services.transformations.base import (
    HistoryMetadata,
    Transformation,
    history_metadata_for,
)
from clipflow.services.transformations.errors import (
    PipelineError,
    TransformationError,
)
from clipflow.services.transformations.smart_unwrap import SmartUnwrapTransformation
from clipflow.services.transformations.whitespace import WhitespaceStripTransformation


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    timeout: float = 5.0
    fail_fast: bool = True

    @classmethod
    def algorithmic(cls) -> PipelineConfig:
        return cls(timeout=5.0)

    @classmethod
    def llm(cls) -> PipelineConfig:
        return cls(timeout=30.0)


@dataclass(frozen=True, slots=True)
class StageResult:
    transformation_id: str
    transformation_name: str
    output: str
    duration: float
    metadata: HistoryMetadata | None = None


@dataclass(frozen=True, slots=True)
class PipelineResult:
    output: str
    stage_results: list[StageResult] = field(default_factory=list)

    @property
    def total_duration(self) -> float:
        return sum(stage.duration for stage in self.stage_results)

    @property
    def stage_count(self) -> int:
        return len(self.stage_results)


class TransformationPipeline:
    """Feeds each stage's output to the next under one overall timeout."""

    def __init__(
        self,
        transformations: Sequence[Transformation],
        config: PipelineConfig | None = None,
        pipeline_id: str = "pipeline",
        display_name: str | None = None,
    ):
        self.transformations = list(transformations)
        self.config = config or PipelineConfig.algorithmic()
        self.id = pipeline_id
        self._display_name = display_name

    @property
    def display_name(self) -> str:
        if self._display_name:
            return self._display_name
        names = self.transformation_display_names
        if not names:
            return "Pipeline"
        if len(names) <= 3:
            return " + ".join(names)
        return f"{names[0]} + {len(names) - 1} more"

    @property
    def transformation_display_names(self) -> list[str]:
        return [t.display_name for t in self.transformations]

    @property
    def provider_name(self) -> str | None:
        for transformation in self.transformations:
            metadata = history_metadata_for(transformation)
            if metadata is not None:
                return metadata.provider_name
        return None

    async def execute(self, text: str) -> PipelineResult:
        if not text.strip():
            raise TransformationError.empty_input()
        if not self.transformations:
            raise PipelineError.empty_pipeline()

        try:
            async with asyncio.timeout(self.config.timeout):
                return await self._execute_stages(text)
        except TimeoutError as exc:
            raise PipelineError.timeout(self.config.timeout) from exc

    async def _execute_stages(self, text: str) -> PipelineResult:
        current = text
        stages: list[StageResult] = []
        for index, transformation in enumerate(self.transformations):
            started = time.perf_counter()
            try:
                output = await transformation.transform(current)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if self.config.fail_fast:
                    raise PipelineError.stage_failed(
                        index, transformation.id, exc
                    ) from exc
                continue
            stages.append(
                StageResult(
                    transformation_id=transformation.id,
                    transformation_name=transformation.display_name,
                    output=output,
                    duration=time.perf_counter() - started,
                    metadata=history_metadata_for(transformation),
                )
            )
            current = output
        return PipelineResult(output=current, stage_results=stages)


def clean_terminal_text() -> TransformationPipeline:
    """Whitespace strip followed by smart unwrap, for text copied from a terminal."""
    return TransformationPipeline(
        [WhitespaceStripTransformation(), SmartUnwrapTransformation()],
        config=PipelineConfig.algorithmic(),
        pipeline_id="clean-terminal-text",
        display_name="Clean Terminal Text",
    )
