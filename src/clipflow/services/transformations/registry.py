"""Look up transformations and pipelines by id."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from clipflow.core.config import Settings
from clipflow.core.exceptions import TransformationNotFoundError
from clipflow.services.transformations.base import (
    IdentityTransformation,
    Transformation,
)
from clipflow.services.transformations.llm import LLMTransformation
from clipflow.services.transformations.model_factory import is_llm_configured
from clipflow.services.transformations.pipeline import (
    PipelineConfig,
    TransformationPipeline,
    clean_terminal_text,
)
from clipflow.services.transformations.smart_unwrap import SmartUnwrapTransformation
from clipflow.services.transformations.whitespace import WhitespaceStripTransformation


logger = logging.getLogger(__name__)

TransformationFactory = Callable[[], Transformation]
PipelineFactory = Callable[[], TransformationPipeline]


@dataclass(frozen=True, slots=True)
class RegistryEntry:
    id: str
    display_name: str
    kind: str  # "transformation" | "pipeline"
    stages: tuple[str, ...] = ()


class TransformationRegistry:
    def __init__(self) -> None:
        self._transformations: dict[str, TransformationFactory] = {}
        self._pipelines: dict[str, PipelineFactory] = {}

    def register(self, transformation_id: str, factory: TransformationFactory) -> None:
        self._transformations[transformation_id] = factory

    def register_pipeline(self, pipeline_id: str, factory: PipelineFactory) -> None:
        self._pipelines[pipeline_id] = factory

    def __contains__(self, item: object) -> bool:
        return item in self._transformations or item in self._pipelines

    def is_pipeline(self, item_id: str) -> bool:
        return item_id in self._pipelines

    def get(self, transformation_id: str) -> Transformation:
        factory = self._transformations.get(transformation_id)
        if factory is None:
            raise TransformationNotFoundError(transformation_id)
        return factory()

    def get_pipeline(self, pipeline_id: str) -> TransformationPipeline:
        factory = self._pipelines.get(pipeline_id)
        if factory is None:
            raise TransformationNotFoundError(pipeline_id)
        return factory()

    def build_pipeline(
        self, transformation_ids: Iterable[str], pipeline_id: str = "custom"
    ) -> TransformationPipeline:
        """Compose registered strategies into a pipeline.

        Any LLM stage switches the pipeline to the longer LLM timeout.
        """
        stages = [self.get(item_id) for item_id in transformation_ids]
        config = (
            PipelineConfig.llm()
            if any(isinstance(stage, LLMTransformation) for stage in stages)
            else PipelineConfig.algorithmic()
        )
        return TransformationPipeline(stages, config=config, pipeline_id=pipeline_id)

    def resolve(self, item_id: str) -> Transformation | TransformationPipeline:
        """Return the pipeline or transformation registered under `item_id`."""
        if item_id in self._pipelines:
            return self.get_pipeline(item_id)
        return self.get(item_id)

    def entries(self) -> list[RegistryEntry]:
        items: list[RegistryEntry] = []
        for transformation_id, factory in self._transformations.items():
            items.append(
                RegistryEntry(
                    id=transformation_id,
                    display_name=factory().display_name,
                    kind="transformation",
                )
            )
        for pipeline_id, pipeline_factory in self._pipelines.items():
            pipeline = pipeline_factory()
            items.append(
                RegistryEntry(
                    id=pipeline_id,
                    display_name=pipeline.display_name,
                    kind="pipeline",
                    stages=tuple(t.id for t in pipeline.transformations),
                )
            )
        return items


def build_registry(settings: Settings) -> TransformationRegistry:
    registry = TransformationRegistry()
    registry.register(IdentityTransformation.id, IdentityTransformation)
    registry.register(WhitespaceStripTransformation.id, WhitespaceStripTransformation)
    registry.register(SmartUnwrapTransformation.id, SmartUnwrapTransformation)
    registry.register_pipeline("clean-terminal-text", clean_terminal_text)

    if is_llm_configured(settings):
        llm = LLMTransformation(settings)
        registry.register(LLMTransformation.id, lambda: llm)
        logger.info(f"Registered LLM transformation ({settings.LLM_PROVIDER})")

    return registry
