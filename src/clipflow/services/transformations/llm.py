"""Transformation backed by a remote language model through pydantic-ai."""

from __future__ import annotations

import logging
from typing import Any

import httpx
import openai
from pydantic_ai import Agent
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior
from pydantic_ai.models import Model
from pydantic_ai.settings import ModelSettings

from clipflow.core.config import Settings
from clipflow.services.transformations.base import HistoryMetadata
from clipflow.services.transformations.errors import TransformationError
from clipflow.services.transformations.model_factory import (
    get_transformation_model,
    provider_display_name,
)


logger = logging.getLogger(__name__)

DEFAULT_CONTENT_LIMIT_BYTES = 200_000


def _parse_seconds(candidates: list[Any]) -> float | None:
    for value in candidates:
        try:
            if value is not None:
                return float(value)
        except (TypeError, ValueError):
            continue
    return None


def retry_after_seconds(exc: ModelHTTPError) -> float | None:
    """Seconds the provider asked us to wait, if it said.

    The `Retry-After` header of the underlying provider response wins;
    a `retry_after` field in the error body is the fallback.
    """
    candidates: list[Any] = []
    response = getattr(exc.__cause__, "response", None)
    headers = getattr(response, "headers", None)
    if headers is not None:
        candidates.append(headers.get("retry-after"))
    if isinstance(exc.body, dict):
        candidates.append(exc.body.get("retry_after"))
        error = exc.body.get("error")
        if isinstance(error, dict):
            candidates.append(error.get("retry_after"))
    return _parse_seconds(candidates)


def map_model_http_error(exc: ModelHTTPError) -> TransformationError:
    """Translate a provider HTTP status into a TransformationError."""
    status = exc.status_code
    if status in (401, 403):
        return TransformationError.authentication()
    if status == 429:
        return TransformationError.rate_limited(retry_after_seconds(exc))
    if status == 404:
        return TransformationError.processing("Model not available", status)
    if status >= 500:
        return TransformationError.processing(
            f"Service unavailable ({status})", status
        )
    return TransformationError.processing(f"Provider returned HTTP {status}", status)


class LLMTransformation:
    """Sends the text to the configured model with a fixed system prompt.

    Provider failures are translated into TransformationError kinds so the
    flow can categorize them; cancellation passes through untouched.
    """

    id = "llm"

    def __init__(
        self,
        settings: Settings,
        *,
        model: Model | str | None = None,
        agent: Agent[None, str] | None = None,
        display_name: str | None = None,
        content_limit_bytes: int | None = None,
    ):
        self.settings = settings
        self.system_prompt = settings.LLM_SYSTEM_PROMPT
        self.content_limit_bytes = (
            content_limit_bytes
            if content_limit_bytes is not None
            else settings.LLM_CONTENT_LIMIT_BYTES or DEFAULT_CONTENT_LIMIT_BYTES
        )
        self._model = model
        self._agent = agent
        provider = provider_display_name(settings.LLM_PROVIDER)
        self.display_name = display_name or (
            f"LLM ({provider})" if provider else "LLM"
        )

    @property
    def history_metadata(self) -> HistoryMetadata:
        return HistoryMetadata(
            provider_name=provider_display_name(self.settings.LLM_PROVIDER),
            model_used=self.settings.LLM_MODEL,
            system_prompt=self.system_prompt,
        )

    def _model_settings(self) -> ModelSettings:
        model_settings = ModelSettings(temperature=self.settings.LLM_TEMPERATURE)
        if self.settings.LLM_MAX_TOKENS:
            model_settings["max_tokens"] = self.settings.LLM_MAX_TOKENS
        return model_settings

    @property
    def agent(self) -> Agent[None, str]:
        """The agent is built on first use so construction never needs network."""
        if self._agent is None:
            model = self._model or get_transformation_model(self.settings)
            self._agent = Agent(
                model,
                output_type=str,
                system_prompt=self.system_prompt,
                model_settings=self._model_settings(),
            )
        return self._agent

    def _validate(self, text: str) -> None:
        if not text.strip():
            raise TransformationError.empty_input()
        byte_count = len(text.encode("utf-8"))
        if byte_count > self.content_limit_bytes:
            raise TransformationError.content_too_large(
                byte_count, self.content_limit_bytes
            )

    async def transform(self, text: str) -> str:
        self._validate(text)

        try:
            result = await self.agent.run(text)
        except ModelHTTPError as exc:
            logger.warning(
                f"LLM provider returned HTTP {exc.status_code} "
                f"for model {exc.model_name}"
            )
            raise map_model_http_error(exc) from exc
        except (openai.APITimeoutError, httpx.TimeoutException) as exc:
            raise TransformationError.timeout(
                self.settings.TRANSFORMATION_TIMEOUT_SECONDS
            ) from exc
        except (openai.APIConnectionError, httpx.TransportError) as exc:
            raise TransformationError.network(str(exc) or type(exc).__name__) from exc
        except UnexpectedModelBehavior as exc:
            raise TransformationError.processing(exc.message) from exc

        output = (result.output or "").strip()
        if not output:
            raise TransformationError.processing("LLM returned empty content")
        return output
