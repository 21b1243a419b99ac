"""Build the pydantic-ai model behind the LLM transformation.

Usage:
    from clipflow.services.transformations.model_factory import get_transformation_model

    model = get_transformation_model(settings)  # pydantic-ai Model
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, cast

from pydantic_ai.models import Model
from pydantic_ai.models.anthropic import AnthropicModel
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.anthropic import AnthropicProvider
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.providers.openai import OpenAIProvider

from clipflow.core.config import Settings
from clipflow.core.exceptions import ProviderNotConfiguredError


if TYPE_CHECKING:
    from httpx import AsyncClient

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

PROVIDER_DISPLAY_NAMES = {
    "openai": "OpenAI",
    "anthropic": "Anthropic",
    "openrouter": "OpenRouter",
    "ollama": "Ollama",
    "gemini": "Gemini",
}

_REQUIRED_KEYS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


def provider_display_name(provider: str | None) -> str | None:
    if provider is None:
        return None
    return PROVIDER_DISPLAY_NAMES.get(provider, provider)


def _missing_credential(settings: Settings) -> str | None:
    """Return the name of the missing credential setting, if any."""
    key_name = _REQUIRED_KEYS.get(settings.LLM_PROVIDER or "")
    if key_name and not getattr(settings, key_name):
        return key_name
    return None


def is_llm_configured(settings: Settings) -> bool:
    """True when a provider is selected and its credentials are present."""
    if not settings.LLM_PROVIDER:
        return False
    missing = _missing_credential(settings)
    if missing:
        logger.warning(
            f"LLM_PROVIDER={settings.LLM_PROVIDER} but {missing} is not set; "
            "LLM transformation disabled"
        )
        return False
    return True


def _create_openai_compatible_model(
    model_name: str,
    *,
    api_key: str | None,
    base_url: str | None = None,
    http_client: AsyncClient | None = None,
) -> Model:
    provider = OpenAIProvider(
        base_url=base_url, api_key=api_key, http_client=http_client
    )
    return OpenAIChatModel(model_name, provider=provider)


def _create_anthropic_model(
    model_name: str, api_key: str | None, http_client: AsyncClient | None = None
) -> Model:
    provider = AnthropicProvider(api_key=api_key, http_client=http_client)
    return AnthropicModel(model_name, provider=provider)


def _create_gemini_model(
    model_name: str, api_key: str | None, http_client: AsyncClient | None = None
) -> Model:
    provider = GoogleProvider(api_key=api_key, http_client=http_client)
    return cast(Model, GoogleModel(model_name, provider=provider))


def get_transformation_model(
    settings: Settings, http_client: AsyncClient | None = None
) -> Model:
    """Create the model for the configured LLM provider.

    Args:
        settings: Application settings carrying LLM_PROVIDER, LLM_MODEL and keys.
        http_client: Optional HTTP client shared with other callers.

    Returns:
        A pydantic-ai Model for the selected provider.

    Raises:
        ProviderNotConfiguredError: No provider selected or its key is missing.
    """
    provider = settings.LLM_PROVIDER
    if not provider:
        raise ProviderNotConfiguredError("LLM_PROVIDER is not set")
    missing = _missing_credential(settings)
    if missing:
        raise ProviderNotConfiguredError(f"{missing} is required for {provider}")

    model_name = settings.LLM_MODEL
    logger.info(f"Using {provider_display_name(provider)} model: {model_name}")

    if provider == "openai":
        return _create_openai_compatible_model(
            model_name, api_key=settings.OPENAI_API_KEY, http_client=http_client
        )
    if provider == "openrouter":
        return _create_openai_compatible_model(
            model_name,
            api_key=settings.OPENROUTER_API_KEY,
            base_url=OPENROUTER_BASE_URL,
            http_client=http_client,
        )
    if provider == "ollama":
        # Ollama ignores the key, but the OpenAI client insists on one
        return _create_openai_compatible_model(
            model_name,
            api_key="ollama",
            base_url=settings.OLLAMA_BASE_URL,
            http_client=http_client,
        )
    if provider == "anthropic":
        return _create_anthropic_model(
            model_name, settings.ANTHROPIC_API_KEY, http_client
        )
    return _create_gemini_model(model_name, settings.GEMINI_API_KEY, http_client)
