"""Model provider selection and availability reporting.

``Settings.model_provider`` names the backend. The provider is created once at
process start-up and injected into the extraction service. ``check_provider``
reports whether it can serve requests right now; it feeds the start-up warning
and the ``/ready`` endpoint.
"""

import logging
from dataclasses import dataclass

from billdraft.extraction.base import ModelProvider
from billdraft.extraction.ollama_provider import OllamaModelProvider
from billdraft.extraction.openai_provider import OpenAIModelProvider
from billdraft.shared.config import Settings

logger = logging.getLogger(__name__)

PROVIDERS: dict[str, type[ModelProvider]] = {
    "openai": OpenAIModelProvider,
    "ollama": OllamaModelProvider,
}

# What an operator has to do when a provider reports itself unavailable
_SETUP_HINTS = {
    "openai": "set OPENAI_API_KEY",
    "ollama": "start the Ollama server and pull the configured model",
}


@dataclass(frozen=True)
class ProviderStatus:
    """Availability of the configured model provider."""

    name: str
    available: bool
    detail: str = ""


def check_provider(provider: ModelProvider) -> ProviderStatus:
    """Report whether the provider can currently serve requests.

    A failing availability check counts as unavailable rather than an error,
    since extraction degrades to the fallback result without a model.

    Args:
        provider: Provider to check

    Returns:
        ProviderStatus with a setup hint when unavailable
    """
    name = provider.provider_name
    try:
        available = provider.is_available()
    except Exception as e:
        logger.warning(f"Availability check for model provider '{name}' failed: {e}")
        return ProviderStatus(name=name, available=False, detail=f"check failed: {e}")

    if available:
        return ProviderStatus(name=name, available=True)
    hint = _SETUP_HINTS.get(name, "check the provider configuration")
    return ProviderStatus(name=name, available=False, detail=f"not available: {hint}")


def create_model_provider(settings: Settings) -> ModelProvider:
    """Create the model provider selected by ``settings.model_provider``.

    Args:
        settings: Application settings

    Returns:
        Configured model provider instance

    Raises:
        ValueError: If the configured provider is unknown
    """
    name = settings.model_provider
    if name not in PROVIDERS:
        available = ", ".join(PROVIDERS)
        raise ValueError(f"Unknown model provider: '{name}'. Available providers: {available}")

    provider = PROVIDERS[name](settings)

    provider_status = check_provider(provider)
    if not provider_status.available:
        logger.warning(f"Model provider '{name}' is {provider_status.detail}")

    logger.info(f"Created model provider: {name}")
    return provider
