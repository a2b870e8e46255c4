"""Abstract base class for generative model providers.

The extraction service treats the model as a black box: a prompt goes in,
free text comes out, and the call may fail. Providers own transport concerns
(timeouts, bounded retries); callers only see the reply text or a ModelError.

Based on Strategy Pattern:
https://refactoring.guru/design-patterns/strategy/python
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Literal

from billdraft.shared.config import Settings
from billdraft.shared.errors import ModelResponseError

ExpectFormat = Literal["json", "text"]

SYSTEM_PROMPT = (
    "You are an expert invoice and quote parser. "
    "Extract structured data from user input and follow the requested output format exactly."
)


class ModelProvider(ABC):
    """Abstract base class for generative model providers.

    Example implementations:
    - OpenAIModelProvider: Uses OpenAI API (cloud-based)
    - OllamaModelProvider: Uses a self-hosted Ollama server
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize provider with settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    @abstractmethod
    def complete(self, prompt: str, expect_format: ExpectFormat = "json") -> str:
        """Send a prompt to the model and return its reply text.

        Args:
            prompt: Fully assembled prompt
            expect_format: 'json' asks the model for a single JSON object

        Returns:
            Raw reply text (still to be decoded by the caller)

        Raises:
            ModelError: If the call fails after the provider's retries
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider is available/configured.

        Returns:
            True if provider can be used, False otherwise
        """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier for logging/metrics (e.g., 'openai', 'ollama')."""


def decode_model_reply(reply: str) -> dict[str, Any]:
    """Extract and parse the JSON object from a model reply.

    Handles common LLM quirks like markdown code blocks and surrounding prose.

    Args:
        reply: Raw model reply

    Returns:
        Parsed JSON object

    Raises:
        ModelResponseError: If no JSON object can be decoded
    """
    candidates = []
    fenced = re.search(r"```(?:json)?\s*([\s\S]*?)```", reply)
    if fenced:
        candidates.append(fenced.group(1).strip())
    braced = re.search(r"\{[\s\S]*\}", reply)
    if braced:
        candidates.append(braced.group(0))
    candidates.append(reply.strip())

    for candidate in candidates:
        try:
            decoded = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(decoded, dict):
            return decoded

    raise ModelResponseError(f"Model reply is not a JSON object: {reply[:200]!r}")
