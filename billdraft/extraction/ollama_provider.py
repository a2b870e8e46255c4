"""Ollama-based model provider for self-hosted LLM inference.

Uses a local Ollama server, so documents never leave the premises.
JSON replies are requested with Ollama's ``format: "json"`` option.

Requires Ollama server running (default localhost:11434).
See: https://ollama.ai/
"""

import logging

import httpx
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from billdraft.extraction.base import SYSTEM_PROMPT, ExpectFormat, ModelProvider
from billdraft.shared.config import Settings
from billdraft.shared.errors import ModelError, ModelResponseError

logger = logging.getLogger(__name__)


class OllamaModelProvider(ModelProvider):
    """Ollama-based model provider for self-hosted LLM inference.

    Supports models like Qwen2.5, Llama3, Mistral.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize Ollama model provider.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._base_url = settings.ollama_base_url
        self._model = settings.ollama_model
        self._client = httpx.Client(timeout=settings.model_timeout_seconds)

    @property
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier 'ollama'
        """
        return "ollama"

    def is_available(self) -> bool:
        """Check if Ollama server is running and model is available.

        Returns:
            True if Ollama server responds and model is loaded
        """
        try:
            response = self._client.get(f"{self._base_url}/api/tags")
            if response.status_code != 200:
                return False
            # Check if configured model is available
            models = response.json().get("models", [])
            model_names = [m.get("name", "").split(":")[0] for m in models]
            return self._model.split(":")[0] in model_names
        except (httpx.HTTPError, ValueError, AttributeError):
            return False

    def complete(self, prompt: str, expect_format: ExpectFormat = "json") -> str:
        """Send the prompt to Ollama and return the reply text.

        Args:
            prompt: Assembled extraction prompt
            expect_format: 'json' enables Ollama's JSON mode

        Returns:
            Reply text

        Raises:
            ModelError: If all attempts fail, the body is not Ollama JSON, or the
                reply is empty
        """
        retrying = Retrying(
            retry=retry_if_exception_type((httpx.HTTPError, httpx.TimeoutException)),
            wait=wait_exponential_jitter(
                initial=self.settings.model_retry_initial_wait,
                max=self.settings.model_retry_max_wait,
            ),
            stop=stop_after_attempt(self.settings.model_max_attempts),
            reraise=True,
        )
        try:
            reply = retrying(self._generate, prompt, expect_format)
        except httpx.HTTPError as e:
            logger.error(f"Ollama call failed: {e}")
            raise ModelError(f"Ollama call failed: {str(e)}") from e

        if not reply.strip():
            raise ModelError("Empty reply from Ollama")
        return reply

    def _generate(self, prompt: str, expect_format: ExpectFormat) -> str:
        """Single call to Ollama's generate endpoint.

        Raises:
            httpx.HTTPError: On transport errors or non-2xx status
            ModelResponseError: If the body is not a JSON object
        """
        payload = {
            "model": self._model,
            "system": SYSTEM_PROMPT,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": 0,  # Deterministic output
                "num_predict": 2048,  # Max tokens
            },
        }
        if expect_format == "json":
            payload["format"] = "json"

        response = self._client.post(f"{self._base_url}/api/generate", json=payload)
        response.raise_for_status()
        try:
            body = response.json()
        except ValueError as e:
            raise ModelResponseError(f"Ollama returned a non-JSON body: {str(e)}") from e
        if not isinstance(body, dict):
            raise ModelResponseError("Ollama returned an unexpected body")
        return str(body.get("response", ""))
