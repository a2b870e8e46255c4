"""OpenAI-based model provider.

Uses the OpenAI chat completions API. JSON replies are requested through
``response_format={"type": "json_object"}``.

Includes retry logic with exponential backoff for transient API errors.
The SDK's own retries are disabled so tenacity is the single retry policy.
"""

import logging
import os
from typing import Any

from openai import OpenAI
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


class OpenAIModelProvider(ModelProvider):
    """OpenAI-based model provider.

    Requires OPENAI_API_KEY environment variable.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize OpenAI model provider.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._client: OpenAI | None = None

    @property
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier 'openai'
        """
        return "openai"

    def is_available(self) -> bool:
        """Check if OpenAI API key is configured.

        Returns:
            True if OPENAI_API_KEY environment variable is set
        """
        return os.getenv("OPENAI_API_KEY") is not None

    def complete(self, prompt: str, expect_format: ExpectFormat = "json") -> str:
        """Send the prompt to OpenAI and return the reply content.

        Args:
            prompt: Assembled extraction prompt
            expect_format: 'json' enables JSON object mode

        Returns:
            Reply content

        Raises:
            ModelError: If the key is missing, all attempts fail, or the reply is empty
        """
        # Check for API key at runtime
        if not self.is_available():
            raise ModelError("OPENAI_API_KEY environment variable not set")

        api_key = os.getenv("OPENAI_API_KEY")
        if self._client is None or self._client.api_key != api_key:
            self._client = OpenAI(
                api_key=api_key,
                timeout=self.settings.model_timeout_seconds,
                max_retries=0,
            )

        try:
            response = self._retrying()(self._create_completion, prompt, expect_format)
        except Exception as e:
            raise ModelError(f"OpenAI call failed: {str(e)}") from e

        try:
            content = response.choices[0].message.content
        except (IndexError, AttributeError) as e:
            raise ModelResponseError(f"Malformed reply from OpenAI: {str(e)}") from e
        if not content:
            raise ModelError("Empty reply from OpenAI")
        return str(content)

    def _retrying(self) -> Retrying:
        """Retry policy: exponential backoff with jitter, bounded attempts."""
        return Retrying(
            retry=retry_if_exception_type((Exception,)),
            wait=wait_exponential_jitter(
                initial=self.settings.model_retry_initial_wait,
                max=self.settings.model_retry_max_wait,
            ),
            stop=stop_after_attempt(self.settings.model_max_attempts),
            reraise=True,
        )

    def _create_completion(self, prompt: str, expect_format: ExpectFormat) -> Any:
        if self._client is None:
            raise RuntimeError("OpenAI client not initialized")

        logger.debug(f"Calling OpenAI model {self.settings.openai_model}")
        kwargs: dict[str, Any] = {}
        if expect_format == "json":
            kwargs["response_format"] = {"type": "json_object"}

        return self._client.chat.completions.create(
            model=self.settings.openai_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0,  # Deterministic output
            **kwargs,
        )
