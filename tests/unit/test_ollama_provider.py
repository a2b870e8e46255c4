"""Unit tests for OllamaModelProvider.

Tests the Ollama-based model provider with mocked HTTP calls.
"""

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from billdraft.extraction.ollama_provider import OllamaModelProvider
from billdraft.shared.config import Settings
from billdraft.shared.errors import ModelError, ModelResponseError


@pytest.fixture
def settings() -> Settings:
    """Create test settings with Ollama provider and no retry backoff."""
    return Settings(
        model_provider="ollama",
        ollama_base_url="http://localhost:11434",
        ollama_model="qwen2.5:7b",
        model_max_attempts=3,
        model_retry_initial_wait=0,
        model_retry_max_wait=0,
    )


@pytest.fixture
def provider(settings: Settings) -> OllamaModelProvider:
    """Create Ollama provider instance."""
    return OllamaModelProvider(settings)


def _generate_response(text: str) -> MagicMock:
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.raise_for_status = MagicMock()
    mock_response.json.return_value = {"response": text}
    return mock_response


class TestOllamaModelProviderProperties:
    """Test provider properties and availability."""

    def test_provider_name(self, provider: OllamaModelProvider) -> None:
        """Provider name should be 'ollama'."""
        assert provider.provider_name == "ollama"

    def test_is_available_when_server_running(self, provider: OllamaModelProvider) -> None:
        """Should return True when Ollama server responds with model."""
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.json.return_value = {"models": [{"name": "qwen2.5:7b"}]}

        with patch.object(provider._client, "get", return_value=mock_response):
            assert provider.is_available() is True

    def test_is_available_when_server_down(self, provider: OllamaModelProvider) -> None:
        """Should return False when Ollama server is unreachable."""
        with patch.object(
            provider._client, "get", side_effect=httpx.ConnectError("Connection refused")
        ):
            assert provider.is_available() is False

    def test_is_available_when_model_not_found(self, provider: OllamaModelProvider) -> None:
        """Should return False when configured model is not available."""
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.json.return_value = {"models": [{"name": "llama3.1:8b"}]}

        with patch.object(provider._client, "get", return_value=mock_response):
            assert provider.is_available() is False


class TestOllamaComplete:
    """Test prompt completion."""

    def test_complete_returns_reply(self, provider: OllamaModelProvider) -> None:
        """Should return the generated text."""
        with patch.object(
            provider._client, "post", return_value=_generate_response('{"ok": true}')
        ) as mock_post:
            assert provider.complete("prompt") == '{"ok": true}'

        payload = mock_post.call_args.kwargs["json"]
        assert mock_post.call_args.args[0] == "http://localhost:11434/api/generate"
        assert payload["model"] == "qwen2.5:7b"
        assert payload["prompt"] == "prompt"
        assert payload["stream"] is False
        assert payload["format"] == "json"

    def test_text_mode_omits_json_format(self, provider: OllamaModelProvider) -> None:
        """Plain text completions should not force JSON mode."""
        with patch.object(
            provider._client, "post", return_value=_generate_response("hello")
        ) as mock_post:
            provider.complete("prompt", expect_format="text")

        assert "format" not in mock_post.call_args.kwargs["json"]

    def test_retries_transient_errors(self, provider: OllamaModelProvider) -> None:
        """Transport errors are retried up to the configured attempts."""
        with patch.object(
            provider._client,
            "post",
            side_effect=[httpx.ConnectError("refused"), _generate_response('{"a": 1}')],
        ) as mock_post:
            assert provider.complete("prompt") == '{"a": 1}'

        assert mock_post.call_count == 2

    def test_http_error_raises_model_error(self, provider: OllamaModelProvider) -> None:
        """Should raise ModelError after all attempts fail."""
        with patch.object(
            provider._client,
            "post",
            side_effect=httpx.HTTPStatusError(
                "Server error", request=MagicMock(), response=MagicMock()
            ),
        ) as mock_post:
            with pytest.raises(ModelError, match="Ollama call failed"):
                provider.complete("prompt")

        assert mock_post.call_count == 3

    def test_empty_reply_raises_model_error(self, provider: OllamaModelProvider) -> None:
        """An empty reply is a failed call."""
        with patch.object(provider._client, "post", return_value=_generate_response("  ")):
            with pytest.raises(ModelError, match="Empty reply"):
                provider.complete("prompt")

    def test_non_json_body_raises_model_error(self, provider: OllamaModelProvider) -> None:
        """A 200 response that is not JSON (e.g. a proxy error page) is a failed call."""
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.raise_for_status = MagicMock()
        mock_response.json.side_effect = json.JSONDecodeError(
            "Expecting value", "<html>proxy error</html>", 0
        )

        with patch.object(provider._client, "post", return_value=mock_response) as mock_post:
            with pytest.raises(ModelResponseError, match="non-JSON body"):
                provider.complete("prompt")

        assert mock_post.call_count == 1

    def test_non_object_body_raises_model_error(self, provider: OllamaModelProvider) -> None:
        """A JSON body that is not an object is a failed call."""
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.raise_for_status = MagicMock()
        mock_response.json.return_value = ["unexpected"]

        with patch.object(provider._client, "post", return_value=mock_response):
            with pytest.raises(ModelError, match="unexpected body"):
                provider.complete("prompt")
