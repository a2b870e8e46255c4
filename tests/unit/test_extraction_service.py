"""Unit tests for the extraction service.

Tests cover:
- Successful extraction with a stubbed model provider
- Fallback on model failure and undecodable replies
- Business context loading and degradation
- Client-only extraction
"""

import json
from datetime import date
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from billdraft.extraction.base import ModelProvider
from billdraft.extraction.fallback import FALLBACK_NOTES
from billdraft.extraction.ollama_provider import OllamaModelProvider
from billdraft.extraction.schema import (
    UNKNOWN_CLIENT_NAME,
    BusinessProfile,
    ClientRecord,
    ProductRecord,
)
from billdraft.extraction.service import ExtractionService
from billdraft.shared.config import Settings
from billdraft.shared.errors import ClientExtractionError, ModelError, ProfileNotFoundError
from billdraft.storage.json_store import JsonBusinessStore

TODAY = date(2024, 3, 1)

SCENARIO_TEXT = (
    "Create an invoice for John Doe for 5 hours of web development at $100/hour, "
    "plus $50 for hosting fees. Include 8% tax."
)


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings()


@pytest.fixture
def store() -> JsonBusinessStore:
    """Store with one profile and no clients or products."""
    return JsonBusinessStore(
        profiles=[BusinessProfile(user_id="user-1", business_name="Pixel Forge")]
    )


@pytest.fixture
def provider() -> MagicMock:
    """Stub model provider."""
    mock = MagicMock(spec=ModelProvider)
    mock.provider_name = "stub"
    return mock


@pytest.fixture
def service(settings: Settings, provider: MagicMock, store: JsonBusinessStore) -> ExtractionService:
    """Create extraction service with stubbed collaborators."""
    return ExtractionService(settings, provider, store)


@pytest.fixture
def scenario_reply() -> dict[str, Any]:
    """Model reply for the web development invoice."""
    return {
        "client": {"name": "John Doe", "confidence": "medium"},
        "items": [
            {
                "description": "Web development",
                "quantity": "5",
                "unitPrice": "100.00",
                "taxRate": "8",
                "taxAmount": "40.00",
                "subtotal": "500.00",
                "total": "540.00",
            },
            {
                "description": "Hosting fees",
                "quantity": "1",
                "unitPrice": "50.00",
                "taxRate": "8",
                "taxAmount": "4.00",
                "subtotal": "50.00",
                "total": "54.00",
            },
        ],
        "document": {"issueDate": "2024-03-01", "dueDate": "2024-03-31"},
        "needsClarification": False,
        "clarificationQuestions": [],
    }


class TestExtract:
    """Test document extraction."""

    def test_extract_success(
        self,
        service: ExtractionService,
        provider: MagicMock,
        scenario_reply: dict[str, Any],
    ) -> None:
        """A clean model reply becomes the result unchanged."""
        provider.complete.return_value = json.dumps(scenario_reply)

        result = service.extract(SCENARIO_TEXT, "user-1", "invoice", today=TODAY)

        assert result.client.name == "John Doe"
        assert result.client.confidence in ("medium", "low")
        assert [item.quantity for item in result.items] == ["5", "1"]
        assert result.items[0].unit_price == "100.00"
        assert result.items[0].subtotal == "500.00"
        assert result.items[0].total == "540.00"
        assert result.items[1].unit_price == "50.00"
        assert result.items[1].total == "54.00"
        assert result.needs_clarification is False
        assert result.raw_text == SCENARIO_TEXT

    def test_prompt_contains_context(
        self,
        service: ExtractionService,
        provider: MagicMock,
        scenario_reply: dict[str, Any],
    ) -> None:
        """The provider receives the assembled prompt in JSON mode."""
        provider.complete.return_value = json.dumps(scenario_reply)

        service.extract(SCENARIO_TEXT, "user-1", "invoice", today=TODAY)

        prompt = provider.complete.call_args.args[0]
        assert SCENARIO_TEXT in prompt
        assert "Pixel Forge" in prompt
        assert provider.complete.call_args.kwargs == {"expect_format": "json"}

    def test_model_failure_returns_fallback(
        self, service: ExtractionService, provider: MagicMock
    ) -> None:
        """Model errors never reach the caller."""
        provider.complete.side_effect = ModelError("timeout")

        result = service.extract(SCENARIO_TEXT, "user-1", "invoice", today=TODAY)

        assert len(result.items) == 1
        assert result.client.name == UNKNOWN_CLIENT_NAME
        assert result.needs_clarification is True
        assert result.raw_text == SCENARIO_TEXT
        assert result.document.notes == FALLBACK_NOTES

    def test_unexpected_exception_returns_fallback(
        self, service: ExtractionService, provider: MagicMock
    ) -> None:
        """Even unexpected provider errors degrade to the fallback."""
        provider.complete.side_effect = RuntimeError("boom")

        result = service.extract("quote me", "user-1", "quote", today=TODAY)

        assert result.document.valid_until == "2024-03-31"
        assert result.raw_text == "quote me"

    def test_undecodable_reply_returns_fallback(
        self, service: ExtractionService, provider: MagicMock
    ) -> None:
        """A reply with no JSON object is treated as a failed call."""
        provider.complete.return_value = "I cannot help with that."

        result = service.extract(SCENARIO_TEXT, "user-1", "invoice", today=TODAY)

        assert result.client.name == UNKNOWN_CLIENT_NAME
        assert result.document.notes == FALLBACK_NOTES

    def test_empty_items_forces_clarification(
        self,
        service: ExtractionService,
        provider: MagicMock,
        scenario_reply: dict[str, Any],
    ) -> None:
        """Repaired replies are flagged for clarification."""
        scenario_reply["items"] = []
        provider.complete.return_value = json.dumps(scenario_reply)

        result = service.extract(SCENARIO_TEXT, "user-1", "invoice", today=TODAY)

        assert result.needs_clarification is True
        assert len(result.items) == 1
        assert result.clarification_questions

    def test_missing_client_name_is_unknown_client(
        self,
        service: ExtractionService,
        provider: MagicMock,
        scenario_reply: dict[str, Any],
    ) -> None:
        """A reply without a client name gets the placeholder name."""
        del scenario_reply["client"]["name"]
        provider.complete.return_value = json.dumps(scenario_reply)

        result = service.extract(SCENARIO_TEXT, "user-1", "invoice", today=TODAY)

        assert result.client.name == UNKNOWN_CLIENT_NAME
        assert result.needs_clarification is True

    def test_raw_text_is_overwritten_with_input(
        self,
        service: ExtractionService,
        provider: MagicMock,
        scenario_reply: dict[str, Any],
    ) -> None:
        """The model's rawText never replaces the user's text."""
        scenario_reply["rawText"] = "something else"
        provider.complete.return_value = json.dumps(scenario_reply)

        result = service.extract(SCENARIO_TEXT, "user-1", "invoice", today=TODAY)

        assert result.raw_text == SCENARIO_TEXT

    def test_unknown_profile_propagates(
        self, service: ExtractionService, provider: MagicMock
    ) -> None:
        """Extraction cannot proceed without a business profile."""
        with pytest.raises(ProfileNotFoundError, match="missing-user"):
            service.extract("text", "missing-user", "invoice", today=TODAY)

        provider.complete.assert_not_called()


class TestLoadContext:
    """Test business context loading."""

    def test_client_and_product_failures_degrade(self, settings: Settings) -> None:
        """Failing list lookups become empty lists."""
        store = MagicMock()
        store.get_business_profile.return_value = BusinessProfile(
            user_id="user-1", business_name="Pixel Forge"
        )
        store.list_clients.side_effect = ConnectionError("db down")
        store.list_products.side_effect = ConnectionError("db down")
        service = ExtractionService(settings, MagicMock(spec=ModelProvider), store)

        context = service.load_context("user-1")

        assert context.clients == []
        assert context.products == []
        assert context.profile.business_name == "Pixel Forge"

    def test_loads_records(self, settings: Settings) -> None:
        """Existing clients and products are included."""
        store = JsonBusinessStore(
            profiles=[BusinessProfile(user_id="user-1", business_name="Pixel Forge")],
            clients={"user-1": [ClientRecord(id="c1", name="Acme")]},
            products={"user-1": [ProductRecord(id="p1", name="Hosting", unit_price="50")]},
        )
        service = ExtractionService(settings, MagicMock(spec=ModelProvider), store)

        context = service.load_context("user-1")

        assert [c.id for c in context.clients] == ["c1"]
        assert [p.id for p in context.products] == ["p1"]


class TestExtractClient:
    """Test client-only extraction."""

    def test_extract_client_success(
        self, service: ExtractionService, provider: MagicMock
    ) -> None:
        """A named client is returned."""
        provider.complete.return_value = json.dumps(
            {"name": "Jane Smith", "email": "jane@acme.test", "confidence": "high"}
        )

        client = service.extract_client("Jane Smith, jane@acme.test", "user-1")

        assert client.name == "Jane Smith"
        assert client.email == "jane@acme.test"
        assert client.confidence == "high"

    def test_missing_name_raises(self, service: ExtractionService, provider: MagicMock) -> None:
        """A reply without a name is a failure."""
        provider.complete.return_value = json.dumps({"email": "jane@acme.test"})

        with pytest.raises(ClientExtractionError, match="missing client name"):
            service.extract_client("jane@acme.test", "user-1")

    def test_model_failure_raises(self, service: ExtractionService, provider: MagicMock) -> None:
        """Model errors surface as ClientExtractionError."""
        provider.complete.side_effect = ModelError("rate limited")

        with pytest.raises(ClientExtractionError, match="rate limited"):
            service.extract_client("Jane", "user-1")

    def test_undecodable_reply_raises(
        self, service: ExtractionService, provider: MagicMock
    ) -> None:
        """Replies without JSON surface as ClientExtractionError."""
        provider.complete.return_value = "not json"

        with pytest.raises(ClientExtractionError):
            service.extract_client("Jane", "user-1")

    def test_non_json_provider_body_raises(self, store: JsonBusinessStore) -> None:
        """A proxy error page from Ollama surfaces as ClientExtractionError."""
        settings = Settings(
            model_provider="ollama", model_retry_initial_wait=0, model_retry_max_wait=0
        )
        provider = OllamaModelProvider(settings)
        service = ExtractionService(settings, provider, store)
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.json.side_effect = json.JSONDecodeError(
            "Expecting value", "<html>proxy error</html>", 0
        )

        with patch.object(provider._client, "post", return_value=mock_response):
            with pytest.raises(ClientExtractionError, match="non-JSON body"):
                service.extract_client("Jane", "user-1")
