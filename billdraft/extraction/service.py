"""Extraction service: free text in, structured invoice or quote out.

Pipeline per request:
1. Load the user's business context from the storage collaborator
2. Assemble the prompt
3. Call the injected model provider for a JSON reply
4. Decode, validate and repair the reply
5. Substitute the fallback result if the model call or decoding failed

Model failures never reach the caller. A missing business profile does:
extraction cannot proceed for a user who does not exist.
"""

import logging
from datetime import date

from billdraft.extraction.base import ModelProvider, decode_model_reply
from billdraft.extraction.fallback import create_fallback_result
from billdraft.extraction.prompts import PromptContext, build_client_prompt, build_document_prompt
from billdraft.extraction.schema import (
    UNKNOWN_CLIENT_NAME,
    BusinessContext,
    ClientRecord,
    DocumentType,
    ExtractedClient,
    ParseResult,
    ProductRecord,
)
from billdraft.extraction.validator import repair_client, validate_response
from billdraft.shared.config import Settings
from billdraft.shared.errors import ClientExtractionError, ModelError
from billdraft.storage.base import BusinessDataStore

logger = logging.getLogger(__name__)


class ExtractionService:
    """Turns free text into a validated ParseResult.

    The model provider and the data store are injected so tests can
    substitute stubs and the process creates the real ones once at start-up.
    """

    def __init__(
        self,
        settings: Settings,
        provider: ModelProvider,
        store: BusinessDataStore,
    ) -> None:
        """Initialize extraction service.

        Args:
            settings: Application settings
            provider: Generative model provider
            store: Read-only business data store
        """
        self.settings = settings
        self.provider = provider
        self.store = store

    def load_context(self, user_id: str) -> BusinessContext:
        """Fetch a fresh snapshot of the user's business data.

        Client and product lookups degrade to empty lists on failure.

        Raises:
            ProfileNotFoundError: If the user has no business profile
        """
        profile = self.store.get_business_profile(user_id)

        clients: list[ClientRecord] = []
        try:
            clients = self.store.list_clients(user_id)
        except Exception as e:
            logger.warning(f"Failed to load clients for user {user_id}: {e}")

        products: list[ProductRecord] = []
        try:
            products = self.store.list_products(user_id)
        except Exception as e:
            logger.warning(f"Failed to load products for user {user_id}: {e}")

        return BusinessContext(profile=profile, clients=clients, products=products)

    def extract(
        self,
        text: str,
        user_id: str,
        document_type: DocumentType,
        today: date | None = None,
    ) -> ParseResult:
        """Extract a structured document from free text.

        Args:
            text: User's description of the transaction
            user_id: Owner of the business data used as context
            document_type: 'invoice' or 'quote'
            today: Reference date for defaults (defaults to the current date)

        Returns:
            ParseResult; the fallback result if the model call failed

        Raises:
            ProfileNotFoundError: If the user has no business profile
        """
        today = today or date.today()
        term_days = self.settings.default_payment_term_days
        context = self.load_context(user_id)

        prompt = build_document_prompt(
            PromptContext(
                text=text,
                document_type=document_type,
                business=context,
                today=today,
                term_days=term_days,
            )
        )

        try:
            reply = self.provider.complete(prompt, expect_format="json")
            data = decode_model_reply(reply)
            validation = validate_response(data, document_type, today=today, term_days=term_days)
        except Exception as e:
            logger.warning(
                f"Extraction via {self.provider.provider_name} failed, using fallback result: {e}"
            )
            result = create_fallback_result(text, document_type, today=today, term_days=term_days)
        else:
            if not validation.is_valid:
                logger.info(f"Repaired model reply: {'; '.join(validation.errors)}")
            result = validation.result
            if not result.client.name:
                result.client.name = UNKNOWN_CLIENT_NAME

        result.raw_text = text
        return result

    def extract_client(self, text: str, user_id: str) -> ExtractedClient:
        """Extract a single client's details from free text.

        Args:
            text: Free text describing the client
            user_id: Owner of the existing clients to match against

        Returns:
            Extracted client, with ``id`` set if it matched an existing client

        Raises:
            ClientExtractionError: If the model fails or returns no client name
        """
        clients: list[ClientRecord] = []
        try:
            clients = self.store.list_clients(user_id)
        except Exception as e:
            logger.warning(f"Failed to load clients for user {user_id}: {e}")

        prompt = build_client_prompt(text, clients)
        try:
            data = decode_model_reply(self.provider.complete(prompt, expect_format="json"))
        except ModelError as e:
            raise ClientExtractionError(f"Client extraction failed: {str(e)}") from e

        client, errors = repair_client(data)
        if not client.name:
            raise ClientExtractionError("Invalid response: missing client name")
        if errors:
            logger.info(f"Repaired client reply: {'; '.join(errors)}")

        logger.info(f"Extracted client '{client.name}' with {client.confidence} confidence")
        return client
