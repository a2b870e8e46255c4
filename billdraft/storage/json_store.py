"""JSON-backed business data store.

Loads a document of the form::

    {
      "profiles": [{"userId": "...", "businessName": "...", ...}],
      "clients": {"<userId>": [{"id": "...", "name": "...", ...}]},
      "products": {"<userId>": [{"id": "...", "name": "...", "unitPrice": "..."}]}
    }

Records are validated once at load time and served as copies, so callers can
never mutate the store through a returned list.
"""

import json
import logging
from pathlib import Path
from typing import Any

from billdraft.extraction.schema import BusinessProfile, ClientRecord, ProductRecord
from billdraft.shared.errors import ProfileNotFoundError

logger = logging.getLogger(__name__)


class JsonBusinessStore:
    """In-memory, read-only business data store built from JSON data."""

    def __init__(
        self,
        profiles: list[BusinessProfile] | None = None,
        clients: dict[str, list[ClientRecord]] | None = None,
        products: dict[str, list[ProductRecord]] | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            profiles: Business profiles (one per user)
            clients: Clients keyed by user ID
            products: Products keyed by user ID
        """
        self._profiles = {profile.user_id: profile for profile in profiles or []}
        self._clients = clients or {}
        self._products = products or {}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JsonBusinessStore":
        """Build a store from decoded JSON data.

        Raises:
            pydantic.ValidationError: If a record is malformed
        """
        profiles = [BusinessProfile.model_validate(p) for p in data.get("profiles", [])]
        clients = {
            user_id: [ClientRecord.model_validate(c) for c in records]
            for user_id, records in data.get("clients", {}).items()
        }
        products = {
            user_id: [ProductRecord.model_validate(p) for p in records]
            for user_id, records in data.get("products", {}).items()
        }
        return cls(profiles=profiles, clients=clients, products=products)

    @classmethod
    def from_file(cls, path: Path) -> "JsonBusinessStore":
        """Load a store from a JSON file.

        Raises:
            FileNotFoundError: If the file does not exist
            json.JSONDecodeError: If the file is not valid JSON
        """
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        store = cls.from_dict(data)
        logger.info(f"Loaded business data for {len(store._profiles)} profiles from {path}")
        return store

    def get_business_profile(self, user_id: str) -> BusinessProfile:
        """Get the user's business profile.

        Raises:
            ProfileNotFoundError: If the user has no profile
        """
        profile = self._profiles.get(user_id)
        if profile is None:
            raise ProfileNotFoundError(user_id)
        return profile.model_copy()

    def list_clients(self, user_id: str) -> list[ClientRecord]:
        """List the user's clients (empty for unknown users)."""
        return [client.model_copy() for client in self._clients.get(user_id, [])]

    def list_products(self, user_id: str) -> list[ProductRecord]:
        """List the user's products (empty for unknown users)."""
        return [product.model_copy() for product in self._products.get(user_id, [])]
