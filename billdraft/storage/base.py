"""Read-only storage collaborator for business data.

Persistence lives outside this service. Extraction only needs a user's
profile, clients and products as point-in-time lookup lists, so the storage
layer is expressed as a Protocol that any backend can satisfy.
"""

from typing import Protocol

from billdraft.extraction.schema import BusinessProfile, ClientRecord, ProductRecord


class BusinessDataStore(Protocol):
    """Protocol for business data lookups."""

    def get_business_profile(self, user_id: str) -> BusinessProfile:
        """Get the user's business profile.

        Raises:
            ProfileNotFoundError: If the user has no profile
        """
        ...

    def list_clients(self, user_id: str) -> list[ClientRecord]:
        """List the user's existing clients."""
        ...

    def list_products(self, user_id: str) -> list[ProductRecord]:
        """List the user's existing products and services."""
        ...
