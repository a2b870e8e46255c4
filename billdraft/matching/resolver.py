"""Entity resolution against a user's existing clients and products.

Each candidate gets a weighted score built from several signals. Candidates
are ranked, the top few are returned, and the top score alone decides the
aggregate confidence level.

Client signals:
- Name similarity (x3)
- Exact case-insensitive email (+5)
- Exact normalized phone (+4)
- Address similarity (x2)
- Exact tax number (+4)

Product signals:
- Name similarity (x4)
- Description similarity (x3)

A signal only contributes when both sides carry the field.
"""

import logging
from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel

from billdraft.extraction.schema import (
    CamelModel,
    ClientRecord,
    ConfidenceLevel,
    ExtractedClient,
    ProductRecord,
)
from billdraft.matching.similarity import normalize_phone, similarity
from billdraft.shared.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T", ClientRecord, ProductRecord)

# Signal weights
WEIGHT_CLIENT_NAME = 3.0
BONUS_CLIENT_EMAIL = 5.0
BONUS_CLIENT_PHONE = 4.0
WEIGHT_CLIENT_ADDRESS = 2.0
BONUS_CLIENT_TAX_NUMBER = 4.0
WEIGHT_PRODUCT_NAME = 4.0
WEIGHT_PRODUCT_DESCRIPTION = 3.0


class MatchThresholds(BaseModel):
    """Score thresholds for confidence classification (strictly greater than)."""

    client_high: float = 8.0
    client_medium: float = 4.0
    product_high: float = 3.0
    product_medium: float = 1.5


@dataclass
class MatchCandidate(Generic[T]):
    """A candidate record paired with its match score."""

    record: T
    score: float


class ClientMatchResult(CamelModel):
    """Top client matches and the aggregate confidence."""

    matches: list[ClientRecord]
    confidence: ConfidenceLevel
    top_score: float = 0.0


class ProductMatchResult(CamelModel):
    """Top product matches and the aggregate confidence."""

    matches: list[ProductRecord]
    confidence: ConfidenceLevel
    top_score: float = 0.0


def _classify(score: float, high: float, medium: float) -> ConfidenceLevel:
    if score > high:
        return "high"
    if score > medium:
        return "medium"
    return "low"


class EntityResolver:
    """Ranks existing clients and products against extracted data."""

    def __init__(self, thresholds: MatchThresholds | None = None, limit: int = 3) -> None:
        """Initialize the resolver.

        Args:
            thresholds: Confidence thresholds (defaults to the tuned values)
            limit: Maximum number of matches returned
        """
        self.thresholds = thresholds or MatchThresholds()
        self.limit = limit

    @classmethod
    def from_settings(cls, settings: Settings) -> "EntityResolver":
        """Create a resolver using thresholds and limit from settings."""
        thresholds = MatchThresholds(
            client_high=settings.client_high_threshold,
            client_medium=settings.client_medium_threshold,
            product_high=settings.product_high_threshold,
            product_medium=settings.product_medium_threshold,
        )
        return cls(thresholds=thresholds, limit=settings.match_limit)

    @staticmethod
    def score_client(partial: ExtractedClient, candidate: ClientRecord) -> float:
        """Weighted match score of an extracted client against a stored client."""
        score = 0.0

        if partial.name and candidate.name:
            score += similarity(partial.name, candidate.name) * WEIGHT_CLIENT_NAME

        if (
            partial.email
            and candidate.email
            and partial.email.lower() == candidate.email.lower()
        ):
            score += BONUS_CLIENT_EMAIL

        if partial.phone and candidate.phone:
            if normalize_phone(partial.phone) == normalize_phone(candidate.phone):
                score += BONUS_CLIENT_PHONE

        if partial.address and candidate.address:
            score += similarity(partial.address, candidate.address) * WEIGHT_CLIENT_ADDRESS

        if partial.tax_number and candidate.tax_number and partial.tax_number == candidate.tax_number:
            score += BONUS_CLIENT_TAX_NUMBER

        return score

    @staticmethod
    def score_product(description: str, candidate: ProductRecord) -> float:
        """Weighted match score of an item description against a stored product."""
        score = 0.0
        if candidate.name:
            score += similarity(description, candidate.name) * WEIGHT_PRODUCT_NAME
        if candidate.description:
            score += similarity(description, candidate.description) * WEIGHT_PRODUCT_DESCRIPTION
        return score

    def _rank(self, candidates: list[MatchCandidate[T]]) -> list[MatchCandidate[T]]:
        # sorted() is stable, so ties keep the caller's order
        return sorted(candidates, key=lambda c: c.score, reverse=True)[: self.limit]

    def resolve_client(
        self, partial: ExtractedClient, candidates: list[ClientRecord]
    ) -> ClientMatchResult:
        """Find the best matching existing clients.

        Args:
            partial: Client data extracted from text (any subset of fields)
            candidates: Existing clients of the user

        Returns:
            Up to ``limit`` matches, best first, with aggregate confidence
        """
        ranked = self._rank(
            [MatchCandidate(record=c, score=self.score_client(partial, c)) for c in candidates]
        )
        if not ranked:
            return ClientMatchResult(matches=[], confidence="low")

        top_score = ranked[0].score
        confidence = _classify(
            top_score, self.thresholds.client_high, self.thresholds.client_medium
        )
        logger.debug(
            f"Client '{partial.name}' matched {len(ranked)} of {len(candidates)} candidates, "
            f"top score {top_score:.2f} ({confidence})"
        )
        return ClientMatchResult(
            matches=[c.record for c in ranked], confidence=confidence, top_score=top_score
        )

    def resolve_product(
        self, description: str, candidates: list[ProductRecord]
    ) -> ProductMatchResult:
        """Find the best matching existing products for an item description.

        Args:
            description: Line item description extracted from text
            candidates: Existing products of the user

        Returns:
            Up to ``limit`` matches, best first, with aggregate confidence
        """
        ranked = self._rank(
            [MatchCandidate(record=p, score=self.score_product(description, p)) for p in candidates]
        )
        if not ranked:
            return ProductMatchResult(matches=[], confidence="low")

        top_score = ranked[0].score
        confidence = _classify(
            top_score, self.thresholds.product_high, self.thresholds.product_medium
        )
        logger.debug(
            f"Product '{description}' matched {len(ranked)} of {len(candidates)} candidates, "
            f"top score {top_score:.2f} ({confidence})"
        )
        return ProductMatchResult(
            matches=[p.record for p in ranked], confidence=confidence, top_score=top_score
        )
