"""Data models for free-text invoice and quote extraction.

Python attributes are snake_case. The wire format (model replies and HTTP
payloads) uses camelCase aliases, matching the JSON shape the prompts ask for.
Money, quantities and rates are decimal strings to avoid floating point error.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DocumentType = Literal["invoice", "quote"]
ConfidenceLevel = Literal["high", "medium", "low"]

UNKNOWN_CLIENT_NAME = "Unknown Client"


class CamelModel(BaseModel):
    """Base model accepting both snake_case names and camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RawInput(CamelModel):
    """Free-text request as submitted by the user."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    text: str
    document_type: DocumentType
    user_id: str


# Stored records (read-only snapshots supplied by the storage collaborator)


class BusinessProfile(CamelModel):
    """Business profile of the user issuing the document."""

    user_id: str
    business_name: str
    business_email: str | None = None
    business_phone: str | None = None
    business_address: str | None = None
    vat_number: str | None = None
    default_tax_rate: str = Field("0", description="Default tax rate in percent")


class ClientRecord(CamelModel):
    """Existing client of the business."""

    id: str
    name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    tax_number: str | None = None
    notes: str | None = None


class ProductRecord(CamelModel):
    """Existing product or service of the business."""

    id: str
    name: str
    description: str | None = None
    unit_price: str
    tax_rate: str = "0"
    is_recurring: bool = False
    recurrence_unit: str | None = Field(None, description="e.g. month, year")


class BusinessContext(CamelModel):
    """Point-in-time snapshot of a user's business data for one extraction call."""

    profile: BusinessProfile
    clients: list[ClientRecord] = Field(default_factory=list)
    products: list[ProductRecord] = Field(default_factory=list)


# Extraction output


class ExtractedClient(CamelModel):
    """Client as extracted from free text.

    ``id`` is only set when the model matched an existing client.
    """

    id: str | None = None
    name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    tax_number: str | None = None
    confidence: ConfidenceLevel = "low"


class ExtractedLineItem(CamelModel):
    """Line item as extracted from free text."""

    product_id: str | None = None
    description: str
    quantity: str
    unit_price: str
    tax_rate: str | None = None
    tax_amount: str | None = None
    subtotal: str
    total: str


class ExtractedDocument(CamelModel):
    """Document level fields. Invoices carry ``due_date``, quotes ``valid_until``."""

    issue_date: str
    due_date: str | None = None
    valid_until: str | None = None
    notes: str | None = None
    discount: str | None = None


class ParseResult(CamelModel):
    """Structured result of one extraction attempt."""

    client: ExtractedClient
    items: list[ExtractedLineItem] = Field(min_length=1)
    document: ExtractedDocument
    needs_clarification: bool
    clarification_questions: list[str] = Field(default_factory=list)
    raw_text: str = ""
