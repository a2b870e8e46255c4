"""Validation and repair of decoded model replies.

The validator is a parse-then-repair pass: it never mutates the decoded reply.
It works on a deep copy, records every structural problem as an advisory
error string, fills in safe defaults, and returns a fully populated
ParseResult together with the error list. Errors never block the result;
they only force ``needs_clarification``.
"""

import copy
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

from pydantic import BaseModel
from pydantic.alias_generators import to_snake

from billdraft.extraction.fallback import (
    DEFAULT_TERM_DAYS,
    GENERIC_CLARIFICATION_QUESTIONS,
    placeholder_item,
)
from billdraft.extraction.schema import (
    ConfidenceLevel,
    DocumentType,
    ExtractedClient,
    ExtractedDocument,
    ExtractedLineItem,
    ParseResult,
)

_CONFIDENCE_LEVELS: tuple[ConfidenceLevel, ...] = ("high", "medium", "low")


class ValidationResult(BaseModel):
    """Outcome of validating a model reply.

    Attributes:
        is_valid: True when no defaults had to be injected
        errors: Advisory descriptions of every repaired problem
        result: Repaired, fully populated parse result
    """

    is_valid: bool
    errors: list[str]
    result: ParseResult


def _get(mapping: dict[str, Any], key: str) -> Any:
    """Look up a camelCase key, accepting the snake_case spelling too."""
    if key in mapping:
        return mapping[key]
    return mapping.get(to_snake(key))


def _as_text(value: Any) -> str | None:
    """Coerce a JSON scalar to text. None, blank strings and containers count as missing."""
    if value is None or isinstance(value, dict | list):
        return None
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float):
        return format(Decimal(repr(value)), "f")
    text = str(value).strip()
    return text or None


def _parse_iso_date(value: str) -> date | None:
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def _repair_client(data: dict[str, Any], errors: list[str]) -> ExtractedClient:
    client = data.get("client")
    if client is None:
        errors.append("Missing client information")
        client = {}
    elif not isinstance(client, dict):
        errors.append("Client information is not an object")
        client = {}

    # The name is never synthesized here; the caller decides how to present it
    name = _as_text(_get(client, "name"))
    if name is None:
        errors.append("Missing client name")

    confidence = _as_text(_get(client, "confidence"))
    if confidence is not None:
        confidence = confidence.lower()
    if confidence not in _CONFIDENCE_LEVELS:
        confidence = "low"

    return ExtractedClient(
        id=_as_text(_get(client, "id")),
        name=name or "",
        email=_as_text(_get(client, "email")),
        phone=_as_text(_get(client, "phone")),
        address=_as_text(_get(client, "address")),
        tax_number=_as_text(_get(client, "taxNumber")),
        confidence=confidence,
    )


def repair_client(raw: Any) -> tuple[ExtractedClient, list[str]]:
    """Repair a standalone client object, as returned by client-only extraction.

    Returns:
        Tuple of (repaired client, advisory errors)
    """
    errors: list[str] = []
    client = _repair_client({"client": raw}, errors)
    return client, errors


def _repair_items(data: dict[str, Any], errors: list[str]) -> list[ExtractedLineItem]:
    raw_items = data.get("items")
    if not isinstance(raw_items, list):
        errors.append("Missing or invalid items array")
        raw_items = []
    elif not raw_items:
        errors.append("No items found in the parsed data")

    items: list[ExtractedLineItem] = []
    for position, raw_item in enumerate(raw_items, start=1):
        if not isinstance(raw_item, dict):
            errors.append(f"Item {position} is not an object")
            continue

        description = _as_text(_get(raw_item, "description"))
        if description is None:
            errors.append(f"Missing description for item {position}")

        quantity = _as_text(_get(raw_item, "quantity"))
        if quantity is None:
            errors.append(f"Missing quantity for item {position}")
            quantity = "1"

        unit_price = _as_text(_get(raw_item, "unitPrice"))
        if unit_price is None:
            errors.append(f"Missing unit price for item {position}")
            unit_price = "0"

        # Conservative defaults, not recomputed from quantity
        subtotal = _as_text(_get(raw_item, "subtotal")) or unit_price
        total = _as_text(_get(raw_item, "total")) or subtotal

        items.append(
            ExtractedLineItem(
                product_id=_as_text(_get(raw_item, "productId")),
                description=description or "",
                quantity=quantity,
                unit_price=unit_price,
                tax_rate=_as_text(_get(raw_item, "taxRate")),
                tax_amount=_as_text(_get(raw_item, "taxAmount")),
                subtotal=subtotal,
                total=total,
            )
        )

    if not items:
        items.append(placeholder_item())
    return items


def _repair_document(
    data: dict[str, Any],
    document_type: DocumentType,
    errors: list[str],
    today: date,
    term_days: int,
) -> ExtractedDocument:
    document = data.get("document")
    if not isinstance(document, dict):
        errors.append("Missing or invalid document information")
        document = {}

    issue_text = _as_text(_get(document, "issueDate"))
    if issue_text is None:
        errors.append("Missing issue date")
        issue_text = today.isoformat()
    issue_date = _parse_iso_date(issue_text)
    if issue_date is None:
        errors.append(f"Invalid issue date: {issue_text}")
        issue_date = today
        issue_text = today.isoformat()
    default_end = (issue_date + timedelta(days=term_days)).isoformat()

    due_date = _as_text(_get(document, "dueDate"))
    valid_until = _as_text(_get(document, "validUntil"))
    if document_type == "invoice" and due_date is None:
        errors.append("Missing due date for invoice")
        due_date = default_end
    elif document_type == "quote" and valid_until is None:
        errors.append("Missing valid until date for quote")
        valid_until = default_end

    return ExtractedDocument(
        issue_date=issue_text,
        due_date=due_date,
        valid_until=valid_until,
        notes=_as_text(_get(document, "notes")),
        discount=_as_text(_get(document, "discount")),
    )


def validate_response(
    raw: Any,
    document_type: DocumentType,
    today: date | None = None,
    term_days: int = DEFAULT_TERM_DAYS,
) -> ValidationResult:
    """Validate a decoded model reply and repair it into a ParseResult.

    Args:
        raw: Decoded JSON reply (left untouched)
        document_type: 'invoice' or 'quote', selects the end-date field
        today: Date used for a missing issue date (defaults to the current date)
        term_days: Days from issue date for a missing due/valid-until date

    Returns:
        ValidationResult with errors and the repaired result
    """
    errors: list[str] = []
    if isinstance(raw, dict):
        data: dict[str, Any] = copy.deepcopy(raw)
    else:
        errors.append("Response is not a valid object")
        data = {}

    client = _repair_client(data, errors)
    items = _repair_items(data, errors)
    document = _repair_document(data, document_type, errors, today or date.today(), term_days)

    flag = _get(data, "needsClarification")
    if isinstance(flag, bool):
        needs_clarification = flag
    else:
        if flag is not None:
            errors.append("Invalid needsClarification flag")
        needs_clarification = bool(errors)

    # Injected defaults always need a human look
    if errors:
        needs_clarification = True

    raw_questions = _get(data, "clarificationQuestions")
    questions: list[str] = []
    if isinstance(raw_questions, list):
        questions = [q.strip() for q in raw_questions if isinstance(q, str) and q.strip()]
    if needs_clarification and not questions:
        questions = list(GENERIC_CLARIFICATION_QUESTIONS)
        errors.append("Needs clarification but missing clarification questions")

    raw_text = _get(data, "rawText")

    result = ParseResult(
        client=client,
        items=items,
        document=document,
        needs_clarification=needs_clarification,
        clarification_questions=questions,
        raw_text=raw_text if isinstance(raw_text, str) else "",
    )
    return ValidationResult(is_valid=not errors, errors=errors, result=result)
