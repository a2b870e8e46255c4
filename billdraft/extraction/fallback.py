"""Minimal well-formed result used when the model call fails entirely."""

from datetime import date, timedelta

from billdraft.extraction.schema import (
    UNKNOWN_CLIENT_NAME,
    DocumentType,
    ExtractedClient,
    ExtractedDocument,
    ExtractedLineItem,
    ParseResult,
)

DEFAULT_TERM_DAYS = 30

GENERIC_CLARIFICATION_QUESTIONS = (
    "Could you provide more details about the client?",
    "What specific products or services should be included?",
    "What are the quantities and prices for each item?",
)

FALLBACK_NOTES = "Generated from incomplete information. Please review and edit."


def placeholder_item() -> ExtractedLineItem:
    """Zero-priced line item standing in for items the model did not provide."""
    return ExtractedLineItem(
        description="Services as described",
        quantity="1",
        unit_price="0",
        subtotal="0",
        total="0",
    )


def create_fallback_result(
    text: str,
    document_type: DocumentType,
    today: date | None = None,
    term_days: int = DEFAULT_TERM_DAYS,
) -> ParseResult:
    """Build a result that preserves the user's text and forces clarification.

    Args:
        text: Original user input, kept verbatim as ``raw_text``
        document_type: 'invoice' sets ``due_date``, 'quote' sets ``valid_until``
        today: Issue date (defaults to the current date)
        term_days: Days between issue date and due/valid-until date

    Returns:
        ParseResult with a placeholder client and item
    """
    issue_date = today or date.today()
    end_date = (issue_date + timedelta(days=term_days)).isoformat()

    document = ExtractedDocument(issue_date=issue_date.isoformat(), notes=FALLBACK_NOTES)
    if document_type == "invoice":
        document.due_date = end_date
    else:
        document.valid_until = end_date

    return ParseResult(
        client=ExtractedClient(name=UNKNOWN_CLIENT_NAME, confidence="low"),
        items=[placeholder_item()],
        document=document,
        needs_clarification=True,
        clarification_questions=list(GENERIC_CLARIFICATION_QUESTIONS),
        raw_text=text,
    )


def is_fallback_result(result: ParseResult) -> bool:
    """Check whether a result was produced by ``create_fallback_result``."""
    return (
        result.document.notes == FALLBACK_NOTES
        and result.client.name == UNKNOWN_CLIENT_NAME
        and result.items == [placeholder_item()]
    )
