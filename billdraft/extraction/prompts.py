"""Prompt assembly for document and client extraction.

Every builder is a pure function: identical inputs always produce the identical
prompt string. The current date is an explicit input rather than read from the
clock, so prompts are reproducible in tests and logs.

The user's text is always fenced in triple quotes so it is read as data and
not as instructions.
"""

import json
from datetime import date
from typing import Any

from pydantic import BaseModel

from billdraft.extraction.schema import (
    BusinessContext,
    BusinessProfile,
    ClientRecord,
    DocumentType,
    ProductRecord,
)

NO_CLIENTS = "The business has no existing clients yet."
NO_PRODUCTS = "The business has no existing products/services yet."


class PromptContext(BaseModel):
    """Everything a document prompt is built from."""

    text: str
    document_type: DocumentType
    business: BusinessContext
    today: date
    term_days: int = 30


def _fence(text: str) -> str:
    # Triple quotes in user text would close the fence early
    safe_text = text.replace('"""', "'''")
    return f'"""\n{safe_text}\n"""'


def _or_na(value: str | None) -> str:
    return value if value else "N/A"


def _describe_profile(profile: BusinessProfile) -> str:
    lines = [f"Business Name: {profile.business_name}"]
    if profile.business_email:
        lines.append(f"Business Email: {profile.business_email}")
    if profile.business_phone:
        lines.append(f"Business Phone: {profile.business_phone}")
    if profile.business_address:
        lines.append(f"Business Address: {profile.business_address}")
    if profile.vat_number:
        lines.append(f"VAT/Tax Number: {profile.vat_number}")
    lines.append(f"Default Tax Rate: {profile.default_tax_rate or '0'}%")
    return "\n".join(lines)


def format_clients(clients: list[ClientRecord]) -> str:
    """Enumerate candidate clients, or say there are none."""
    if not clients:
        return NO_CLIENTS
    lines = ["The business has the following existing clients that you should try to match:"]
    for client in clients:
        lines.append(
            f"- ID: {client.id}, Name: {client.name}, Email: {_or_na(client.email)}, "
            f"Phone: {_or_na(client.phone)}, Address: {_or_na(client.address)}, "
            f"Tax Number: {_or_na(client.tax_number)}"
        )
    return "\n".join(lines)


def _recurrence(product: ProductRecord) -> str:
    if not product.is_recurring:
        return "one-off"
    return f"recurring every {product.recurrence_unit}" if product.recurrence_unit else "recurring"


def format_products(products: list[ProductRecord]) -> str:
    """Enumerate candidate products/services, or say there are none."""
    if not products:
        return NO_PRODUCTS
    lines = [
        "The business has the following existing products/services that you should try to match:"
    ]
    for product in products:
        lines.append(
            f"- ID: {product.id}, Name: {product.name}, "
            f"Description: {_or_na(product.description)}, Unit Price: {product.unit_price}, "
            f"Tax Rate: {product.tax_rate}%, Recurrence: {_recurrence(product)}"
        )
    return "\n".join(lines)


def _end_date_field(document_type: DocumentType) -> str:
    return "dueDate" if document_type == "invoice" else "validUntil"


def _output_schema(document_type: DocumentType) -> str:
    schema = {
        "client": {
            "id": "string or null - only if matched to an existing client",
            "name": "string",
            "email": "string or null",
            "phone": "string or null",
            "address": "string or null",
            "taxNumber": "string or null",
            "confidence": "high|medium|low",
        },
        "items": [
            {
                "productId": "string or null - only if matched to an existing product",
                "description": "string",
                "quantity": "string (numeric value)",
                "unitPrice": "string (numeric value)",
                "taxRate": "string (percentage, e.g. '10' for 10%)",
                "taxAmount": "string (numeric value)",
                "subtotal": "string (quantity * unitPrice)",
                "total": "string (subtotal + taxAmount)",
            }
        ],
        "document": {
            "issueDate": "YYYY-MM-DD",
            _end_date_field(document_type): "YYYY-MM-DD",
            "notes": "string or null",
            "discount": "string (numeric value) or null",
        },
        "needsClarification": "true|false",
        "clarificationQuestions": ["string"],
    }
    return json.dumps(schema, indent=2)


_INVOICE_EXAMPLE_INPUT = (
    "Invoice Acme Ltd for 10 hours of consulting at $120/hour and a $300 setup fee. "
    "Add 10% tax, payment due in 14 days."
)

_INVOICE_EXAMPLE_OUTPUT: dict[str, Any] = {
    "client": {"name": "Acme Ltd", "confidence": "medium"},
    "items": [
        {
            "description": "Consulting",
            "quantity": "10",
            "unitPrice": "120.00",
            "taxRate": "10",
            "taxAmount": "120.00",
            "subtotal": "1200.00",
            "total": "1320.00",
        },
        {
            "description": "Setup fee",
            "quantity": "1",
            "unitPrice": "300.00",
            "taxRate": "10",
            "taxAmount": "30.00",
            "subtotal": "300.00",
            "total": "330.00",
        },
    ],
    "document": {"issueDate": "2023-06-15", "dueDate": "2023-06-29", "notes": None},
    "needsClarification": False,
    "clarificationQuestions": [],
}

_QUOTE_EXAMPLE_INPUT = (
    "Create a quote for ABC Corp for a website redesign project: 20 hours of design work "
    "at $100/hour and 30 hours of development at $100/hour. The quote should be valid "
    "for 60 days."
)

_QUOTE_EXAMPLE_OUTPUT: dict[str, Any] = {
    "client": {"name": "ABC Corp", "confidence": "medium"},
    "items": [
        {
            "description": "Website Design",
            "quantity": "20",
            "unitPrice": "100.00",
            "taxRate": "0",
            "taxAmount": "0.00",
            "subtotal": "2000.00",
            "total": "2000.00",
        },
        {
            "description": "Website Development",
            "quantity": "30",
            "unitPrice": "100.00",
            "taxRate": "0",
            "taxAmount": "0.00",
            "subtotal": "3000.00",
            "total": "3000.00",
        },
    ],
    "document": {
        "issueDate": "2023-06-15",
        "validUntil": "2023-08-14",
        "notes": "Website redesign project quote",
    },
    "needsClarification": False,
    "clarificationQuestions": [],
}


def _rules(context: PromptContext) -> str:
    profile = context.business.profile
    end_field = _end_date_field(context.document_type)
    end_label = "due date" if context.document_type == "invoice" else "validity date"
    rules = [
        "Try to match the client by name, email, phone, address or tax number to the "
        "existing clients. Include the client ID only when the match is confident.",
        "Try to match products/services to the existing ones. Include the product ID only "
        "when the match is confident.",
        "Calculate subtotal as quantity x unitPrice.",
        "Calculate taxAmount as subtotal x taxRate / 100.",
        "Calculate total as subtotal + taxAmount.",
        f"Use the default tax rate of {profile.default_tax_rate or '0'}% for items where "
        "tax is not specified.",
        "Provide a confidence level (high, medium, low) for the client.",
        "If critical information is missing or ambiguous, set needsClarification to true "
        "and include specific clarificationQuestions.",
        "Format all monetary values as strings with 2 decimal places and no currency "
        'symbol (e.g. "123.45").',
        "Format dates as YYYY-MM-DD.",
        f"If no issue date is mentioned, use today's date ({context.today.isoformat()}).",
        f"If no {end_label} is mentioned, set {end_field} to {context.term_days} days after "
        "the issue date.",
    ]
    return "\n".join(f"{number}. {rule}" for number, rule in enumerate(rules, start=1))


def _build_document_prompt(
    context: PromptContext, article: str, label: str, other_label: str
) -> str:
    profile = context.business.profile
    if context.document_type == "invoice":
        example_input, example_output = _INVOICE_EXAMPLE_INPUT, _INVOICE_EXAMPLE_OUTPUT
    else:
        example_input, example_output = _QUOTE_EXAMPLE_INPUT, _QUOTE_EXAMPLE_OUTPUT

    return f"""You are an expert {label} parser for a business called "{profile.business_name}". \
Your task is to extract structured {label} data from unstructured text.
The user is creating {article} {label.upper()} (not {other_label}).

## BUSINESS PROFILE
{_describe_profile(profile)}
Today's date: {context.today.isoformat()}

## USER INPUT
{_fence(context.text)}

## EXISTING CLIENTS
{format_clients(context.business.clients)}

## EXISTING PRODUCTS/SERVICES
{format_products(context.business.products)}

## OUTPUT FORMAT
Respond with a single JSON object only, following this exact structure:
{_output_schema(context.document_type)}

## RULES
{_rules(context)}

## EXAMPLE INPUT
{_fence(example_input)}

## EXAMPLE OUTPUT
{json.dumps(example_output, indent=2)}
"""


def build_invoice_prompt(context: PromptContext) -> str:
    """Build the invoice parsing prompt."""
    context = context.model_copy(update={"document_type": "invoice"})
    return _build_document_prompt(context, "an", "invoice", "a quote")


def build_quote_prompt(context: PromptContext) -> str:
    """Build the quote parsing prompt."""
    context = context.model_copy(update={"document_type": "quote"})
    return _build_document_prompt(context, "a", "quote", "an invoice")


def build_document_prompt(context: PromptContext) -> str:
    """Build the prompt for the context's document type."""
    if context.document_type == "invoice":
        return build_invoice_prompt(context)
    return build_quote_prompt(context)


def build_client_prompt(text: str, clients: list[ClientRecord]) -> str:
    """Build the reduced prompt for client-only extraction.

    Args:
        text: Free text describing the client
        clients: Existing clients to match against

    Returns:
        Prompt asking for a single ExtractedClient-shaped JSON object
    """
    schema = {
        "id": "string or null - only if matched to an existing client",
        "name": "string",
        "email": "string or null",
        "phone": "string or null",
        "address": "string or null",
        "taxNumber": "string or null",
        "confidence": "high|medium|low",
    }
    return f"""You are an expert client information extractor for a business invoicing system. \
Your task is to extract structured information about a single client from unstructured text.

## USER INPUT
{_fence(text)}

## EXISTING CLIENTS
{format_clients(clients)}

## OUTPUT FORMAT
Respond with a single JSON object only, following this exact structure:
{json.dumps(schema, indent=2)}

## RULES
1. Extract the client name (company or individual), email, phone, physical address and \
tax/VAT number.
2. Compare the extracted information with the existing clients. Include the client ID only \
when the match is confident.
3. Assess the match confidence as high, medium or low.
4. Use null for any field that is not present. Make reasonable inferences when information is \
implied but not explicit.
"""
