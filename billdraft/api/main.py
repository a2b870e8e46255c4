"""FastAPI application for free-text invoice and quote drafting.

Production-ready API with:
- Health and readiness checks for Kubernetes
- Document extraction with graceful fallback
- Client-only extraction
- Client and product matching against existing records
- Prometheus metrics for monitoring

Based on FastAPI best practices:
https://fastapi.tiangolo.com/
"""

import logging
import time
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request, Response, status
from pydantic import BaseModel

from billdraft.api import metrics
from billdraft.extraction.factory import check_provider, create_model_provider
from billdraft.extraction.fallback import is_fallback_result
from billdraft.extraction.schema import CamelModel, DocumentType, ExtractedClient, ParseResult
from billdraft.extraction.service import ExtractionService
from billdraft.matching.resolver import ClientMatchResult, EntityResolver, ProductMatchResult
from billdraft.shared.config import get_settings
from billdraft.shared.errors import ClientExtractionError, ProfileNotFoundError
from billdraft.storage.json_store import JsonBusinessStore

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Billdraft",
    description="Turns free-text descriptions into draft invoices and quotes",
    version=settings.service_version,
)

if settings.business_data_path:
    store = JsonBusinessStore.from_file(Path(settings.business_data_path))
else:
    logger.warning("APP_BUSINESS_DATA_PATH not set, starting with an empty business data store")
    store = JsonBusinessStore()

provider = create_model_provider(settings)
extraction_service = ExtractionService(settings, provider, store)
resolver = EntityResolver.from_settings(settings)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware to collect request metrics.

    Tracks:
    - Request count by method, endpoint, and status
    - Request duration by method and endpoint
    """
    # Skip metrics for /metrics endpoint itself
    if request.url.path == "/metrics":
        return await call_next(request)

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    metrics.http_requests_total.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code,
    ).inc()

    metrics.http_request_duration_seconds.labels(
        method=request.method,
        endpoint=request.url.path,
    ).observe(duration)

    return response


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    service: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    model_provider: str
    model_available: bool
    model_detail: str


class ExtractRequest(CamelModel):
    """Document extraction request."""

    text: str
    user_id: str
    document_type: DocumentType


class ClientExtractRequest(CamelModel):
    """Client-only extraction request."""

    text: str
    user_id: str


class PartialClient(CamelModel):
    """Client fields to match on; any subset may be given."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    tax_number: str | None = None


class ClientMatchRequest(CamelModel):
    """Client matching request."""

    user_id: str
    client: PartialClient


class ProductMatchRequest(CamelModel):
    """Product matching request."""

    user_id: str
    description: str


def _profile_not_found(e: ProfileNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _require_text(text: str) -> None:
    if not text.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Text is required")


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check() -> HealthResponse:
    """Liveness check endpoint.

    Returns:
        Health status information
    """
    return HealthResponse(
        status="healthy", version=settings.service_version, service=settings.service_name
    )


@app.get("/ready", response_model=ReadinessResponse, tags=["Health"])
def readiness_check() -> ReadinessResponse:
    """Readiness check endpoint for Kubernetes.

    The service stays ready without a model: extraction then degrades to the
    fallback result.

    Returns:
        Readiness status
    """
    provider_status = check_provider(provider)
    return ReadinessResponse(
        ready=True,
        model_provider=provider_status.name,
        model_available=provider_status.available,
        model_detail=provider_status.detail,
    )


@app.get("/metrics", tags=["Monitoring"])
def get_metrics() -> Response:
    """Prometheus metrics endpoint.

    Returns:
        Prometheus metrics in text format
    """
    metrics_data, content_type = metrics.get_metrics()
    return Response(content=metrics_data, media_type=content_type)


@app.post(
    "/api/v1/extract",
    response_model=ParseResult,
    response_model_by_alias=True,
    tags=["Extraction"],
)
def extract_document(request: ExtractRequest) -> ParseResult:
    """Extract a draft invoice or quote from free text.

    ## Usage Example

    ```bash
    curl -X POST "http://localhost:8000/api/v1/extract" \\
      -H "Content-Type: application/json" \\
      -d '{"text": "Invoice Acme for 10h consulting at 150", "userId": "u1"}'
    ```

    ## Error Handling

    - Returns 400 if the text is blank
    - Returns 404 if the user has no business profile
    - Returns 200 with the fallback result (``needsClarification: true``) if the
      model call fails

    Raises:
        HTTPException: If the text is blank or the profile is unknown
    """
    _require_text(request.text)

    extraction_start = time.time()
    try:
        result = extraction_service.extract(request.text, request.user_id, request.document_type)
    except ProfileNotFoundError as e:
        raise _profile_not_found(e) from e
    metrics.extraction_processing_duration_seconds.observe(time.time() - extraction_start)

    if is_fallback_result(result):
        outcome = "fallback"
    elif result.needs_clarification:
        outcome = "clarification"
    else:
        outcome = "success"
    metrics.extraction_requests_total.labels(
        document_type=request.document_type, status=outcome
    ).inc()

    return result


@app.post(
    "/api/v1/extract/client",
    response_model=ExtractedClient,
    response_model_by_alias=True,
    tags=["Extraction"],
)
def extract_client(request: ClientExtractRequest) -> ExtractedClient:
    """Extract a single client's details from free text.

    Returns 400 for blank text and 502 if the model produced no usable client.

    Raises:
        HTTPException: If the text is blank or client extraction failed
    """
    _require_text(request.text)

    try:
        client = extraction_service.extract_client(request.text, request.user_id)
    except ClientExtractionError as e:
        metrics.client_extraction_requests_total.labels(status="failed").inc()
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    metrics.client_extraction_requests_total.labels(status="success").inc()
    return client


@app.post(
    "/api/v1/match/clients",
    response_model=ClientMatchResult,
    response_model_by_alias=True,
    tags=["Matching"],
)
def match_clients(request: ClientMatchRequest) -> ClientMatchResult:
    """Rank the user's existing clients against partial client data.

    Raises:
        HTTPException: If the user has no business profile
    """
    try:
        context = extraction_service.load_context(request.user_id)
    except ProfileNotFoundError as e:
        raise _profile_not_found(e) from e

    query = request.client
    partial = ExtractedClient(
        name=query.name or "",
        email=query.email,
        phone=query.phone,
        address=query.address,
        tax_number=query.tax_number,
    )
    result = resolver.resolve_client(partial, context.clients)
    metrics.match_requests_total.labels(entity="client", confidence=result.confidence).inc()
    return result


@app.post(
    "/api/v1/match/products",
    response_model=ProductMatchResult,
    response_model_by_alias=True,
    tags=["Matching"],
)
def match_products(request: ProductMatchRequest) -> ProductMatchResult:
    """Rank the user's existing products against a line item description.

    Raises:
        HTTPException: If the user has no business profile
    """
    try:
        context = extraction_service.load_context(request.user_id)
    except ProfileNotFoundError as e:
        raise _profile_not_found(e) from e

    result = resolver.resolve_product(request.description, context.products)
    metrics.match_requests_total.labels(entity="product", confidence=result.confidence).inc()
    return result
