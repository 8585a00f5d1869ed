import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response
from opentelemetry import trace

from pdf_relay.relay.models import RelayError, RelayErrorKind, RelayRequest
from pdf_relay.relay.service import RelayService
from pdf_relay.streaming import RelayStreamingResponse
from pdf_relay.utils import redact_url
from pdf_relay.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)
from pdf_relay.utils.traced_requests import record_outcome, traced_relay
from pdf_relay.vars import RELAY_BASE_PATH

router = APIRouter()

logger = logging.getLogger("uvicorn.error")

tracer = trace.get_tracer(__name__)

if RELAY_BASE_PATH:
    router.prefix = RELAY_BASE_PATH
    logger.info(f"Using RELAY_BASE_PATH: {RELAY_BASE_PATH}")
else:
    logger.info("No RELAY_BASE_PATH set, using root path")

ERROR_STATUS_CODES = {
    RelayErrorKind.INVALID_URL: 400,
    RelayErrorKind.UNSUPPORTED_SCHEME: 400,
    RelayErrorKind.BLOCKED_HOST: 403,
    RelayErrorKind.PAYLOAD_TOO_LARGE: 413,
    RelayErrorKind.UPSTREAM_FAILURE: 502,
    RelayErrorKind.TIMEOUT: 500,
    RelayErrorKind.SERVER_ERROR: 500,
    # Only reachable if the client left before the response started.
    RelayErrorKind.CLIENT_DISCONNECTED: 499,
}


def error_response(error: RelayError) -> JSONResponse:
    """Render a pre-stream RelayError as the JSON error body callers expect."""
    status_code = ERROR_STATUS_CODES.get(error.kind, 500)
    if status_code == 500:
        content = {"error": "Server error", "detail": error.detail}
    else:
        content = {"error": error.detail}
    content["kind"] = error.kind.value
    return JSONResponse(status_code=status_code, content=content)


def get_relay_service(request: Request) -> RelayService:
    return request.app.state.relay_service


@router.get("/api/health")
async def health():
    return {"ok": True}


@router.get("/api/meta")
async def relay_meta(
    url: Optional[str] = Query(None, description="Absolute http(s) URL to describe"),
    service: RelayService = Depends(get_relay_service),
) -> Response:
    """Report filename, content type and size of a remote file without downloading it."""
    with traced_relay(
        tracer,
        operation="relay.meta",
        url=url,
        start_message=f"[Meta] Probing {redact_url(url)}",
    ) as span:
        try:
            outcome = await service.describe(url)
        except Exception as e:
            log_exception_with_details(logger, "[Meta]", e)
            outcome = RelayError(RelayErrorKind.SERVER_ERROR, format_exception_message(e))

        record_outcome(span, outcome)
        if isinstance(outcome, RelayError):
            logger.info(f"[Meta] Refused {redact_url(url)}: {outcome.detail}")
            return error_response(outcome)
        return JSONResponse(content=outcome.to_json())


@router.get("/api/pdf")
async def relay_pdf(
    url: Optional[str] = Query(None, description="Absolute http(s) URL to relay"),
    filename: Optional[str] = Query(None, description="Filename to present instead of the upstream one"),
    service: RelayService = Depends(get_relay_service),
) -> Response:
    """
    Stream a remote file back to the caller as an attachment.

    Errors found before the first byte is sent come back as JSON. A byte
    ceiling breach after that point truncates the body instead.
    """
    relay_request = RelayRequest(target_url=url or "", filename_override=filename)
    with traced_relay(
        tracer,
        operation="relay.pdf",
        url=url,
        start_message=f"[Download] Fetching {redact_url(url)}",
        extra_attrs={"relay.filename_override": bool(filename)},
    ) as span:
        try:
            prepared = await service.prepare_download(relay_request)
        except Exception as e:
            log_exception_with_details(logger, "[Download]", e)
            prepared = RelayError(RelayErrorKind.SERVER_ERROR, format_exception_message(e))

        if isinstance(prepared, RelayError):
            record_outcome(span, prepared)
            logger.info(f"[Download] Refused {redact_url(url)}: {prepared.detail}")
            return error_response(prepared)

        span.set_attribute("relay.filename", prepared.filename)
        span.set_attribute("relay.content_type", prepared.content_type)
        return RelayStreamingResponse(service, prepared)
