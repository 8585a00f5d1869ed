import logging
from typing import Optional, Dict
from contextlib import contextmanager

from opentelemetry.trace import Span, Tracer

from pdf_relay.relay.models import Metadata, RelayError, RelayOutcome, StreamedBytes
from pdf_relay.utils import redact_url, url_host

logger = logging.getLogger("uvicorn.error")


@contextmanager
def traced_relay(
    tracer: Tracer,
    operation: str,
    url: Optional[str],
    start_message: str,
    extra_attrs: Optional[Dict] = None,
):
    """Context manager to create a span, set common relay attributes, and log a start message."""
    with tracer.start_as_current_span(operation) as span:
        span.set_attribute("relay.url", redact_url(url))
        host = url_host(url)
        if host:
            span.set_attribute("relay.host", host)
        if extra_attrs:
            for k, v in extra_attrs.items():
                span.set_attribute(k, v)
        logger.info(start_message)
        yield span


def record_outcome(span: Span, outcome: RelayOutcome) -> None:
    """Copy the interesting parts of a relay outcome onto ``span``."""
    if isinstance(outcome, RelayError):
        span.set_attribute("relay.outcome", outcome.kind.value)
        if outcome.status_code is not None:
            span.set_attribute("relay.upstream_status", outcome.status_code)
    elif isinstance(outcome, StreamedBytes):
        span.set_attribute("relay.outcome", "streamed")
        span.set_attribute("relay.bytes_sent", outcome.total_bytes_sent)
    elif isinstance(outcome, Metadata):
        span.set_attribute("relay.outcome", "metadata")
        span.set_attribute("relay.filename", outcome.filename)
        if outcome.content_length is not None:
            span.set_attribute("relay.content_length", outcome.content_length)
