"""
ASGI response that relays an upstream body to the client.

Modeled on Starlette's ``StreamingResponse``: the body is sent from one task
while a second task listens for ``http.disconnect``. Whichever finishes first
cancels the other, so a client that goes away stops the upstream read right
away.

When the relay ends in anything but ``StreamedBytes`` the final empty body
message is never sent. The server then closes the connection without
terminating the response, which is how a client learns that a download
aborted after the headers went out.
"""

import logging
from functools import partial
from typing import Callable, Optional

import anyio
from opentelemetry import trace
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from pdf_relay.relay.models import RelayError, RelayErrorKind, RelayOutcome, StreamedBytes
from pdf_relay.relay.service import PreparedDownload, RelayService
from pdf_relay.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)
from pdf_relay.utils.traced_requests import record_outcome

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)


class ASGIByteSink:
    """ByteSink writing ``http.response.body`` messages to an ASGI ``send``."""

    def __init__(self, send: Send):
        self._send = send
        self.closed = False
        self.bytes_written = 0

    async def write(self, chunk: bytes) -> None:
        if self.closed or not chunk:
            return
        try:
            await self._send(
                {"type": "http.response.body", "body": chunk, "more_body": True}
            )
        except OSError:
            self.closed = True
            return
        self.bytes_written += len(chunk)

    async def finish(self) -> None:
        if self.closed:
            return
        await self._send({"type": "http.response.body", "body": b"", "more_body": False})


class RelayStreamingResponse(Response):
    def __init__(
        self,
        service: RelayService,
        prepared: PreparedDownload,
        on_complete: Optional[Callable[[RelayOutcome], None]] = None,
    ):
        self.service = service
        self.prepared = prepared
        self.on_complete = on_complete
        self.outcome: Optional[RelayOutcome] = None
        self.status_code = 200
        self.background = None
        self.init_headers(prepared.headers)

    async def _stream_body(self, send: Send, sink: ASGIByteSink) -> None:
        await send(
            {
                "type": "http.response.start",
                "status": self.status_code,
                "headers": self.raw_headers,
            }
        )
        self.outcome = await self.service.relay(self.prepared, sink)
        if isinstance(self.outcome, StreamedBytes):
            await sink.finish()

    async def _listen_for_disconnect(self, receive: Receive, sink: ASGIByteSink) -> None:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                sink.closed = True
                break

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        sink = ASGIByteSink(send)
        with tracer.start_as_current_span("relay.stream") as span:
            span.set_attribute("relay.filename", self.prepared.filename)
            try:
                async with anyio.create_task_group() as task_group:

                    async def wrap(func: Callable[[], object]) -> None:
                        await func()
                        task_group.cancel_scope.cancel()

                    task_group.start_soon(wrap, partial(self._stream_body, send, sink))
                    await wrap(partial(self._listen_for_disconnect, receive, sink))
            except Exception as e:
                log_exception_with_details(logger, "[Download]", e)
                self.outcome = RelayError(
                    RelayErrorKind.SERVER_ERROR, format_exception_message(e)
                )
                raise
            finally:
                with anyio.CancelScope(shield=True):
                    await self.prepared.descriptor.aclose()
                if self.outcome is None:
                    self.outcome = RelayError(
                        RelayErrorKind.CLIENT_DISCONNECTED,
                        f"Client disconnected after {sink.bytes_written} bytes",
                    )
                record_outcome(span, self.outcome)
                self._log_outcome(sink)
                if self.on_complete is not None:
                    self.on_complete(self.outcome)

    def _log_outcome(self, sink: ASGIByteSink) -> None:
        outcome = self.outcome
        if isinstance(outcome, StreamedBytes):
            logger.info(
                f"[Download] Relayed {outcome.total_bytes_sent} bytes as {self.prepared.filename!r}"
            )
        elif outcome.kind == RelayErrorKind.CLIENT_DISCONNECTED:
            logger.info(f"[Download] {outcome.detail}")
        else:
            logger.warning(
                f"[Download] Truncated after {sink.bytes_written} bytes: {outcome.detail}"
            )
