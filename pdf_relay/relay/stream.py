"""
Byte-bounded streaming of an upstream body into a sink.

The running total is checked after each chunk is counted and before it is
forwarded, and the chunk that crosses the ceiling is dropped. A sink never
receives more than ``byte_ceiling`` bytes. An upstream that fails after the
headers were read ends the relay with TIMEOUT or UPSTREAM_FAILURE.
"""

import logging
from contextlib import aclosing
from typing import Protocol, Union

import httpx

from pdf_relay.relay.fetcher import TIMEOUT_DETAIL
from pdf_relay.relay.models import (
    RelayError,
    RelayErrorKind,
    StreamedBytes,
    UpstreamDescriptor,
)

logger = logging.getLogger("uvicorn.error")


class ByteSink(Protocol):
    """Destination for relayed bytes. ``closed`` turns True once the consumer has gone away."""

    closed: bool

    async def write(self, chunk: bytes) -> None: ...


def payload_too_large(byte_ceiling: int) -> RelayError:
    return RelayError(
        RelayErrorKind.PAYLOAD_TOO_LARGE, f"File too large (>{byte_ceiling} bytes)"
    )


class StreamRelay:
    def __init__(self, byte_ceiling: int):
        self.byte_ceiling = byte_ceiling

    def exceeds_declared_length(self, descriptor: UpstreamDescriptor) -> bool:
        return (
            descriptor.content_length is not None
            and descriptor.content_length > self.byte_ceiling
        )

    async def relay(
        self, descriptor: UpstreamDescriptor, sink: ByteSink
    ) -> Union[StreamedBytes, RelayError]:
        """
        Copy the descriptor's body into ``sink`` chunk by chunk.

        The upstream response is closed on every exit path, including
        cancellation of the calling task.

        Returns:
            StreamedBytes on completion, or a RelayError of kind
            PAYLOAD_TOO_LARGE, CLIENT_DISCONNECTED, TIMEOUT, UPSTREAM_FAILURE
            or SERVER_ERROR
        """
        try:
            if self.exceeds_declared_length(descriptor):
                logger.warning(
                    f"[StreamRelay] Declared length {descriptor.content_length} "
                    f"exceeds ceiling {self.byte_ceiling}"
                )
                return payload_too_large(self.byte_ceiling)
            if descriptor.response is None:
                return RelayError(
                    RelayErrorKind.SERVER_ERROR, "Upstream descriptor has no body"
                )

            total = 0
            try:
                async with aclosing(descriptor.response.aiter_bytes()) as chunks:
                    async for chunk in chunks:
                        if sink.closed:
                            break
                        total += len(chunk)
                        if total > self.byte_ceiling:
                            logger.warning(
                                f"[StreamRelay] Aborting after {total} bytes, "
                                f"ceiling is {self.byte_ceiling}"
                            )
                            return payload_too_large(self.byte_ceiling)
                        await sink.write(chunk)
                        if sink.closed:
                            break
            except httpx.TimeoutException:
                logger.warning(f"[StreamRelay] Upstream read timed out after {total} bytes")
                return RelayError(RelayErrorKind.TIMEOUT, TIMEOUT_DETAIL)
            except httpx.HTTPError as e:
                logger.warning(f"[StreamRelay] Upstream failed after {total} bytes: {e}")
                return RelayError(
                    RelayErrorKind.UPSTREAM_FAILURE, f"Upstream failed mid-stream: {e}"
                )

            if sink.closed:
                logger.info(f"[StreamRelay] Consumer went away after {total} bytes")
                return RelayError(
                    RelayErrorKind.CLIENT_DISCONNECTED,
                    f"Client disconnected after {total} bytes",
                )
            return StreamedBytes(total_bytes_sent=total)
        finally:
            await descriptor.aclose()
