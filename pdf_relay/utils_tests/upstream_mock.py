import asyncio
from typing import Callable, Iterable, List, Optional

import httpx

from pdf_relay.relay.models import UpstreamDescriptor
from pdf_relay.relay.service import RelayService
from pdf_relay.vars import RelayConfig


class ChunkStream(httpx.AsyncByteStream):
    """
    Upstream body double that records how much was read and whether it was closed.

    ``fail_with`` is raised once ``chunks`` are exhausted, the way a dropped
    connection surfaces from httpx partway through a body.
    """

    def __init__(
        self,
        chunks: Optional[Iterable[bytes]] = None,
        repeat: Optional[bytes] = None,
        fail_with: Optional[Exception] = None,
    ):
        self.chunks = list(chunks or [])
        self.repeat = repeat
        self.fail_with = fail_with
        self.bytes_yielded = 0
        self.closed = False

    async def __aiter__(self):
        if self.repeat is not None:
            while True:
                await asyncio.sleep(0)
                self.bytes_yielded += len(self.repeat)
                yield self.repeat
        for chunk in self.chunks:
            await asyncio.sleep(0)
            self.bytes_yielded += len(chunk)
            yield chunk
        if self.fail_with is not None:
            raise self.fail_with

    async def aclose(self) -> None:
        self.closed = True


class RecordingSink:
    """ByteSink double; ``close_after`` simulates the consumer leaving after N writes."""

    def __init__(self, close_after: Optional[int] = None):
        self.chunks: List[bytes] = []
        self.closed = False
        self.close_after = close_after

    async def write(self, chunk: bytes) -> None:
        self.chunks.append(chunk)
        if self.close_after is not None and len(self.chunks) >= self.close_after:
            self.closed = True

    @property
    def data(self) -> bytes:
        return b"".join(self.chunks)


def streamed_descriptor(
    stream: ChunkStream,
    headers: Optional[dict] = None,
    url: str = "https://example.com/files/report.pdf",
) -> UpstreamDescriptor:
    response = httpx.Response(200, headers=headers or {}, stream=stream)
    return UpstreamDescriptor.from_response(response, url, keep_body=True)


def mock_client(handler: Callable) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.MockTransport(handler), follow_redirects=False
    )


def build_service(handler: Callable, **config_overrides) -> RelayService:
    """RelayService whose upstream is served by ``handler`` through httpx.MockTransport."""
    config = RelayConfig(**config_overrides)
    return RelayService(config, client=mock_client(handler))
