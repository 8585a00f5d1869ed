import logging
from dataclasses import dataclass
from typing import Dict, Optional, Union

import httpx

from pdf_relay.relay.fetcher import UpstreamFetcher
from pdf_relay.relay.filename import content_disposition_header, resolve_filename
from pdf_relay.relay.metadata import MetadataProbe
from pdf_relay.relay.models import (
    Metadata,
    RelayError,
    RelayRequest,
    StreamedBytes,
    UpstreamDescriptor,
)
from pdf_relay.relay.network_guard import NetworkGuard
from pdf_relay.relay.stream import ByteSink, StreamRelay, payload_too_large
from pdf_relay.relay.target import check_target
from pdf_relay.vars import RelayConfig

logger = logging.getLogger("uvicorn.error")

DEFAULT_CONTENT_TYPE = "application/pdf"


@dataclass
class PreparedDownload:
    """An upstream fetch that passed every pre-stream check and is ready to relay."""

    descriptor: UpstreamDescriptor
    filename: str
    content_type: str

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": self.content_type,
            "Content-Disposition": content_disposition_header(self.filename),
            "Cache-Control": "no-store",
        }


class RelayService:
    """
    Wires the relay components together from one RelayConfig.

    One instance serves every request; it holds no per-request state.
    """

    def __init__(
        self, config: RelayConfig, client: Optional[httpx.AsyncClient] = None
    ):
        self.config = config
        self.guard = NetworkGuard(enabled=config.block_internal)
        self.fetcher = UpstreamFetcher(config, self.guard, client=client)
        self.probe = MetadataProbe(self.guard, self.fetcher)
        self.stream_relay = StreamRelay(config.byte_ceiling)

    async def aclose(self) -> None:
        await self.fetcher.aclose()

    async def describe(self, raw_url: Optional[str]) -> Union[Metadata, RelayError]:
        return await self.probe.describe(raw_url)

    async def prepare_download(
        self, request: RelayRequest
    ) -> Union[PreparedDownload, RelayError]:
        """
        Validate, guard and open the upstream body for ``request``.

        The declared Content-Length is checked here so an oversized payload is
        refused before any response header goes out. On success the caller
        owns ``descriptor`` and must either relay it or close it.
        """
        target = check_target(request.target_url, self.guard)
        if isinstance(target, RelayError):
            return target

        descriptor = await self.fetcher.fetch(target)
        if isinstance(descriptor, RelayError):
            return descriptor

        if self.stream_relay.exceeds_declared_length(descriptor):
            await descriptor.aclose()
            logger.warning(
                f"[RelayService] Refusing {descriptor.content_length} declared bytes "
                f"(ceiling {self.config.byte_ceiling})"
            )
            return payload_too_large(self.config.byte_ceiling)

        filename = resolve_filename(
            descriptor.content_disposition,
            target.url,
            request.filename_override,
            binary=True,
        )
        return PreparedDownload(
            descriptor=descriptor,
            filename=filename,
            content_type=descriptor.content_type or DEFAULT_CONTENT_TYPE,
        )

    async def relay(
        self, prepared: PreparedDownload, sink: ByteSink
    ) -> Union[StreamedBytes, RelayError]:
        return await self.stream_relay.relay(prepared.descriptor, sink)
