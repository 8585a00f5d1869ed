import logging
from typing import Optional, Union

from pdf_relay.relay.fetcher import UpstreamFetcher
from pdf_relay.relay.filename import resolve_filename
from pdf_relay.relay.models import Metadata, RelayError
from pdf_relay.relay.network_guard import NetworkGuard
from pdf_relay.relay.target import check_target

logger = logging.getLogger("uvicorn.error")


class MetadataProbe:
    """Describe a remote resource (name, type, size) without transferring its body."""

    def __init__(self, guard: NetworkGuard, fetcher: UpstreamFetcher):
        self.guard = guard
        self.fetcher = fetcher

    async def describe(self, raw_url: Optional[str]) -> Union[Metadata, RelayError]:
        target = check_target(raw_url, self.guard)
        if isinstance(target, RelayError):
            return target

        descriptor = await self.fetcher.probe(target)
        if isinstance(descriptor, RelayError):
            return descriptor

        filename = resolve_filename(
            descriptor.content_disposition, target.url, binary=False
        )
        logger.debug(f"[MetadataProbe] Resolved filename {filename!r}")
        return Metadata(
            filename=filename,
            content_type=descriptor.content_type or "",
            content_length=descriptor.content_length,
        )
