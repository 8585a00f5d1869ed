from .models import (
    Metadata,
    RelayError,
    RelayErrorKind,
    RelayOutcome,
    RelayRequest,
    ResolvedTarget,
    StreamedBytes,
    UpstreamDescriptor,
)
from .network_guard import NetworkGuard, is_internal_host
from .target import check_target, validate_target
from .filename import resolve_filename, sanitize_filename, parse_content_disposition
from .fetcher import UpstreamFetcher
from .stream import ByteSink, StreamRelay
from .metadata import MetadataProbe
from .service import PreparedDownload, RelayService

__all__ = [
    "Metadata",
    "RelayError",
    "RelayErrorKind",
    "RelayOutcome",
    "RelayRequest",
    "ResolvedTarget",
    "StreamedBytes",
    "UpstreamDescriptor",
    "NetworkGuard",
    "is_internal_host",
    "check_target",
    "validate_target",
    "resolve_filename",
    "sanitize_filename",
    "parse_content_disposition",
    "UpstreamFetcher",
    "ByteSink",
    "StreamRelay",
    "MetadataProbe",
    "PreparedDownload",
    "RelayService",
]
