"""
Value types and tagged outcomes shared by the relay components.

Every fallible relay operation returns either its success value or a
``RelayError``; nothing in ``pdf_relay.relay`` raises across component
boundaries. Callers branch with ``isinstance(result, RelayError)``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

import httpx


class RelayErrorKind(str, Enum):
    """Failure categories surfaced by the relay engine."""

    INVALID_URL = "invalid_url"
    UNSUPPORTED_SCHEME = "unsupported_scheme"
    BLOCKED_HOST = "blocked_host"
    UPSTREAM_FAILURE = "upstream_failure"
    TIMEOUT = "timeout"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    CLIENT_DISCONNECTED = "client_disconnected"
    SERVER_ERROR = "server_error"


@dataclass(frozen=True)
class RelayError:
    """
    A terminal failure for one relay request.

    Attributes:
        kind: The failure category
        detail: Human-readable message, safe to show to the caller
        status_code: Upstream HTTP status for ``UPSTREAM_FAILURE``, if one was received
    """

    kind: RelayErrorKind
    detail: str
    status_code: Optional[int] = None


@dataclass(frozen=True)
class RelayRequest:
    target_url: str
    filename_override: Optional[str] = None


@dataclass(frozen=True)
class ResolvedTarget:
    """A parsed http(s) URL whose host has been checked by the network guard."""

    scheme: str
    host: str
    url: str


@dataclass
class UpstreamDescriptor:
    """
    Status and headers of one upstream attempt, plus the body handle when the
    attempt was a full fetch.

    The body handle is an ``httpx.Response`` opened with ``stream=True``.
    ``aclose()`` must run on every exit path; it is safe to call repeatedly.
    """

    status_code: int
    final_url: str
    content_type: Optional[str] = None
    content_length: Optional[int] = None
    content_disposition: Optional[str] = None
    response: Optional[httpx.Response] = field(default=None, repr=False)

    @classmethod
    def from_response(
        cls, response: httpx.Response, final_url: str, keep_body: bool
    ) -> "UpstreamDescriptor":
        headers = response.headers
        return cls(
            status_code=response.status_code,
            final_url=final_url,
            content_type=headers.get("content-type"),
            content_length=parse_content_length(headers.get("content-length")),
            content_disposition=headers.get("content-disposition"),
            response=response if keep_body else None,
        )

    @property
    def has_body(self) -> bool:
        return self.response is not None

    async def aclose(self) -> None:
        if self.response is not None and not self.response.is_closed:
            await self.response.aclose()


def parse_content_length(raw: Optional[str]) -> Optional[int]:
    """Read a Content-Length header value; anything but a non-negative integer counts as absent."""
    if raw is None:
        return None
    raw = raw.strip()
    if not raw.isdigit():
        return None
    return int(raw)


@dataclass(frozen=True)
class Metadata:
    filename: str
    content_type: str
    content_length: Optional[int]

    def to_json(self) -> dict:
        return {
            "ok": True,
            "filename": self.filename,
            "contentType": self.content_type,
            "contentLength": self.content_length,
        }


@dataclass(frozen=True)
class StreamedBytes:
    total_bytes_sent: int


RelayOutcome = Union[Metadata, StreamedBytes, RelayError]
