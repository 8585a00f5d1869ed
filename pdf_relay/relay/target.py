from typing import Optional, Union
from urllib.parse import SplitResult, urlsplit, urlunsplit

from pdf_relay.relay.models import RelayError, RelayErrorKind, ResolvedTarget
from pdf_relay.relay.network_guard import NetworkGuard, parse_ipv4_host

ALLOWED_SCHEMES = ("http", "https")


def _with_host(parts: SplitResult, host: str) -> str:
    userinfo, _, _ = parts.netloc.rpartition("@")
    netloc = f"{userinfo}@{host}" if userinfo else host
    if parts.port is not None:
        netloc = f"{netloc}:{parts.port}"
    return netloc


def validate_target(raw_url: Optional[str]) -> Union[ResolvedTarget, RelayError]:
    """
    Parse a caller-supplied URL into a ResolvedTarget.

    Numeric hosts are rewritten to dotted-quad form (``http://127.1/`` becomes
    ``http://127.0.0.1/``) so the guard and the upstream request see the same
    address.

    Fails with INVALID_URL when the value is missing or not an absolute URL,
    and with UNSUPPORTED_SCHEME for anything other than http/https.
    No network access happens here.
    """
    if raw_url is None or not raw_url.strip():
        return RelayError(RelayErrorKind.INVALID_URL, "Missing ?url=")

    candidate = raw_url.strip()
    try:
        parts = urlsplit(candidate)
        # Accessing .port validates it; urlsplit alone does not.
        parts.port
    except ValueError:
        return RelayError(RelayErrorKind.INVALID_URL, "Invalid URL")

    scheme = parts.scheme.lower()
    if not scheme:
        return RelayError(RelayErrorKind.INVALID_URL, "Invalid URL")
    if scheme not in ALLOWED_SCHEMES:
        return RelayError(RelayErrorKind.UNSUPPORTED_SCHEME, "Only http/https allowed")

    host = parts.hostname
    if not host:
        return RelayError(RelayErrorKind.INVALID_URL, "Invalid URL")

    netloc = parts.netloc
    try:
        address = parse_ipv4_host(host)
    except ValueError:
        return RelayError(RelayErrorKind.INVALID_URL, "Invalid URL")
    if address is not None:
        host = str(address)
        netloc = _with_host(parts, host)

    normalized = urlunsplit((scheme, netloc, parts.path or "/", parts.query, ""))
    return ResolvedTarget(scheme=scheme, host=host, url=normalized)


def check_target(
    raw_url: Optional[str], guard: NetworkGuard
) -> Union[ResolvedTarget, RelayError]:
    """Validate ``raw_url`` and apply the network guard to its host."""
    target = validate_target(raw_url)
    if isinstance(target, RelayError):
        return target
    if guard.is_blocked(target.host):
        return RelayError(RelayErrorKind.BLOCKED_HOST, guard.describe_block(target.host))
    return target
