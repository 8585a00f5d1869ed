from typing import Optional
from urllib.parse import urlsplit, urlunsplit


def redact_url(url: Optional[str]) -> str:
    """Drop credentials and the query string from a URL before it is logged."""
    if not url:
        return "<empty>"
    try:
        parts = urlsplit(url)
        host = parts.hostname or ""
        port = parts.port
    except ValueError:
        return "<unparseable url>"
    if ":" in host:
        host = f"[{host}]"
    netloc = f"{host}:{port}" if port else host
    query = "<redacted>" if parts.query else ""
    return urlunsplit((parts.scheme, netloc, parts.path, query, ""))


def url_host(url: Optional[str]) -> str:
    """Hostname of ``url`` for span attributes, or an empty string."""
    if not url:
        return ""
    try:
        return urlsplit(url.strip()).hostname or ""
    except ValueError:
        return ""
