"""
Filename derivation for relayed downloads.

A name is picked from, in order: the caller's override, the upstream
``Content-Disposition`` header, the last segment of the URL path, and finally
``download.pdf``. Whatever wins is sanitized so it is safe to hand back in a
``Content-Disposition`` header and to write to disk on the caller's side.
"""

import re
import unicodedata
from typing import Optional
from urllib.parse import quote, unquote, urlsplit

MAX_FILENAME_LENGTH = 160
DEFAULT_FILENAME = "download.pdf"
DEFAULT_EXTENSION = ".pdf"

_RESERVED_CHARS = re.compile(r'[/\\?%*:|"<>]')
_WHITESPACE_RUN = re.compile(r"\s+")
_EXTENDED_FILENAME = re.compile(r"filename\*\s*=\s*([^']*)''([^;]+)", re.IGNORECASE)
_QUOTED_FILENAME = re.compile(r'filename\s*=\s*"([^"]+)"', re.IGNORECASE)
_PLAIN_FILENAME = re.compile(r"filename\s*=\s*([^;]+)", re.IGNORECASE)
_BAD_PERCENT_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def sanitize_filename(name: Optional[str]) -> str:
    """
    Make ``name`` safe to use as a download filename.

    Reserved filesystem characters become ``_``, whitespace runs collapse to
    a single space, control characters are dropped and the result is capped
    at 160 characters. Sanitizing an already sanitized name returns it
    unchanged.
    """
    text = _RESERVED_CHARS.sub("_", str(name or ""))
    text = "".join(
        ch for ch in text if ch.isspace() or unicodedata.category(ch) != "Cc"
    )
    text = _WHITESPACE_RUN.sub(" ", text).strip()
    return text[:MAX_FILENAME_LENGTH].strip()


def _decode_extended_value(charset: str, value: str) -> str:
    if _BAD_PERCENT_ESCAPE.search(value):
        return value
    try:
        return unquote(value, encoding=charset.strip() or "utf-8", errors="strict")
    except (UnicodeDecodeError, LookupError):
        return value


def parse_content_disposition(header: Optional[str]) -> Optional[str]:
    """Extract the filename from a Content-Disposition header, if it has one."""
    if not header:
        return None

    match = _EXTENDED_FILENAME.search(header)
    if match and match.group(2).strip():
        return _decode_extended_value(match.group(1), match.group(2).strip())

    match = _QUOTED_FILENAME.search(header)
    if match and match.group(1):
        return match.group(1)

    match = _PLAIN_FILENAME.search(header)
    if match and match.group(1).strip():
        return match.group(1).strip()

    return None


def guess_name_from_url(url: str) -> str:
    """Use the last non-empty path segment, adding ``.pdf`` when it has no extension."""
    path = urlsplit(url).path
    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return DEFAULT_FILENAME
    base = unquote(segments[-1], errors="replace")
    return base if "." in base else base + DEFAULT_EXTENSION


def ensure_pdf_extension(name: str) -> str:
    if name.lower().endswith(DEFAULT_EXTENSION):
        return name
    return name + DEFAULT_EXTENSION


def resolve_filename(
    content_disposition: Optional[str],
    url: str,
    override: Optional[str] = None,
    *,
    binary: bool = False,
) -> str:
    """
    Pick and sanitize the filename for a relayed resource.

    Args:
        content_disposition: Raw upstream Content-Disposition header, if any
        url: The (final) target URL, used when the header carries no name
        override: Caller-supplied name, wins when it survives sanitization
        binary: True on the download path, where ``.pdf`` is enforced

    Returns:
        The sanitized filename
    """
    candidates = (
        override,
        parse_content_disposition(content_disposition),
        guess_name_from_url(url),
    )
    filename = DEFAULT_FILENAME
    for candidate in candidates:
        cleaned = sanitize_filename(candidate)
        if cleaned:
            filename = cleaned
            break

    if binary:
        filename = ensure_pdf_extension(filename)
    return filename


def content_disposition_header(filename: str) -> str:
    """
    Build an ``attachment`` Content-Disposition value for ``filename``.

    Header values must be latin-1 encodable, so names outside printable
    ASCII get an ASCII fallback plus an RFC 5987 ``filename*`` parameter.
    """
    if all(32 <= ord(ch) < 127 for ch in filename):
        return f'attachment; filename="{filename}"'

    fallback = "".join(ch if 32 <= ord(ch) < 127 else "_" for ch in filename)
    encoded = quote(filename, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"
