"""
SSRF boundary check for relay targets.

Only the literal host string taken from the URL is inspected, including the
shorthand IPv4 forms (``127.1``, ``2130706433``) that resolvers accept. Hostnames
are never resolved here, so a public DNS name that points at a private address
passes this check.
"""

import ipaddress
import logging
from typing import Optional, Union

logger = logging.getLogger("uvicorn.error")

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_BLOCKED_HOSTNAMES = {"localhost"}

_BLOCKED_V4_NETWORKS = tuple(
    ipaddress.IPv4Network(net)
    for net in (
        "127.0.0.0/8",
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "169.254.0.0/16",
        "0.0.0.0/8",
    )
)

_BLOCKED_V6_NETWORKS = tuple(
    ipaddress.IPv6Network(net)
    for net in (
        "::1/128",
        "::/128",
        "fc00::/7",
        "fe80::/10",
    )
)

_IPV4_DIGITS = {8: "01234567", 10: "0123456789", 16: "0123456789abcdefABCDEF"}


def _parse_ipv4_number(part: str) -> int:
    if part[:2] in ("0x", "0X"):
        digits, radix = part[2:], 16
    elif len(part) > 1 and part.startswith("0"):
        digits, radix = part[1:], 8
    else:
        digits, radix = part, 10
    if not digits:
        if radix == 10:
            raise ValueError("Empty IPv4 part")
        return 0
    if any(ch not in _IPV4_DIGITS[radix] for ch in digits):
        raise ValueError(f"Invalid IPv4 part: {part}")
    return int(digits, radix)


def _ends_in_a_number(host: str) -> bool:
    parts = host.split(".")
    if parts[-1] == "":
        if len(parts) == 1:
            return False
        parts.pop()
    last = parts[-1]
    if last.isascii() and last.isdigit():
        return True
    try:
        _parse_ipv4_number(last)
    except ValueError:
        return False
    return True


def parse_ipv4_host(host: str) -> Optional[ipaddress.IPv4Address]:
    """
    Read a host that ends in a number the way URL parsers and the system
    resolver do.

    Accepts one to four dotted parts, each decimal, ``0x`` hex or
    leading-zero octal, with the last part filling the remaining bytes, so
    ``127.1``, ``2130706433``, ``0x7f000001`` and ``0177.0.0.1`` all read as
    ``127.0.0.1``.

    Returns:
        The address, or None when ``host`` is a name rather than a number

    Raises:
        ValueError: ``host`` ends in a number but is not a valid IPv4 address
    """
    if not host or ":" in host or not _ends_in_a_number(host):
        return None
    parts = host.split(".")
    if parts[-1] == "":
        parts.pop()
    if len(parts) > 4:
        raise ValueError(f"Too many parts in IPv4 host: {host}")

    *leading, last = [_parse_ipv4_number(part) for part in parts]
    if any(number > 255 for number in leading):
        raise ValueError(f"IPv4 part out of range: {host}")
    if last >= 256 ** (4 - len(leading)):
        raise ValueError(f"IPv4 address out of range: {host}")

    value = last
    for index, number in enumerate(leading):
        value += number * 256 ** (3 - index)
    return ipaddress.IPv4Address(value)


def _parse_ip_literal(host: str) -> Optional[IPAddress]:
    candidate = host.strip()
    if candidate.startswith("[") and candidate.endswith("]"):
        candidate = candidate[1:-1]
    # Zone ids ("fe80::1%eth0") do not change which network the address is in.
    candidate = candidate.split("%", 1)[0]
    try:
        return ipaddress.ip_address(candidate)
    except ValueError:
        pass
    try:
        return parse_ipv4_host(candidate)
    except ValueError:
        return None


def is_internal_address(address: IPAddress) -> bool:
    if isinstance(address, ipaddress.IPv6Address):
        if address.ipv4_mapped is not None:
            return is_internal_address(address.ipv4_mapped)
        return any(address in net for net in _BLOCKED_V6_NETWORKS)
    return any(address in net for net in _BLOCKED_V4_NETWORKS)


def is_internal_host(host: Optional[str]) -> bool:
    """Return True when ``host`` names localhost or is an internal IP literal."""
    if not host:
        return False
    name = host.strip().lower().rstrip(".")
    if name in _BLOCKED_HOSTNAMES:
        return True
    address = _parse_ip_literal(name)
    if address is None:
        return False
    return is_internal_address(address)


class NetworkGuard:
    """Applies the internal-host policy when blocking is enabled."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def is_blocked(self, host: Optional[str]) -> bool:
        if not self.enabled:
            return False
        blocked = is_internal_host(host)
        if blocked:
            logger.warning(f"[NetworkGuard] Blocked internal host: {host}")
        return blocked

    @staticmethod
    def describe_block(host: Optional[str]) -> str:
        name = (host or "").strip().lower().rstrip(".")
        if name in _BLOCKED_HOSTNAMES:
            return "Blocked localhost"
        return "Blocked internal IP host"
