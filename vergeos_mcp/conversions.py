"""Unit, time and format conversions between wire values and display values.

The API always speaks bytes and Unix epoch seconds. Sizes shown to users
are binary units (1 GB = 1024**3 bytes).
"""

from __future__ import annotations

import fnmatch
import ipaddress
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping

from .exceptions import ValidationError

KB = 1024
MB = 1024**2
GB = 1024**3
TB = 1024**4

NEVER = "Never"

_MAC_RE = re.compile(r"^([0-9A-Fa-f]{2}[:-]){5}[0-9A-Fa-f]{2}$")
_CIDR_RE = re.compile(r"^(\d{1,3}\.){3}\d{1,3}/(3[0-2]|[12]?\d)$")
_WILDCARDS = "*?"


def bytes_to_gb(value: int | None, ndigits: int = 2) -> float | None:
    if value is None:
        return None
    gb = value / GB
    return int(gb) if gb.is_integer() else round(gb, ndigits)


def gb_to_bytes(value: float) -> int:
    return int(round(value * GB))


def bytes_to_tb(value: int | None, ndigits: int = 2) -> float | None:
    if value is None:
        return None
    return round(value / TB, ndigits)


def tb_to_bytes(value: float) -> int:
    return int(round(value * TB))


def mb_to_bytes(value: float) -> int:
    return int(round(value * MB))


def epoch_to_datetime(value: int | float | None) -> datetime | None:
    """Convert epoch seconds to a local datetime.

    ``0`` and ``None`` mean "not set" on the wire and map to ``None``,
    never to 1970-01-01.
    """
    if not value:
        return None
    return datetime.fromtimestamp(value)


def datetime_to_epoch(value: datetime | int | None) -> int:
    """Inverse of :func:`epoch_to_datetime`; ``None`` becomes ``0``.

    Epoch numbers pass through, so ``0`` can be sent to mean "never".
    """
    if value is None:
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    return int(value.timestamp())


def expires_display(value: datetime | None) -> str:
    """Display form of an expiry: a timestamp, or ``Never``."""
    if value is None:
        return NEVER
    return value.strftime("%Y-%m-%d %H:%M:%S")


def display_name(mapping: Mapping[str, str], wire_value: str | None) -> str | None:
    """Translate an enum wire value for display, falling back to the raw value."""
    if wire_value is None:
        return None
    return mapping.get(wire_value, wire_value)


def wire_value(mapping: Mapping[str, str], display: str) -> str:
    """Reverse of :func:`display_name`; accepts the wire value unchanged.

    Raises:
        ValidationError: If ``display`` is neither a wire nor a display value.
    """
    if display in mapping:
        return display
    for wire, shown in mapping.items():
        if shown.lower() == display.lower():
            return wire
    choices = ", ".join(sorted(mapping))
    raise ValidationError(f"Invalid value '{display}'; expected one of: {choices}")


@dataclass(frozen=True)
class CidrBlock:
    """Parsed IPv4 CIDR block."""

    network_address: str
    prefix_length: int
    address_count: int

    def __str__(self) -> str:
        return f"{self.network_address}/{self.prefix_length}"

    def contains(self, address: str) -> bool:
        return ipaddress.IPv4Address(address) in ipaddress.IPv4Network(str(self))


def parse_cidr(text: str) -> CidrBlock:
    """Parse ``a.b.c.d/nn`` into its network address, prefix and size.

    The host bits must be zero (``10.0.0.0/24``, not ``10.0.0.5/24``).

    Raises:
        ValidationError: If the text is not a valid IPv4 CIDR block.
    """
    text = (text or "").strip()
    if not _CIDR_RE.match(text):
        raise ValidationError(
            f"Invalid CIDR '{text}'; expected format a.b.c.d/nn", field="cidr"
        )
    try:
        network = ipaddress.IPv4Network(text, strict=True)
    except ValueError as e:
        raise ValidationError(f"Invalid CIDR '{text}': {e}", field="cidr") from e
    return CidrBlock(
        network_address=str(network.network_address),
        prefix_length=network.prefixlen,
        address_count=2 ** (32 - network.prefixlen),
    )


def validate_mac(value: str) -> str:
    """Normalize a MAC address to lower-case colon form.

    Raises:
        ValidationError: If the value is not a MAC address.
    """
    if not _MAC_RE.match(value or ""):
        raise ValidationError(f"Invalid MAC address '{value}'", field="mac_address")
    return value.replace("-", ":").lower()


def validate_ipv4(value: str, field: str = "ip_address") -> str:
    """Validate a dotted IPv4 address.

    Raises:
        ValidationError: If the value is not an IPv4 address.
    """
    try:
        return str(ipaddress.IPv4Address(value))
    except ValueError as e:
        raise ValidationError(f"Invalid IPv4 address '{value}'", field=field) from e


def has_wildcards(name: str) -> bool:
    return any(c in name for c in _WILDCARDS)


def glob_match(name: str, pattern: str) -> bool:
    """Case-insensitive glob match with ``*`` and ``?``."""
    return fnmatch.fnmatchcase(name.lower(), pattern.lower().replace("[", "[[]"))


def longest_literal(pattern: str) -> str:
    """Longest wildcard-free run in a glob pattern, for server prefiltering.

    ``Web*`` gives ``Web``; ``*prod*db?`` gives ``prod``; ``*`` gives ``""``.
    """
    runs = re.split(r"[*?]", pattern)
    return max(runs, key=len) if runs else ""
