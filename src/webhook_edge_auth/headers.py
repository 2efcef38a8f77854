"""
Signature header parsing and header hygiene for forwarded requests.
"""

import re
from typing import Mapping

from .models import SignatureHeader


# Inbound signature header set by the webhook sender
SIGNATURE_HEADER = "x-hashnode-signature"

# Only supported scheme version
SIGNATURE_VERSION = "v1"

# Hop headers that must never reach the trusted origin
HOP_HEADERS = frozenset({
    "x-forwarded-for",
})

_TIMESTAMP_RE = re.compile(r"-?\d+")


class SignatureHeaderError(ValueError):
    """Raised when a signature header cannot be parsed."""


def parse_signature_header(header: str) -> SignatureHeader:
    """
    Parse a signature header value.

    Format: comma separated ``key=value`` pairs. ``t`` (epoch milliseconds)
    and ``v1`` (hex HMAC) are required and may appear in any order. Unknown
    keys are ignored; for repeated keys the first occurrence wins.

    Args:
        header: The raw header value

    Returns:
        Parsed SignatureHeader

    Raises:
        SignatureHeaderError: If ``t`` or ``v1`` is missing, or ``t`` is not
            an integer

    Examples:
        >>> parse_signature_header("t=1700000000000,v1=deadbeef")
        SignatureHeader(timestamp=1700000000000, signature='deadbeef')
    """
    fields: dict[str, str] = {}
    for part in header.split(","):
        key, sep, value = part.strip().partition("=")
        if not sep or key in fields:
            continue
        fields[key] = value.strip()

    timestamp = fields.get("t")
    signature = fields.get(SIGNATURE_VERSION)

    if not timestamp:
        raise SignatureHeaderError("Signature header is missing 't'")
    if not signature:
        raise SignatureHeaderError(
            f"Signature header is missing '{SIGNATURE_VERSION}'"
        )
    if not _TIMESTAMP_RE.fullmatch(timestamp):
        raise SignatureHeaderError(f"Invalid signature timestamp: {timestamp!r}")

    return SignatureHeader(timestamp=int(timestamp), signature=signature)


def format_signature_header(timestamp: int, signature: str) -> str:
    """
    Build a signature header value.

    Examples:
        >>> format_signature_header(1700000000000, "deadbeef")
        't=1700000000000,v1=deadbeef'
    """
    return f"t={timestamp},{SIGNATURE_VERSION}={signature}"


def normalize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Lowercase header names. Later duplicates overwrite earlier ones."""
    return {key.lower(): value for key, value in headers.items()}


def strip_hop_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of ``headers`` without hop-identifying headers."""
    return {
        key: value
        for key, value in headers.items()
        if key.lower() not in HOP_HEADERS
    }
