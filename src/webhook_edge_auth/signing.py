"""
HMAC signing and inbound signature verification.

The signed string is ``"<timestamp>.<payload>"`` where ``payload`` is the
raw request body (or ``canonical_json`` of a mapping) and the signature is
the hex HMAC-SHA256 of that string keyed with the webhook secret.
"""

import hashlib
import hmac
import json
import time
from typing import Any, Mapping

from .headers import SignatureHeaderError, parse_signature_header
from .models import InvalidReason, VerificationRequest, VerificationResult

MILLISECONDS_PER_SECOND = 1_000

DEFAULT_VALID_FOR_SECONDS = 30

Payload = Mapping[str, Any] | bytes | str | None


def canonical_json(payload: Mapping[str, Any]) -> str:
    """
    Serialize a payload the way the sender does.

    Compact separators, keys in insertion order, non-ASCII left unescaped.
    Both signing and verification go through this function.

    Examples:
        >>> canonical_json({"data": {"eventType": "post_created"}})
        '{"data":{"eventType":"post_created"}}'
    """
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def _payload_bytes(payload: Payload) -> bytes:
    if payload is None:
        return b""
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return canonical_json(payload).encode("utf-8")


def _secret_bytes(secret: str | bytes) -> bytes:
    if isinstance(secret, bytes):
        return secret
    return secret.encode("utf-8")


def create_signature(timestamp: int, payload: Payload, secret: str | bytes) -> str:
    """
    Compute the hex HMAC-SHA256 signature for a payload.

    Args:
        timestamp: Signature time in epoch milliseconds
        payload: Raw body, a mapping, or None for an empty payload
        secret: Shared webhook secret

    Returns:
        Lowercase hex signature
    """
    message = str(timestamp).encode("ascii") + b"." + _payload_bytes(payload)
    return hmac.new(_secret_bytes(secret), message, hashlib.sha256).hexdigest()


def compare_signatures(expected: str, received: str) -> bool:
    """
    Constant-time signature comparison.

    Values that cannot be encoded compare as unequal instead of raising.
    """
    try:
        return hmac.compare_digest(
            expected.encode("ascii"),
            received.encode("ascii"),
        )
    except (AttributeError, TypeError, UnicodeEncodeError):
        return False


def is_within_window(
    signature_timestamp_ms: int,
    now_ms: int,
    tolerance_seconds: int,
) -> bool:
    """
    Check that a signature timestamp is close enough to now.

    The window is symmetric so clock skew in either direction is tolerated.
    A tolerance of 0 disables the check.
    """
    if tolerance_seconds < 0:
        raise ValueError("tolerance_seconds must not be negative")
    if tolerance_seconds == 0:
        return True
    return abs(now_ms - signature_timestamp_ms) <= tolerance_seconds * MILLISECONDS_PER_SECOND


def current_time_ms() -> int:
    return time.time_ns() // 1_000_000


def validate_signature(
    signature_header: str | None,
    payload: Payload,
    secret: str | bytes,
    valid_for_seconds: int = DEFAULT_VALID_FOR_SECONDS,
    now_ms: int | None = None,
) -> VerificationResult:
    """
    Verify an inbound signature header against a payload.

    Checks run in order and stop at the first failure: header presence,
    header parse, signature match, timestamp window.

    Args:
        signature_header: Raw signature header value, None if absent
        payload: The signed payload (raw body preferred)
        secret: Shared webhook secret
        valid_for_seconds: Allowed clock difference. 0 disables the check.
        now_ms: Current time in epoch milliseconds (defaults to the clock)

    Returns:
        VerificationResult

    Raises:
        ValueError: If valid_for_seconds is negative
    """
    if valid_for_seconds < 0:
        raise ValueError("valid_for_seconds must not be negative")

    if not signature_header:
        return VerificationResult.invalid(InvalidReason.MISSING_SIGNATURE)

    try:
        parsed = parse_signature_header(signature_header)
    except SignatureHeaderError:
        return VerificationResult.invalid(InvalidReason.MALFORMED_HEADER)

    expected = create_signature(parsed.timestamp, payload, secret)
    if not compare_signatures(expected, parsed.signature):
        return VerificationResult.invalid(InvalidReason.SIGNATURE_MISMATCH)

    if now_ms is None:
        now_ms = current_time_ms()
    if not is_within_window(parsed.timestamp, now_ms, valid_for_seconds):
        return VerificationResult.invalid(InvalidReason.TIMESTAMP_OUT_OF_WINDOW)

    return VerificationResult.valid()


def verify_request(
    request: VerificationRequest,
    now_ms: int | None = None,
) -> VerificationResult:
    """Run ``validate_signature`` for a VerificationRequest."""
    return validate_signature(
        signature_header=request.signature_header,
        payload=request.payload,
        secret=request.secret,
        valid_for_seconds=request.valid_for_seconds,
        now_ms=now_ms,
    )
