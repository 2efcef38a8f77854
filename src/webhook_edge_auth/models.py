"""
Data models for webhook verification and request re-signing.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


@dataclass(frozen=True)
class SignatureHeader:
    """
    Parsed ``x-hashnode-signature`` header.

    Attributes:
        timestamp: Signature creation time (epoch milliseconds)
        signature: Lowercase hex HMAC-SHA256 digest from the ``v1`` entry
    """
    timestamp: int
    signature: str


@dataclass
class VerificationRequest:
    """
    Inbound request to be verified.

    Attributes:
        signature_header: Raw signature header value (None if absent)
        payload: Signed payload. Raw ``bytes``/``str`` are used exactly as
            received; a mapping is serialized with ``canonical_json``.
        secret: Shared webhook secret (``whsec_...``)
        valid_for_seconds: Replay tolerance in seconds. 0 disables the check.
    """
    signature_header: str | None
    payload: Mapping[str, Any] | bytes | str | None
    secret: str | bytes
    valid_for_seconds: int = 30


class InvalidReason(str, Enum):
    """Why a signature was rejected. Exactly one is reported per failure."""
    MISSING_SIGNATURE = "Missing signature"
    MALFORMED_HEADER = "Invalid signature header"
    SIGNATURE_MISMATCH = "Invalid signature"
    TIMESTAMP_OUT_OF_WINDOW = "Invalid timestamp"


@dataclass(frozen=True)
class VerificationResult:
    """
    Outcome of inbound verification.

    Attributes:
        verified: Whether the signature was valid
        reason: Failure reason if not verified
    """
    verified: bool
    reason: InvalidReason | None = None

    @classmethod
    def valid(cls) -> VerificationResult:
        return cls(verified=True)

    @classmethod
    def invalid(cls, reason: InvalidReason) -> VerificationResult:
        return cls(verified=False, reason=reason)

    @property
    def error(self) -> str | None:
        """Human readable failure reason, None when verified."""
        return self.reason.value if self.reason is not None else None


@dataclass(frozen=True)
class SigningCredential:
    """
    Credential used to re-sign forwarded requests.

    Attributes:
        access_key: AWS access key id
        secret_key: AWS secret access key
        session_token: Optional session token for temporary credentials
        region: Default signing region
        service: Signing service name
    """
    access_key: str
    secret_key: str
    session_token: str | None = None
    region: str = "us-east-1"
    service: str = "lambda"

    def __repr__(self) -> str:
        return (
            f"SigningCredential(access_key={self.access_key!r}, "
            f"region={self.region!r}, service={self.service!r})"
        )


@dataclass
class WebhookState:
    """
    Verification state attached to requests by the middleware.

    Attributes:
        signed: Whether the request carried a signature header
        result: Verification result if signed
    """
    signed: bool
    result: VerificationResult | None = None


@dataclass(frozen=True)
class WebhookEvent:
    """Fields extracted from a delivered webhook payload."""
    post_id: str
    event_type: str
    uuid: str


@dataclass
class PostEvent:
    """
    Envelope published to the event bus.

    ``post`` is only present for created/updated events.
    """
    uuid: str
    event_type: str
    post: dict[str, Any] | None = None

    def detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"uuid": self.uuid}
        if self.post is not None:
            detail["post"] = self.post
        return detail
