"""
Webhook edge authentication for Python

Verify HMAC-signed webhook deliveries at the edge and re-sign them with
SigV4 for a trusted origin.
"""

from .models import (
    InvalidReason,
    SignatureHeader,
    SigningCredential,
    VerificationRequest,
    VerificationResult,
    WebhookState,
)
from .headers import (
    SIGNATURE_HEADER,
    SignatureHeaderError,
    format_signature_header,
    parse_signature_header,
)
from .signing import (
    canonical_json,
    compare_signatures,
    create_signature,
    is_within_window,
    validate_signature,
    verify_request,
)
from .http_request import HttpRequest, is_http_request
from .resigner import RequestSigner, region_from_host
from .secret_store import SecretsManagerProvider, StaticSecretProvider
from .client import OriginClient
from .edge import EdgeAuthHandler

__version__ = "0.1.0"

__all__ = [
    "InvalidReason",
    "SignatureHeader",
    "SigningCredential",
    "VerificationRequest",
    "VerificationResult",
    "WebhookState",
    "SIGNATURE_HEADER",
    "SignatureHeaderError",
    "format_signature_header",
    "parse_signature_header",
    "canonical_json",
    "compare_signatures",
    "create_signature",
    "is_within_window",
    "validate_signature",
    "verify_request",
    "HttpRequest",
    "is_http_request",
    "RequestSigner",
    "region_from_host",
    "SecretsManagerProvider",
    "StaticSecretProvider",
    "OriginClient",
    "EdgeAuthHandler",
]

# Middleware imports - optional, require framework dependencies
try:
    from .middleware.asgi import WebhookSignatureASGIMiddleware
    __all__.append("WebhookSignatureASGIMiddleware")
except ImportError:
    pass

from .middleware.wsgi import WebhookSignatureWSGIMiddleware
__all__.append("WebhookSignatureWSGIMiddleware")
