"""
WSGI middleware for webhook signature verification (Flask).
"""

from __future__ import annotations

import json
from io import BytesIO
from typing import Any, Callable, Iterable

import structlog

from ..models import InvalidReason, VerificationResult, WebhookState
from ..secret_store import SecretProvider
from ..signing import DEFAULT_VALID_FOR_SECONDS, validate_signature

logger = structlog.get_logger(__name__)

ENVIRON_KEY = "webhook_edge_auth.state"

DECISION_HEADER = "X-Webhook-Decision"

# x-hashnode-signature as it appears in a WSGI environ
_SIGNATURE_ENVIRON_KEY = "HTTP_X_HASHNODE_SIGNATURE"


def _read_body(environ: dict[str, Any]) -> bytes:
    """Read the request body and reset the input stream for downstream apps."""
    try:
        length = int(environ.get("CONTENT_LENGTH") or 0)
    except ValueError:
        length = 0
    stream = environ.get("wsgi.input")
    if length <= 0 or stream is None:
        return b""
    body = stream.read(length)
    environ["wsgi.input"] = BytesIO(body)
    return body


class WebhookSignatureWSGIMiddleware:
    """
    WSGI middleware for webhook signature verification.

    Attaches verification state to `environ["webhook_edge_auth.state"]` with:
    - signed: bool - whether request had a signature header
    - result: VerificationResult | None - verification result if signed

    Args:
        app: WSGI application
        secret_provider: Supplies the shared webhook secret
        require_verified: If True (default), return 401 for unsigned or
            invalid requests. If False, operate in observe mode.
        valid_for_seconds: Replay tolerance (0 disables the check)

    Example (Flask):
        >>> app = Flask(__name__)
        >>> app.wsgi_app = WebhookSignatureWSGIMiddleware(
        ...     app.wsgi_app,
        ...     secret_provider=StaticSecretProvider("whsec_..."),
        ... )
    """

    def __init__(
        self,
        app: Callable[..., Iterable[bytes]],
        secret_provider: SecretProvider,
        require_verified: bool = True,
        valid_for_seconds: int = DEFAULT_VALID_FOR_SECONDS,
    ):
        self.app = app
        self.secret_provider = secret_provider
        self.require_verified = require_verified
        self.valid_for_seconds = valid_for_seconds

    def __call__(
        self,
        environ: dict[str, Any],
        start_response: Callable[..., Any],
    ) -> Iterable[bytes]:
        signature_header = environ.get(_SIGNATURE_ENVIRON_KEY)

        if not signature_header:
            environ[ENVIRON_KEY] = WebhookState(signed=False, result=None)

            if self.require_verified:
                return _deny(
                    start_response,
                    VerificationResult.invalid(InvalidReason.MISSING_SIGNATURE),
                )

            return self.app(environ, start_response)

        result = validate_signature(
            signature_header=signature_header,
            payload=_read_body(environ),
            secret=self.secret_provider.get_secret(),
            valid_for_seconds=self.valid_for_seconds,
        )

        environ[ENVIRON_KEY] = WebhookState(signed=True, result=result)

        if not result.verified:
            logger.error(
                "invalid_signature",
                reason=result.error,
                path=environ.get("PATH_INFO", "/"),
            )
            if self.require_verified:
                return _deny(start_response, result)

        decision = "allow" if result.verified else "observe"
        return self.app(environ, _tag_decision(start_response, decision))


def _deny(start_response: Callable[..., Any], result: VerificationResult) -> Iterable[bytes]:
    payload = {"error": result.error or InvalidReason.SIGNATURE_MISMATCH.value}
    body = json.dumps(payload).encode("utf-8")
    start_response("401 Unauthorized", [
        ("Content-Type", "application/json"),
        ("Content-Length", str(len(body))),
        (DECISION_HEADER, "deny"),
    ])
    return [body]


def _tag_decision(start_response: Callable[..., Any], decision: str) -> Callable[..., Any]:
    """Wrap start_response so every response carries the decision header."""
    def tagged(status: str, headers: list[tuple[str, str]], exc_info: Any = None) -> Any:
        return start_response(status, [*headers, (DECISION_HEADER, decision)], exc_info)

    return tagged
