"""
ASGI middleware for webhook signature verification (FastAPI/Starlette).
"""

from typing import Any, Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..headers import SIGNATURE_HEADER
from ..models import InvalidReason, VerificationResult, WebhookState
from ..secret_store import SecretProvider
from ..signing import DEFAULT_VALID_FOR_SECONDS, validate_signature

logger = structlog.get_logger(__name__)


class WebhookSignatureASGIMiddleware(BaseHTTPMiddleware):
    """
    ASGI middleware for webhook signature verification.

    Attaches verification state to `request.state.webhook` with:
    - signed: bool - whether request had a signature header
    - result: VerificationResult | None - verification result if signed

    Args:
        app: ASGI application
        secret_provider: Supplies the shared webhook secret
        require_verified: If True (default), return 401 for unsigned or
            invalid requests. If False, operate in observe mode.
        valid_for_seconds: Replay tolerance (0 disables the check)

    Example (FastAPI):
        >>> app = FastAPI()
        >>> app.add_middleware(
        ...     WebhookSignatureASGIMiddleware,
        ...     secret_provider=StaticSecretProvider("whsec_..."),
        ... )
    """

    def __init__(
        self,
        app: Any,
        secret_provider: SecretProvider,
        require_verified: bool = True,
        valid_for_seconds: int = DEFAULT_VALID_FOR_SECONDS,
    ):
        super().__init__(app)
        self.secret_provider = secret_provider
        self.require_verified = require_verified
        self.valid_for_seconds = valid_for_seconds

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Any],
    ) -> Response:
        signature_header = request.headers.get(SIGNATURE_HEADER)

        if not signature_header:
            request.state.webhook = WebhookState(signed=False, result=None)

            if self.require_verified:
                return self._deny(
                    VerificationResult.invalid(InvalidReason.MISSING_SIGNATURE)
                )

            return await call_next(request)

        # Starlette caches the body so the endpoint can still read it
        body = await request.body()
        result = validate_signature(
            signature_header=signature_header,
            payload=body,
            secret=self.secret_provider.get_secret(),
            valid_for_seconds=self.valid_for_seconds,
        )

        request.state.webhook = WebhookState(signed=True, result=result)

        if not result.verified:
            logger.error("invalid_signature", reason=result.error, path=request.url.path)
            if self.require_verified:
                return self._deny(result)

        response = await call_next(request)
        response.headers["X-Webhook-Decision"] = "allow" if result.verified else "observe"
        return response

    def _deny(self, result: VerificationResult) -> Response:
        return JSONResponse(
            status_code=401,
            content={"error": result.error or "Signature verification failed"},
            headers={"X-Webhook-Decision": "deny"},
        )
