"""
Edge handler for CloudFront origin-request events.

Verifies the webhook signature of the viewer request and re-signs it
for the function URL origin. Requests that fail verification are
answered with 401 at the edge and never reach the origin.
"""

from __future__ import annotations

import base64
import binascii
import functools
import json
from typing import Any
from urllib.parse import parse_qs

import structlog

from .config import Settings, configure_logging
from .headers import HOP_HEADERS, SIGNATURE_HEADER
from .http_request import HttpRequest, QueryValue
from .models import VerificationResult
from .resigner import RequestSigner, region_from_host
from .secret_store import SecretProvider, SecretsManagerProvider, StaticSecretProvider
from .signing import DEFAULT_VALID_FOR_SECONDS, validate_signature

logger = structlog.get_logger(__name__)

CloudFrontHeaders = dict[str, list[dict[str, str]]]


def _first_header_value(headers: CloudFrontHeaders, name: str) -> str | None:
    entries = headers.get(name) or []
    if not entries:
        return None
    return entries[0].get("value") or None


def _decode_body(body: dict[str, Any] | None) -> bytes:
    """Decode a CloudFront body object into raw bytes."""
    if not body or not body.get("data"):
        return b""
    if body.get("inputTruncated"):
        logger.warning("request_body_truncated")
    data = body["data"]
    if body.get("encoding") == "base64":
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            logger.warning("request_body_not_base64")
            return b""
    return data.encode("utf-8")


def _parse_querystring(querystring: str | None) -> dict[str, QueryValue]:
    query: dict[str, QueryValue] = {}
    for name, values in parse_qs(querystring or "", keep_blank_values=True).items():
        query[name] = values[0] if len(values) == 1 else values
    return query


def unauthorized_response(result: VerificationResult) -> dict[str, Any]:
    """CloudFront generated response for a rejected webhook."""
    body = json.dumps({"error": result.error or "Unauthorized"})
    return {
        "status": "401",
        "statusDescription": "Unauthorized",
        "headers": {
            "content-type": [{"key": "Content-Type", "value": "application/json"}],
        },
        "body": body,
    }


class EdgeAuthHandler:
    """
    Verify-then-re-sign pipeline for one CloudFront request at a time.

    Args:
        secret_provider: Supplies the shared webhook secret
        signer: Re-signs verified requests for the origin
        valid_for_seconds: Replay tolerance (0 disables the check)
    """

    def __init__(
        self,
        secret_provider: SecretProvider,
        signer: RequestSigner,
        valid_for_seconds: int = DEFAULT_VALID_FOR_SECONDS,
    ):
        self.secret_provider = secret_provider
        self.signer = signer
        self.valid_for_seconds = valid_for_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> EdgeAuthHandler:
        provider: SecretProvider
        if settings.webhook_secret:
            provider = StaticSecretProvider(settings.webhook_secret)
        else:
            provider = SecretsManagerProvider(
                secret_id=settings.secret_name,
                region_name=settings.secret_region,
            )
        return cls(
            secret_provider=provider,
            signer=RequestSigner(settings.credential),
            valid_for_seconds=settings.valid_for_seconds,
        )

    def handle(self, event: dict[str, Any]) -> dict[str, Any]:
        """
        Process a CloudFront origin-request event.

        Returns:
            The signed CloudFront request, or a 401 response when the
            webhook signature does not verify.
        """
        request = event["Records"][0]["cf"]["request"]
        headers: CloudFrontHeaders = request.setdefault("headers", {})
        logger.debug(
            "request_received",
            method=request.get("method"),
            uri=request.get("uri"),
        )

        body = _decode_body(request.get("body"))
        result = validate_signature(
            signature_header=_first_header_value(headers, SIGNATURE_HEADER),
            payload=body,
            secret=self.secret_provider.get_secret(),
            valid_for_seconds=self.valid_for_seconds,
        )
        if not result.verified:
            logger.error("invalid_signature", reason=result.error)
            return unauthorized_response(result)

        host = _first_header_value(headers, "host") or ""
        outbound = HttpRequest(
            method=request.get("method", "GET"),
            hostname=host.split(":")[0],
            path=request.get("uri", "/"),
            query=_parse_querystring(request.get("querystring")),
            headers={
                name: entries[0]["value"]
                for name, entries in headers.items()
                if entries and name.lower() not in HOP_HEADERS
            },
            body=body or None,
        )
        signed = self.signer.sign(outbound, signing_region=region_from_host(host))

        for name, value in signed.headers.items():
            existing = headers.get(name)
            key = existing[0]["key"] if existing and "key" in existing[0] else name
            headers[name] = [{"key": key, "value": value}]

        for name in HOP_HEADERS:
            headers.pop(name, None)

        # Forward the exact query string the signature covers
        request["querystring"] = signed.query_string

        return request


@functools.lru_cache(maxsize=None)
def _default_handler() -> EdgeAuthHandler:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    return EdgeAuthHandler.from_settings(settings)


def handler(event: dict[str, Any], context: Any = None) -> dict[str, Any]:
    """Lambda@Edge entry point."""
    structlog.contextvars.clear_contextvars()
    request_id = getattr(context, "aws_request_id", None)
    if request_id:
        structlog.contextvars.bind_contextvars(request_id=request_id)
    return _default_handler().handle(event)
