"""
Client for forwarding signed requests to the trusted origin.
"""

from typing import Any

import httpx
import structlog

from .http_request import HttpRequest, as_http_request

logger = structlog.get_logger(__name__)


class OriginClient:
    """
    Sends re-signed requests to the origin.

    The request is sent exactly as signed: same method, URL, headers and
    body. Anything that changes one of those would invalidate the
    signature.

    Args:
        timeout_s: Request timeout in seconds. Default: 5.0

    Example:
        >>> client = OriginClient()
        >>> signed = RequestSigner(credential).sign(request)
        >>> response = await client.forward(signed)
        >>> response.status_code
        200
    """

    def __init__(self, timeout_s: float = 5.0):
        self.timeout_s = timeout_s

    def _prepare(self, request: Any) -> HttpRequest:
        # Raises ValueError for values without the request shape
        prepared = as_http_request(request)
        logger.debug(
            "forwarding_request",
            method=prepared.method,
            host=prepared.hostname,
            path=prepared.path,
        )
        return prepared

    async def forward(self, request: Any) -> httpx.Response:
        """
        Forward a signed request asynchronously.

        Args:
            request: Signed HttpRequest (or any value passing is_http_request)

        Returns:
            The origin's response

        Raises:
            ValueError: If request does not have the HttpRequest shape
            httpx.HTTPError: On network errors
        """
        prepared = self._prepare(request)

        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            response = await client.request(
                prepared.method,
                prepared.url,
                headers=prepared.headers,
                content=prepared.body,
            )

        return response

    def forward_sync(self, request: Any) -> httpx.Response:
        """
        Forward a signed request synchronously.

        Args:
            request: Signed HttpRequest (or any value passing is_http_request)

        Returns:
            The origin's response

        Raises:
            ValueError: If request does not have the HttpRequest shape
            httpx.HTTPError: On network errors
        """
        prepared = self._prepare(request)

        with httpx.Client(timeout=self.timeout_s) as client:
            response = client.request(
                prepared.method,
                prepared.url,
                headers=prepared.headers,
                content=prepared.body,
            )

        return response
