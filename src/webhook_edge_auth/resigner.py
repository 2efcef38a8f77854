"""
Outbound request re-signing with AWS SigV4.

The origin only accepts requests signed by the edge function's own
identity, so every forwarded request is signed again here after the
inbound webhook signature has been verified.
"""

from typing import Any

import structlog
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials

from .headers import normalize_headers, strip_hop_headers
from .http_request import HttpRequest, as_http_request
from .models import SigningCredential

logger = structlog.get_logger(__name__)

# <url-id>.lambda-url.<region>.on.aws
_FUNCTION_URL_MARKER = "lambda-url"


def region_from_host(host: str) -> str | None:
    """
    Extract the region from a Lambda function URL host name.

    Examples:
        >>> region_from_host("abc123.lambda-url.eu-west-1.on.aws")
        'eu-west-1'
        >>> region_from_host("example.com") is None
        True
    """
    labels = host.split(":")[0].split(".")
    if len(labels) > 2 and labels[1] == _FUNCTION_URL_MARKER:
        return labels[2]
    return None


class RequestSigner:
    """
    Signs HttpRequests for the trusted origin.

    Args:
        credential: Credential to sign with. ``None`` makes ``sign`` raise
            ``botocore.exceptions.NoCredentialsError``.

    Example:
        >>> signer = RequestSigner(SigningCredential("AKID", "secret"))
        >>> signed = signer.sign(HttpRequest(hostname="abc.lambda-url.us-east-1.on.aws"))
        >>> signed.headers["authorization"].startswith("AWS4-HMAC-SHA256")
        True
    """

    def __init__(self, credential: SigningCredential | None):
        self.credential = credential

    def _credentials(self) -> Credentials | None:
        if self.credential is None:
            return None
        return Credentials(
            access_key=self.credential.access_key,
            secret_key=self.credential.secret_key,
            token=self.credential.session_token or None,
        )

    def sign(self, request: Any, signing_region: str | None = None) -> HttpRequest:
        """
        Sign a request and return a signed copy.

        The input is not modified. Header names on the result are lowercase
        and hop headers (``x-forwarded-for``) are removed before signing.

        Args:
            request: HttpRequest or any value passing ``is_http_request``
            signing_region: Region to scope the signature to. Defaults to the
                credential's region.

        Returns:
            Signed HttpRequest

        Raises:
            ValueError: If ``request`` does not have the HttpRequest shape
            botocore.exceptions.NoCredentialsError: If no credential is set
        """
        signed = as_http_request(request)
        signed.headers = normalize_headers(strip_hop_headers(signed.headers))

        region = signing_region or (self.credential.region if self.credential else None)
        service = self.credential.service if self.credential else "lambda"

        aws_request = AWSRequest(
            method=signed.method,
            url=signed.url,
            headers=dict(signed.headers),
            data=signed.body or b"",
        )
        SigV4Auth(self._credentials(), service, region).add_auth(aws_request)

        for key, value in aws_request.headers.items():
            signed.headers[key.lower()] = value

        logger.debug(
            "request_signed",
            method=signed.method,
            host=signed.hostname,
            path=signed.path,
            region=region,
            service=service,
        )
        return signed
