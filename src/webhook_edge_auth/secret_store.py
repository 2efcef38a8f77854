"""
Webhook secret providers.

A provider returns the current shared secret as a string. Retrieval
failures yield ``""`` so verification fails closed instead of crashing.
"""

import time
from typing import Any, Protocol

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

logger = structlog.get_logger(__name__)

DEFAULT_SECRET_NAME = "hashnode/webhook-secret"


class SecretProvider(Protocol):
    def get_secret(self) -> str:
        ...


class StaticSecretProvider:
    """Provider for a secret known up front (tests, local runs)."""

    def __init__(self, secret: str):
        self._secret = secret

    def get_secret(self) -> str:
        return self._secret


class SecretsManagerProvider:
    """
    Reads the webhook secret from AWS Secrets Manager.

    The value is cached for ``max_age_s`` seconds per process.

    Args:
        secret_id: Secret name or ARN
        region_name: Secrets Manager region (ignored when ``client`` is given)
        client: Pre-built ``secretsmanager`` client
        max_age_s: Cache lifetime in seconds. 0 disables caching.
    """

    def __init__(
        self,
        secret_id: str = DEFAULT_SECRET_NAME,
        region_name: str = "us-east-1",
        client: Any = None,
        max_age_s: float = 5.0,
    ):
        self.secret_id = secret_id
        self.max_age_s = max_age_s
        self._client = client or boto3.client("secretsmanager", region_name=region_name)
        self._cached: str | None = None
        self._fetched_at = 0.0

    def get_secret(self) -> str:
        now = time.monotonic()
        if self._cached is not None and now - self._fetched_at < self.max_age_s:
            return self._cached

        try:
            response = self._client.get_secret_value(SecretId=self.secret_id)
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "secret_retrieval_failed",
                secret_id=self.secret_id,
                error=str(e),
            )
            return ""

        secret = response.get("SecretString") or ""
        self._cached = secret
        self._fetched_at = now
        return secret
