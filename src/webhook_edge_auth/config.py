"""
Environment configuration and logging setup.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

import structlog

from .models import SigningCredential
from .secret_store import DEFAULT_SECRET_NAME


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings.

    Attributes:
        credential: Credential for re-signing forwarded requests
        secret_name: Secrets Manager id of the webhook secret
        secret_region: Secrets Manager region
        webhook_secret: Static secret; bypasses Secrets Manager when set
        valid_for_seconds: Replay tolerance (0 disables)
        event_bus_name: Event bus receiving post events
        gql_url: Content API endpoint
        log_level: Logging level name
    """
    credential: SigningCredential
    secret_name: str = DEFAULT_SECRET_NAME
    secret_region: str = "us-east-1"
    webhook_secret: str | None = None
    valid_for_seconds: int = 30
    event_bus_name: str = "default"
    gql_url: str = "https://gql.hashnode.com"
    log_level: str = "DEBUG"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        """
        Load settings from environment variables.

        Raises:
            ValueError: If WEBHOOK_VALID_FOR_SECONDS is not a non-negative integer
        """
        if env is None:
            env = os.environ
        credential = SigningCredential(
            access_key=env.get("AWS_ACCESS_KEY_ID", ""),
            secret_key=env.get("AWS_SECRET_ACCESS_KEY", ""),
            session_token=env.get("AWS_SESSION_TOKEN") or None,
            region=env.get("AWS_REGION") or "us-east-1",
            service=env.get("WEBHOOK_SIGNING_SERVICE") or "lambda",
        )
        return cls(
            credential=credential,
            secret_name=env.get("WEBHOOK_SECRET_NAME") or DEFAULT_SECRET_NAME,
            secret_region=env.get("WEBHOOK_SECRET_REGION") or "us-east-1",
            webhook_secret=env.get("WEBHOOK_SECRET") or None,
            valid_for_seconds=_int_env(env, "WEBHOOK_VALID_FOR_SECONDS", 30),
            event_bus_name=env.get("EVENT_BUS_NAME") or "default",
            gql_url=env.get("HASHNODE_GQL_URL") or "https://gql.hashnode.com",
            log_level=(env.get("LOG_LEVEL") or "DEBUG").upper(),
        )


def configure_logging(level: str = "DEBUG") -> None:
    """Emit structlog events as JSON lines at or above ``level``."""
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level!r}")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=True,
    )
