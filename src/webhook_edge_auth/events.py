"""
Webhook API behind the edge: turns verified deliveries into bus events.

A delivery names a post and an event type. For created/updated posts the
post is fetched from the content API; the result is published to
EventBridge. Repeated deliveries of the same body are answered from a
local idempotency cache.
"""

from __future__ import annotations

import base64
import functools
import hashlib
import json
import time
from collections import OrderedDict
from typing import Any, Mapping

import boto3
import httpx
import structlog

from .config import Settings, configure_logging
from .models import PostEvent, WebhookEvent

logger = structlog.get_logger(__name__)

POST_CREATED = "post_created"
POST_UPDATED = "post_updated"
POST_DELETED = "post_deleted"

EVENT_TYPES = frozenset({POST_CREATED, POST_UPDATED, POST_DELETED})

EVENT_SOURCE = "serverlessWebhookApi"

POST_BY_ID_QUERY = """
query PostById($id: ID!) {
  post(id: $id) {
    id
    publication {
      id
    }
    publishedAt
    updatedAt
    title
    subtitle
    brief
    content {
      markdown
    }
  }
}
"""


class PostFetchError(Exception):
    """The content API answered with GraphQL errors."""

    def __init__(self, errors: Any):
        super().__init__(f"Error fetching post: {errors}")
        self.errors = errors


class EventPublishError(Exception):
    """EventBridge rejected the entry."""


def parse_webhook_event(body: str | bytes | Mapping[str, Any] | None) -> WebhookEvent:
    """
    Extract post id, event type and delivery uuid from a webhook body.

    Raises:
        ValueError: If the body is not JSON or a required field is missing
    """
    if body is None or isinstance(body, (str, bytes)):
        try:
            payload = json.loads(body or "{}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid payload: {e}") from e
    else:
        payload = body

    try:
        data = payload["data"]
        event = WebhookEvent(
            post_id=str(data["post"]["id"]),
            event_type=str(data["eventType"]),
            uuid=str(payload["metadata"]["uuid"]),
        )
    except (KeyError, TypeError) as e:
        raise ValueError(f"Invalid payload: missing {e}") from e

    if event.event_type not in EVENT_TYPES:
        raise ValueError(f"Invalid payload: unknown event type {event.event_type!r}")
    return event


def idempotency_key(body: str | bytes) -> str:
    """Deterministic key for a delivery: SHA-256 of the raw body."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    return hashlib.sha256(body).hexdigest()


class IdempotencyCache:
    """
    Local LRU cache of responses keyed by idempotency key.

    Args:
        max_size: Maximum number of stored responses
        expires_after_seconds: Lifetime of a stored response
    """

    def __init__(self, max_size: int = 100, expires_after_seconds: float = 2 * 60 * 60):
        self.max_size = max_size
        self.expires_after_seconds = expires_after_seconds
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if time.monotonic() - stored_at > self.expires_after_seconds:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def put(self, key: str, value: Any) -> None:
        self._entries[key] = (time.monotonic(), value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)


class PostFetcher:
    """
    Fetches posts from the content GraphQL API.

    Args:
        url: GraphQL endpoint
        timeout_s: Request timeout in seconds
    """

    def __init__(self, url: str = "https://gql.hashnode.com", timeout_s: float = 5.0):
        self.url = url
        self.timeout_s = timeout_s

    def fetch_post(self, post_id: str) -> dict[str, Any] | None:
        """
        Fetch a post by id.

        Raises:
            PostFetchError: If the API returned GraphQL errors
            httpx.HTTPError: On network or HTTP status errors
        """
        with httpx.Client(timeout=self.timeout_s) as client:
            response = client.post(
                self.url,
                json={
                    "query": POST_BY_ID_QUERY,
                    "variables": {"id": post_id},
                    "operationName": "PostById",
                },
            )
        response.raise_for_status()

        data = response.json()
        if data.get("errors"):
            raise PostFetchError(data["errors"])
        return (data.get("data") or {}).get("post")


class EventPublisher:
    """
    Publishes post events to an EventBridge bus.

    Args:
        event_bus_name: Target bus
        client: Pre-built ``events`` client
    """

    def __init__(self, event_bus_name: str = "default", client: Any = None):
        self.event_bus_name = event_bus_name
        self._client = client or boto3.client("events")

    def publish(self, event: PostEvent) -> None:
        response = self._client.put_events(
            Entries=[
                {
                    "EventBusName": self.event_bus_name,
                    "Source": EVENT_SOURCE,
                    "DetailType": event.event_type,
                    "Detail": json.dumps(event.detail()),
                },
            ],
        )
        if response.get("FailedEntryCount"):
            entry = response["Entries"][0]
            raise EventPublishError(
                f"{entry.get('ErrorCode')}: {entry.get('ErrorMessage')}"
            )
        logger.debug("event_published", uuid=event.uuid, event_type=event.event_type)


class WebhookProcessor:
    """
    Handles one verified webhook delivery.

    Args:
        fetcher: Content API client
        publisher: Event bus publisher
        cache: Idempotency cache; a fresh one is created if omitted
    """

    def __init__(
        self,
        fetcher: PostFetcher,
        publisher: EventPublisher,
        cache: IdempotencyCache | None = None,
    ):
        self.fetcher = fetcher
        self.publisher = publisher
        self.cache = cache if cache is not None else IdempotencyCache()

    def process(self, body: str | bytes | None) -> tuple[int, dict[str, Any]]:
        """
        Process a delivery body.

        Returns:
            (status_code, response_body)
        """
        key = idempotency_key(body or b"")
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("duplicate_delivery", idempotency_key=key)
            return cached

        result = self._process(body)
        if result[0] < 500:
            self.cache.put(key, result)
        return result

    def _process(self, body: str | bytes | None) -> tuple[int, dict[str, Any]]:
        try:
            webhook = parse_webhook_event(body)
        except ValueError as e:
            logger.error("unable_to_parse_payload", error=str(e))
            return 400, {"message": "Invalid payload", "error": str(e)}

        post: dict[str, Any] | None = None
        if webhook.event_type != POST_DELETED:
            try:
                post = self.fetcher.fetch_post(webhook.post_id) or {}
            except PostFetchError as e:
                logger.error("unable_to_fetch_post", error=str(e))
                return 400, {"message": "Error fetching post", "error": str(e)}
            except httpx.HTTPError as e:
                logger.error("unable_to_fetch_post", error=str(e))
                return 500, {"message": "Error fetching post", "error": str(e)}

        self.publisher.publish(
            PostEvent(uuid=webhook.uuid, event_type=webhook.event_type, post=post)
        )

        return 200, {"message": "Event published", "timestamp": int(time.time() * 1000)}


@functools.lru_cache(maxsize=None)
def _default_processor() -> WebhookProcessor:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    return WebhookProcessor(
        fetcher=PostFetcher(settings.gql_url),
        publisher=EventPublisher(settings.event_bus_name),
    )


def api_handler(event: dict[str, Any], context: Any = None) -> dict[str, Any]:
    """Lambda function URL entry point for verified deliveries."""
    body: str | bytes | None = event.get("body")
    if body and event.get("isBase64Encoded"):
        body = base64.b64decode(body)

    status_code, response_body = _default_processor().process(body)
    return {
        "statusCode": status_code,
        "headers": {"content-type": "application/json"},
        "body": json.dumps(response_body),
    }


def consumer_handler(event: dict[str, Any], context: Any = None) -> str | None:
    """EventBridge rule target: logs each post event it receives."""
    event_type = event.get("detail-type")
    detail = event.get("detail") or {}
    logger.debug(
        "event_received",
        event_type=event_type,
        uuid=detail.get("uuid"),
        post_id=(detail.get("post") or {}).get("id"),
    )
    return event_type
