"""
HTTP request value used as the unit of outbound re-signing.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Union
from urllib.parse import parse_qs, quote, urlencode, urlsplit

QueryValue = Union[str, list[str], None]

_REQUIRED_FIELDS = ("method", "protocol", "hostname", "path")


def _clone_query(query: Mapping[str, QueryValue]) -> dict[str, QueryValue]:
    return {
        name: list(value) if isinstance(value, list) else value
        for name, value in query.items()
    }


@dataclass
class HttpRequest:
    """
    An outbound HTTP request.

    Missing options fall back to a GET over https to ``/``. ``protocol``
    always ends with ``:`` and ``path`` always starts with ``/``.
    ``headers`` and ``query`` are owned by the instance; ``clone()`` copies
    them so the clone can be mutated freely.

    Attributes:
        method: HTTP method
        protocol: URL scheme including the trailing colon (``https:``)
        hostname: Target host name
        port: Optional port
        path: Request path
        query: Query parameters; values are a string, a list of strings or None
        headers: Request headers (case is the caller's responsibility)
        body: Optional request body
        username: Optional userinfo user
        password: Optional userinfo password
        fragment: Optional URL fragment
    """
    method: str = "GET"
    protocol: str = "https:"
    hostname: str = "localhost"
    port: int | None = None
    path: str = "/"
    query: dict[str, QueryValue] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None
    username: str | None = None
    password: str | None = None
    fragment: str | None = None

    def __post_init__(self) -> None:
        self.method = (self.method or "GET").upper()
        if not self.protocol:
            self.protocol = "https:"
        elif not self.protocol.endswith(":"):
            self.protocol = f"{self.protocol}:"
        if not self.path:
            self.path = "/"
        elif not self.path.startswith("/"):
            self.path = f"/{self.path}"
        if self.query is None:
            self.query = {}
        if self.headers is None:
            self.headers = {}
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")

    @classmethod
    def from_url(
        cls,
        url: str,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        body: bytes | str | None = None,
    ) -> HttpRequest:
        """Build a request from an absolute URL."""
        parts = urlsplit(url)
        query: dict[str, QueryValue] = {}
        for name, values in parse_qs(parts.query, keep_blank_values=True).items():
            query[name] = values[0] if len(values) == 1 else values
        return cls(
            method=method,
            protocol=parts.scheme or "https",
            hostname=parts.hostname or "localhost",
            port=parts.port,
            path=parts.path,
            query=query,
            headers=dict(headers or {}),
            body=body,
            username=parts.username,
            password=parts.password,
            fragment=parts.fragment or None,
        )

    def clone(self) -> HttpRequest:
        """Copy with independently mutable headers and query."""
        return replace(
            self,
            headers=dict(self.headers),
            query=_clone_query(self.query),
        )

    @property
    def query_string(self) -> str:
        pairs: list[tuple[str, str]] = []
        for name, value in self.query.items():
            if value is None:
                pairs.append((name, ""))
            elif isinstance(value, list):
                pairs.extend((name, item) for item in value)
            else:
                pairs.append((name, value))
        return urlencode(pairs, quote_via=quote)

    @property
    def url(self) -> str:
        """Absolute URL of the request."""
        netloc = self.hostname
        if self.port is not None:
            netloc = f"{netloc}:{self.port}"
        if self.username is not None:
            userinfo = quote(self.username, safe="")
            if self.password is not None:
                userinfo = f"{userinfo}:{quote(self.password, safe='')}"
            netloc = f"{userinfo}@{netloc}"
        url = f"{self.protocol}//{netloc}{self.path}"
        query = self.query_string
        if query:
            url = f"{url}?{query}"
        if self.fragment:
            url = f"{url}#{self.fragment}"
        return url


def _get(value: Any, name: str) -> tuple[bool, Any]:
    if isinstance(value, Mapping):
        return name in value, value.get(name)
    return hasattr(value, name), getattr(value, name, None)


def is_http_request(value: Any) -> bool:
    """
    Check whether ``value`` has the shape of an HttpRequest.

    Accepts any object or mapping exposing ``method``, ``protocol``,
    ``hostname`` and ``path`` plus mapping-typed ``query`` and ``headers``.
    """
    if value is None:
        return False
    for name in _REQUIRED_FIELDS:
        present, _ = _get(value, name)
        if not present:
            return False
    for name in ("query", "headers"):
        _, field_value = _get(value, name)
        if not isinstance(field_value, Mapping):
            return False
    return True


def as_http_request(value: Any) -> HttpRequest:
    """
    Convert a structurally compatible value into an HttpRequest copy.

    Raises:
        ValueError: If the value does not have the HttpRequest shape
    """
    if isinstance(value, HttpRequest):
        return value.clone()
    if not is_http_request(value):
        raise ValueError("Value does not have the shape of an HTTP request")
    options = {
        name: _get(value, name)[1]
        for name in HttpRequest.__dataclass_fields__
        if _get(value, name)[0]
    }
    options["headers"] = dict(options["headers"])
    options["query"] = _clone_query(options["query"])
    return HttpRequest(**options)
