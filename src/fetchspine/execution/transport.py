"""Request/response models and the transport that puts them on the wire.

``RequestSpec`` is an already-constructed request; ``Response`` is what a
completed call returns, whatever its status.  A ``Transport`` only moves
bytes: it raises raw transport exceptions and returns non-2xx responses
untouched, leaving classification to the executor.

``HttpxTransport`` is the production transport, wrapping an
``httpx.AsyncClient`` with no client-side timeout so the executor's
per-attempt deadline is the only one in force.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlsplit

import httpx

from fetchspine.core.errors import ClassifiedError, ErrorKind
from fetchspine.core.hashing import request_signature
from fetchspine.core.logging import get_logger

logger = get_logger(__name__)

Body = bytes | str | dict | list | None


@dataclass(frozen=True)
class RequestSpec:
    """An outbound request, ready to send.

    A URL that cannot be parsed (bad port, invalid host) raises an
    ``UNKNOWN`` ``ClassifiedError`` here, before any attempt.

    Attributes:
        method: HTTP method (normalized to upper case)
        url: Absolute target URL
        headers: Request headers
        body: Raw bytes, text, or a JSON-serializable dict/list
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Body = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", dict(self.headers))
        try:
            httpx.URL(self.url)
            urlsplit(self.url).port
        except (httpx.InvalidURL, ValueError) as exc:
            raise ClassifiedError(ErrorKind.UNKNOWN, f"Invalid request URL: {self.url}", cause=exc) from exc

    def content(self) -> bytes | None:
        """Body rendered as bytes (dict/list bodies are JSON-encoded)."""
        if self.body is None:
            return None
        if isinstance(self.body, bytes):
            return self.body
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return json.dumps(self.body, ensure_ascii=False).encode("utf-8")

    def signature(self) -> str:
        """Dedup signature: method + normalized URL + serialized body."""
        return request_signature(self.method, self.url, self.body)

    @property
    def host(self) -> str:
        return httpx.URL(self.url).host


@dataclass(frozen=True)
class Response:
    """A completed HTTP exchange.

    Attributes:
        status_code: HTTP status
        headers: Case-insensitive response headers
        body: Raw response body
    """

    status_code: int
    headers: Mapping[str, str] = field(default_factory=httpx.Headers)
    body: bytes = b""

    def __post_init__(self) -> None:
        if not isinstance(self.headers, httpx.Headers):
            object.__setattr__(self, "headers", httpx.Headers(self.headers))

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)


@runtime_checkable
class Transport(Protocol):
    """Sends a request and returns the completed response."""

    async def send(self, request: RequestSpec) -> Response:
        ...

    async def aclose(self) -> None:
        ...


class HttpxTransport:
    """Transport backed by ``httpx.AsyncClient``.

    Args:
        client: Existing client to use; one is created (and owned) if omitted
        user_agent: Default User-Agent for requests without one
        follow_redirects: Follow 3xx responses
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        user_agent: str = "fetchspine/0.1",
        follow_redirects: bool = True,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=None, follow_redirects=follow_redirects)
        self.user_agent = user_agent

    async def send(self, request: RequestSpec) -> Response:
        headers = dict(request.headers)
        if not any(k.lower() == "user-agent" for k in headers):
            headers["User-Agent"] = self.user_agent
        if isinstance(request.body, (dict, list)) and not any(k.lower() == "content-type" for k in headers):
            headers["Content-Type"] = "application/json"

        resp = await self._client.request(
            request.method,
            request.url,
            headers=headers,
            content=request.content(),
        )
        logger.debug("transport_response", method=request.method, url=request.url, status=resp.status_code)
        return Response(status_code=resp.status_code, headers=resp.headers, body=resp.content)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["Body", "RequestSpec", "Response", "Transport", "HttpxTransport"]
