"""Tests for request/response models and the httpx transport."""

import json

import httpx
import pytest

from fetchspine.core.errors import ClassifiedError, ErrorKind
from fetchspine.execution.transport import HttpxTransport, RequestSpec, Response, Transport


class TestRequestSpec:
    def test_method_normalized_and_headers_copied(self):
        headers = {"Accept": "application/json"}
        spec = RequestSpec("post", "https://api.example.com/x", headers)
        headers["Accept"] = "text/plain"
        assert spec.method == "POST"
        assert spec.headers == {"Accept": "application/json"}

    @pytest.mark.parametrize(
        "body,expected",
        [
            (None, None),
            (b"raw", b"raw"),
            ("text", b"text"),
            ({"name": "Ada"}, b'{"name": "Ada"}'),
            ([1, 2], b"[1, 2]"),
        ],
    )
    def test_content(self, body, expected):
        assert RequestSpec("POST", "https://x", body=body).content() == expected

    def test_signature_matches_equivalent_requests(self):
        a = RequestSpec("get", "https://API.example.com/x?b=1&a=2")
        b = RequestSpec("GET", "https://api.example.com/x?a=2&b=1")
        assert a.signature() == b.signature()

    def test_host(self):
        assert RequestSpec("GET", "https://api.example.com:8443/x").host == "api.example.com"

    @pytest.mark.parametrize("url", ["https://api.example.com:abc/x", "https://api.example.com:99999/x"])
    def test_invalid_url_is_classified(self, url):
        with pytest.raises(ClassifiedError) as exc_info:
            RequestSpec("GET", url)
        assert exc_info.value.kind is ErrorKind.UNKNOWN
        assert exc_info.value.retryable is False
        assert url in exc_info.value.message


class TestResponse:
    def test_headers_case_insensitive(self):
        response = Response(429, {"Retry-After": "2"})
        assert response.headers["retry-after"] == "2"

    def test_ok_text_json(self):
        response = Response(200, {}, b'{"a": 1}')
        assert response.ok
        assert response.text == '{"a": 1}'
        assert response.json() == {"a": 1}
        assert not Response(404).ok


class TestHttpxTransport:
    @pytest.mark.asyncio
    async def test_send_maps_request_and_response(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["headers"] = dict(request.headers)
            seen["body"] = request.content
            return httpx.Response(201, headers={"X-RateLimit-Remaining": "9"}, content=b'{"id": 7}')

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        transport = HttpxTransport(client, user_agent="fetchspine-test")

        response = await transport.send(RequestSpec("POST", "https://api.example.com/items", body={"name": "x"}))

        assert isinstance(transport, Transport)
        assert response.status_code == 201
        assert response.headers["x-ratelimit-remaining"] == "9"
        assert response.json() == {"id": 7}
        assert seen["method"] == "POST"
        assert seen["url"] == "https://api.example.com/items"
        assert seen["headers"]["user-agent"] == "fetchspine-test"
        assert seen["headers"]["content-type"] == "application/json"
        assert json.loads(seen["body"]) == {"name": "x"}
        await client.aclose()

    @pytest.mark.asyncio
    async def test_caller_headers_win(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            return httpx.Response(200)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        transport = HttpxTransport(client)
        await transport.send(
            RequestSpec("POST", "https://x.test/", {"User-Agent": "mine", "Content-Type": "text/csv"}, {"a": 1})
        )
        assert seen["user-agent"] == "mine"
        assert seen["content-type"] == "text/csv"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_non_2xx_is_returned_not_raised(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
        response = await HttpxTransport(client).send(RequestSpec("GET", "https://x.test/"))
        assert response.status_code == 503
        await client.aclose()

    @pytest.mark.asyncio
    async def test_transport_errors_propagate(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        with pytest.raises(httpx.ConnectError):
            await HttpxTransport(client).send(RequestSpec("GET", "https://x.test/"))
        await client.aclose()

    @pytest.mark.asyncio
    async def test_aclose_only_closes_owned_client(self):
        external = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        await HttpxTransport(external).aclose()
        assert not external.is_closed
        await external.aclose()

        owned = HttpxTransport()
        await owned.aclose()
        assert owned._client.is_closed
