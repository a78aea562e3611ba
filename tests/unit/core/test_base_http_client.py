"""Unit tests for the outbound HTTP client retry behavior."""

from unittest.mock import patch

import httpx
import pytest

from carelog.core.base_http_client import BaseHTTPClient
from carelog.core.exceptions import APIClientError, APITimeoutError

_RealAsyncClient = httpx.AsyncClient


def _patched_client(handler):
    def factory(**kwargs):
        return _RealAsyncClient(transport=httpx.MockTransport(handler), **kwargs)
    return patch("carelog.core.base_http_client.httpx.AsyncClient", side_effect=factory)


def _client(max_retries: int = 3) -> BaseHTTPClient:
    return BaseHTTPClient(
        api_key="secret",
        base_url="https://api.example.com/v1",
        timeout=5,
        max_retries=max_retries,
        retry_delay=0,
    )


class TestBaseHTTPClient:

    @pytest.mark.asyncio
    async def test_success_returns_json_and_sends_bearer_token(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        with _patched_client(handler):
            data = await _client().call_api(endpoint="/things", payload={"a": 1})

        assert data == {"ok": True}
        assert str(seen[0].url) == "https://api.example.com/v1/things"
        assert seen[0].headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400, text="bad request")

        with _patched_client(handler):
            with pytest.raises(APIClientError, match="400"):
                await _client().call_api()

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self):
        responses = [httpx.Response(503, text="busy"), httpx.Response(200, json={"done": 1})]

        def handler(request):
            return responses.pop(0)

        with _patched_client(handler):
            data = await _client().call_api()

        assert data == {"done": 1}
        assert responses == []

    @pytest.mark.asyncio
    async def test_rate_limit_exhausts_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429, text="slow down")

        with _patched_client(handler):
            with pytest.raises(APIClientError):
                await _client(max_retries=2).call_api()

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_timeouts_raise_timeout_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with _patched_client(handler):
            with pytest.raises(APITimeoutError):
                await _client(max_retries=2).call_api()

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        def handler(request):
            return httpx.Response(200, text="<html>")

        with _patched_client(handler):
            with pytest.raises(APIClientError, match="Non-JSON"):
                await _client().call_api()
