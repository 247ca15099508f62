"""Tests for HttpxClient over httpx.MockTransport."""

import json
import logging

import httpx
import pytest

from shopickup.errors.carrier import ErrorCategory
from shopickup.errors.translation import translate_transport_error
from shopickup.http.client import HttpError, HttpxClient


def _client(handler) -> HttpxClient:
    return HttpxClient(timeout=5.0, transport=httpx.MockTransport(handler))


class TestSuccessfulResponses:
    """2xx responses are returned as HttpResponse."""

    @pytest.mark.asyncio
    async def test_get_json(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"clFox": "CLFOX0001"})

        response = await _client(handler).get(
            "https://webapi.foxpost.hu/api/tracking/CLFOX0001",
            headers={"Authorization": "Basic abc"},
            params={"lang": "hu"},
        )
        assert response.status == 200
        assert response.body == {"clFox": "CLFOX0001"}
        assert seen["url"] == "https://webapi.foxpost.hu/api/tracking/CLFOX0001?lang=hu"
        assert seen["auth"] == "Basic abc"

    @pytest.mark.asyncio
    async def test_post_json_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201, json={"echo": json.loads(request.content)})

        response = await _client(handler).post("https://example.test/api", json=[{"id": 1}])
        assert response.status == 201
        assert response.body == {"echo": [{"id": 1}]}

    @pytest.mark.asyncio
    async def test_post_form_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
            return httpx.Response(200, json={"body": request.content.decode()})

        response = await _client(handler).post(
            "https://example.test/oauth2/token",
            data={"grant_type": "client_credentials"},
        )
        assert response.body == {"body": "grant_type=client_credentials"}

    @pytest.mark.asyncio
    async def test_bytes_response(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"%PDF-1.4 label")

        response = await _client(handler).post("https://example.test/label", json=["B1"], response_type="bytes")
        assert response.body == b"%PDF-1.4 label"

    @pytest.mark.asyncio
    async def test_empty_json_body_is_none(self):
        response = await _client(lambda request: httpx.Response(204)).get("https://example.test")
        assert response.body is None

    @pytest.mark.asyncio
    async def test_non_json_text_falls_back_to_text(self):
        response = await _client(lambda request: httpx.Response(200, text="OK")).get("https://example.test")
        assert response.body == "OK"


class TestErrorResponses:
    """Non-2xx and transport failures raise HttpError."""

    @pytest.mark.asyncio
    async def test_status_error_carries_response(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"error": "TOO_MANY"}, headers={"Retry-After": "12"})

        with pytest.raises(HttpError) as exc_info:
            await _client(handler).get("https://example.test")
        error = exc_info.value
        assert error.status == 429
        assert error.response.data == {"error": "TOO_MANY"}
        assert error.response.headers["retry-after"] == "12"

    @pytest.mark.asyncio
    async def test_status_error_translates(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"error": "TOO_MANY"}, headers={"Retry-After": "12"})

        with pytest.raises(HttpError) as exc_info:
            await _client(handler).get("https://example.test")
        translated = translate_transport_error(exc_info.value, carrier="Acme")
        assert translated.category is ErrorCategory.RATE_LIMIT
        assert translated.retry_after_ms == 12_000

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(HttpError) as exc_info:
            await _client(handler).get("https://example.test")
        assert exc_info.value.status is None
        assert exc_info.value.response is None
        assert "connection refused" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_translates_to_transient(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(HttpError) as exc_info:
            await _client(handler).get("https://example.test")
        translated = translate_transport_error(exc_info.value, carrier="GLS")
        assert translated.category is ErrorCategory.TRANSIENT
        assert translated.message.startswith("GLS connection error")


class TestRequestLogging:
    @pytest.mark.asyncio
    async def test_authorization_header_not_logged(self, caplog):
        caplog.set_level(logging.DEBUG, logger="shopickup.http.client")
        await _client(lambda request: httpx.Response(200, json={})).get(
            "https://example.test",
            headers={"Authorization": "Bearer secret-token", "Api-key": "k-123"},
        )
        assert "secret-token" not in caplog.text
        assert "k-123" not in caplog.text
        assert "REDACTED" in caplog.text
