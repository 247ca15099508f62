"""Tests for transport error translation."""

from types import MappingProxyType, SimpleNamespace

import httpx
import pytest
from pydantic import BaseModel, ValidationError

from shopickup.errors.carrier import CarrierError, ErrorCategory
from shopickup.errors.translation import (
    DEFAULT_RETRY_AFTER_MS,
    CarrierErrorCode,
    category_for_status,
    extract_error_code,
    extract_http_status,
    extract_response_body,
    extract_retry_after_ms,
    translate_transport_error,
)
from shopickup.http.client import HttpError, HttpErrorResponse

CODES = MappingProxyType({
    "WRONG_USERNAME_OR_PASSWORD": CarrierErrorCode(ErrorCategory.AUTH, "Invalid credentials"),
    "INVALID_APM_ID": CarrierErrorCode(ErrorCategory.VALIDATION, "Invalid APM ID"),
    "SLOW_DOWN": CarrierErrorCode(ErrorCategory.RATE_LIMIT, "Slow down"),
})


def _http_error(status, data=None, headers=None):
    return HttpError(
        f"{status}",
        status=status,
        response=HttpErrorResponse(status=status, data=data, headers=headers or {}),
    )


def _translate(error, **kwargs):
    return translate_transport_error(error, carrier="Acme", code_table=CODES, **kwargs)


class TestCategoryForStatus:
    """HTTP status fallback classification."""

    @pytest.mark.parametrize(
        "status,category",
        [
            (400, ErrorCategory.VALIDATION),
            (401, ErrorCategory.AUTH),
            (403, ErrorCategory.AUTH),
            (404, ErrorCategory.PERMANENT),
            (409, ErrorCategory.PERMANENT),
            (429, ErrorCategory.RATE_LIMIT),
            (500, ErrorCategory.TRANSIENT),
            (502, ErrorCategory.TRANSIENT),
            (503, ErrorCategory.TRANSIENT),
            (302, ErrorCategory.PERMANENT),
        ],
    )
    def test_status(self, status, category):
        assert category_for_status(status) is category

    def test_override_wins(self):
        assert category_for_status(404, {404: ErrorCategory.VALIDATION}) is ErrorCategory.VALIDATION


class TestExtraction:
    """Field extraction from heterogeneous error shapes."""

    def test_status_from_http_error(self):
        assert extract_http_status(_http_error(418)) == 418

    def test_status_from_httpx_error(self):
        request = httpx.Request("GET", "https://example.test")
        response = httpx.Response(503, request=request)
        error = httpx.HTTPStatusError("boom", request=request, response=response)
        assert extract_http_status(error) == 503

    def test_status_from_plain_mapping(self):
        assert extract_http_status({"statusCode": "429"}) == 429

    def test_no_status_for_network_error(self):
        assert extract_http_status(ConnectionError("reset")) is None

    def test_body_from_httpx_response(self):
        request = httpx.Request("POST", "https://example.test")
        response = httpx.Response(400, json={"error": "INVALID_APM_ID"}, request=request)
        error = httpx.HTTPStatusError("boom", request=request, response=response)
        assert extract_response_body(error) == {"error": "INVALID_APM_ID"}

    @pytest.mark.parametrize(
        "body,code",
        [
            ({"error": "X"}, "X"),
            ({"code": 14}, "14"),
            ({"errorCode": "E1"}, "E1"),
            ({"error_code": "E2"}, "E2"),
            ({"error": {"code": "NESTED"}}, "NESTED"),
            ({"error": ""}, None),
            ({"message": "no code"}, None),
            ("plain text", None),
            (None, None),
        ],
    )
    def test_error_code(self, body, code):
        assert extract_error_code(body) == code

    @pytest.mark.parametrize(
        "headers,expected",
        [
            ({"Retry-After": "30"}, 30_000),
            ({"retry-after": "15"}, 15_000),
            ({"Retry-After": "0.5"}, 500),
            ({"Retry-After": "0"}, 0),
            ({"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"}, None),
            ({}, None),
        ],
    )
    def test_retry_after(self, headers, expected):
        assert extract_retry_after_ms(_http_error(429, headers=headers)) == expected


class TestTranslateTransportError:
    """Code table first, then HTTP status, then network failure."""

    def test_known_code_wins_over_status(self):
        error = _translate(_http_error(401, {"error": "WRONG_USERNAME_OR_PASSWORD"}))
        assert error.category is ErrorCategory.AUTH
        assert error.carrier_code == "WRONG_USERNAME_OR_PASSWORD"
        assert error.message == "Acme: Invalid credentials"

    def test_known_code_on_unexpected_status(self):
        error = _translate(_http_error(500, {"error": "INVALID_APM_ID"}))
        assert error.category is ErrorCategory.VALIDATION

    def test_403_with_unknown_code_is_auth(self):
        error = _translate(_http_error(403, {"error": "SOMETHING_NEW"}))
        assert error.category is ErrorCategory.AUTH
        assert error.carrier_code == "SOMETHING_NEW"
        assert error.message == "Acme credentials invalid"

    def test_429_uses_retry_after_header(self):
        error = _translate(_http_error(429, headers={"Retry-After": "30"}))
        assert error.category is ErrorCategory.RATE_LIMIT
        assert error.retry_after_ms == 30_000
        assert error.is_retryable()

    def test_429_without_header_uses_default(self):
        error = _translate(_http_error(429))
        assert error.retry_after_ms == DEFAULT_RETRY_AFTER_MS == 60_000

    def test_429_with_zero_retry_after(self):
        error = _translate(_http_error(429, headers={"Retry-After": "0"}))
        assert error.retry_after_ms == 0

    def test_known_rate_limit_code_with_zero_retry_after(self):
        error = _translate(_http_error(400, {"error": "SLOW_DOWN"}, headers={"Retry-After": "0"}))
        assert error.retry_after_ms == 0

    def test_known_rate_limit_code_gets_backoff(self):
        error = _translate(_http_error(400, {"error": "SLOW_DOWN"}))
        assert error.category is ErrorCategory.RATE_LIMIT
        assert error.retry_after_ms == 60_000

    def test_server_error_is_transient(self):
        error = _translate(_http_error(502, "Bad gateway"))
        assert error.category is ErrorCategory.TRANSIENT
        assert error.carrier_code == "HTTP_502"
        assert error.message == "Acme server error (HTTP 502)"
        assert error.retry_after_ms is None

    def test_validation_message_includes_detail(self):
        error = _translate(_http_error(400, {"message": "zip is required"}))
        assert error.message == "Acme validation error: zip is required"

    def test_unexpected_status_is_permanent(self):
        error = _translate(_http_error(404, {"detail": "no such route"}))
        assert error.category is ErrorCategory.PERMANENT
        assert error.message == "Acme returned HTTP 404: no such route"

    def test_status_override(self):
        error = _translate(_http_error(404), status_overrides={404: ErrorCategory.VALIDATION})
        assert error.category is ErrorCategory.VALIDATION

    def test_network_error_is_transient(self):
        error = _translate(HttpError("Request failed: timed out"))
        assert error.category is ErrorCategory.TRANSIENT
        assert error.message == "Acme connection error: Request failed: timed out"

    def test_httpx_timeout_is_transient(self):
        error = _translate(httpx.ReadTimeout("read timed out"))
        assert error.category is ErrorCategory.TRANSIENT
        assert error.message == "Acme connection error: read timed out"

    @pytest.mark.parametrize(
        "error",
        [
            AttributeError("'str' object has no attribute 'get'"),
            KeyError("parcels"),
        ],
    )
    def test_mapping_failure_is_unexpected_response(self, error):
        translated = _translate(error)
        assert translated.category is ErrorCategory.TRANSIENT
        assert translated.message.startswith("Acme unexpected response: ")

    def test_pydantic_validation_error_is_unexpected_response(self):
        class Item(BaseModel):
            id: int

        with pytest.raises(ValidationError) as exc_info:
            Item.model_validate({"id": "abc"})
        translated = _translate(exc_info.value)
        assert translated.category is ErrorCategory.TRANSIENT
        assert translated.message.startswith("Acme unexpected response: ")

    def test_non_exception_without_status_is_permanent(self):
        error = _translate(SimpleNamespace(detail="?"))
        assert error.category is ErrorCategory.PERMANENT

    def test_raw_keeps_body(self):
        body = {"error": "SOMETHING_NEW", "extra": [1, 2]}
        assert _translate(_http_error(400, body)).raw == body

    def test_carrier_error_passes_through(self):
        original = CarrierError("already translated", ErrorCategory.PERMANENT)
        assert _translate(original) is original
