"""Tests for secret redaction helpers."""

from shopickup.utils.redaction import (
    redact_for_logging,
    sanitize_error_message,
    sanitize_headers_for_log,
)


class TestSanitizeHeaders:
    def test_sensitive_headers_redacted_case_insensitively(self):
        headers = {
            "Authorization": "Basic dXNlcjpwYXNz",
            "API-KEY": "foxpost-key",
            "X-Api-Key": "x",
            "Content-Type": "application/json",
        }
        result = sanitize_headers_for_log(headers)
        assert result["Authorization"] == "REDACTED"
        assert result["API-KEY"] == "REDACTED"
        assert result["X-Api-Key"] == "REDACTED"
        assert result["Content-Type"] == "application/json"

    def test_none_yields_empty_dict(self):
        assert sanitize_headers_for_log(None) == {}

    def test_input_not_mutated(self):
        headers = {"Authorization": "Bearer t"}
        sanitize_headers_for_log(headers)
        assert headers["Authorization"] == "Bearer t"


class TestRedactForLogging:
    def test_credentials_block_redacted_whole(self):
        result = redact_for_logging({"credentials": {"username": "u"}, "count": 2})
        assert result == {"credentials": "***REDACTED***", "count": 2}

    def test_sensitive_keys_redacted_at_any_depth(self):
        result = redact_for_logging({
            "outer": {"apiSecret": "s", "name": "ok"},
            "items": [{"access_token": "t"}, "plain"],
            "password": [1, 2, 3],
        })
        assert result["outer"] == {"apiSecret": "***REDACTED***", "name": "ok"}
        assert result["items"] == [{"access_token": "***REDACTED***"}, "plain"]
        assert result["password"] == "***REDACTED***"

    def test_headers_entry_uses_header_rules(self):
        result = redact_for_logging({"headers": {"Authorization": "Bearer x", "Accept": "*/*"}})
        assert result["headers"] == {"Authorization": "REDACTED", "Accept": "*/*"}


class TestSanitizeErrorMessage:
    def test_authorization_fragment(self):
        msg = sanitize_error_message("401 with Authorization: Bearer abc.def.ghi")
        assert "abc.def.ghi" not in msg
        assert "***REDACTED***" in msg

    def test_json_key_value(self):
        msg = sanitize_error_message('body was {"password": "hunter2", "user": "bob"}')
        assert "hunter2" not in msg
        assert "bob" in msg

    def test_truncates(self):
        msg = sanitize_error_message("x" * 50, max_length=10)
        assert msg == "xxxxxxx..."

    def test_none_passes_through(self):
        assert sanitize_error_message(None) is None
