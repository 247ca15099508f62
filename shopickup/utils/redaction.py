"""Secret redaction for log lines and error payloads.

Request headers, credential blocks and free-text error messages can all
carry carrier secrets (Foxpost API keys, MPL bearer tokens, the hashed GLS
password). Everything that is logged goes through one of the helpers here
first.
"""

import re
from collections.abc import Mapping
from typing import Any

# Header names redacted by sanitize_headers_for_log (exact, case-insensitive)
SENSITIVE_HEADERS = frozenset({
    "authorization", "api-key", "x-api-key", "password", "token",
    "cookie", "set-cookie",
})

# Substring patterns matched case-insensitively against dict keys
_DEFAULT_SENSITIVE_PATTERNS = frozenset({
    "secret", "token", "authorization", "api_key", "apikey", "api-key",
    "password", "client_secret", "access_token", "refresh_token",
})

# Keys whose entire value is redacted (regardless of content type)
_CONTAINER_KEYS = frozenset({"credentials"})

_REDACTED = "***REDACTED***"
_HEADER_REDACTED = "REDACTED"


def sanitize_headers_for_log(headers: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a copy of headers with sensitive values replaced.

    Args:
        headers: Header mapping; None yields an empty dict.

    Returns:
        New dict with the values of SENSITIVE_HEADERS set to 'REDACTED'.
    """
    if not headers:
        return {}
    return {
        key: _HEADER_REDACTED if str(key).lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def _is_sensitive_key(key: str, sensitive_patterns: frozenset[str]) -> bool:
    key_lower = key.lower()
    return any(pattern in key_lower for pattern in sensitive_patterns)


def redact_for_logging(
    obj: Mapping[str, Any],
    sensitive_patterns: frozenset[str] = _DEFAULT_SENSITIVE_PATTERNS,
) -> dict:
    """Redact sensitive values from a dict for safe logging.

    Args:
        obj: Dict to redact (not mutated, a copy is returned).
        sensitive_patterns: Substring patterns whose matching keys' values
            should be replaced. Matching is case-insensitive.

    Returns:
        New dict with sensitive values replaced by '***REDACTED***'.
        Nested dicts and lists of dicts are handled recursively; a
        ``headers`` entry goes through sanitize_headers_for_log.
    """
    result = {}
    for key, value in obj.items():
        key_str = str(key)
        key_lower = key_str.lower()
        if key_lower in _CONTAINER_KEYS:
            result[key] = _REDACTED
        elif key_lower == "headers" and isinstance(value, Mapping):
            result[key] = sanitize_headers_for_log(value)
        elif _is_sensitive_key(key_str, sensitive_patterns):
            result[key] = _REDACTED
        elif isinstance(value, Mapping):
            result[key] = redact_for_logging(value, sensitive_patterns)
        elif isinstance(value, list):
            result[key] = [
                redact_for_logging(item, sensitive_patterns) if isinstance(item, Mapping) else item
                for item in value
            ]
        else:
            result[key] = value
    return result


# Patterns for sensitive values in free-text error messages:
# Authorization headers, "key": "value", key="value", and key=value.
_SENSITIVE_KEYWORDS = (
    r"secret|token|password|api_key|apikey|api-key|"
    r"access_token|authorization"
)
_SENSITIVE_VALUE_PATTERNS = re.compile(
    r"(?i)"
    r"(?:"
    r"Authorization\s*:\s*(?:Bearer|Basic)\s+\S+"
    r"|"
    r'"(?:' + _SENSITIVE_KEYWORDS + r')"\s*:\s*"[^"]*"'
    r"|"
    r"(?:" + _SENSITIVE_KEYWORDS + r")\s*[=:]\s*\"[^\"]*\""
    r"|"
    r"(?:" + _SENSITIVE_KEYWORDS + r")\s*[=:]\s*\S+"
    r")",
)


def sanitize_error_message(msg: str | None, max_length: int = 2000) -> str | None:
    """Redact secret-looking fragments from an error message and truncate it.

    Args:
        msg: Error message to sanitize (None passes through).
        max_length: Maximum length of the sanitized message.

    Returns:
        Sanitized and truncated message, or None.
    """
    if msg is None:
        return None
    sanitized = _SENSITIVE_VALUE_PATTERNS.sub(_REDACTED, msg)
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length - 3] + "..."
    return sanitized
