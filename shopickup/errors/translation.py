"""Transport error translation to CarrierError.

Each carrier adapter owns a static table of its known error codes. This
module holds the shared classification: pull the HTTP status, body and
carrier error code out of whatever exception the HTTP client raised, look
the code up in the carrier table, and fall back to the HTTP status when the
code is unknown.

The extraction helpers do not assume a particular HTTP client. They accept
httpx exceptions, the HttpError raised by shopickup.http, plain dicts and
any object exposing the conventional attribute names.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

import httpx

from shopickup.errors.carrier import CarrierError, ErrorCategory
from shopickup.http.client import HttpError

DEFAULT_RETRY_AFTER_MS = 60_000


@dataclass(frozen=True)
class CarrierErrorCode:
    """Known carrier error code with its category and display message."""

    category: ErrorCategory
    message: str


NO_KNOWN_CODES: Mapping[str, CarrierErrorCode] = MappingProxyType({})

_ERROR_CODE_FIELDS = ("error", "code", "errorCode", "error_code")
_ERROR_MESSAGE_FIELDS = (
    "message",
    "error_description",
    "errorDescription",
    "detail",
    "error",
)


def _lookup(obj: Any, name: str) -> Any:
    """Read a field from a mapping or an attribute from an object."""
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _as_status(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def category_for_status(
    status: int,
    overrides: Mapping[int, ErrorCategory] | None = None,
) -> ErrorCategory:
    """Classify an HTTP status code.

    Args:
        status: HTTP status code.
        overrides: Carrier-specific status classifications checked first.

    Returns:
        The error category for the status.
    """
    if overrides and status in overrides:
        return overrides[status]
    if status == 400:
        return ErrorCategory.VALIDATION
    if status in (401, 403):
        return ErrorCategory.AUTH
    if status == 429:
        return ErrorCategory.RATE_LIMIT
    if status >= 500:
        return ErrorCategory.TRANSIENT
    return ErrorCategory.PERMANENT


def extract_http_status(error: Any) -> int | None:
    """Extract the HTTP status from a transport error.

    Checks response.status_code, response.status, status_code, statusCode
    and status, in that order.

    Returns:
        The status code, or None for network-level failures.
    """
    response = _lookup(error, "response")
    candidates = (
        _lookup(response, "status_code"),
        _lookup(response, "status"),
        _lookup(error, "status_code"),
        _lookup(error, "statusCode"),
        _lookup(error, "status"),
    )
    for candidate in candidates:
        status = _as_status(candidate)
        if status is not None:
            return status
    return None


def extract_response_body(error: Any) -> Any:
    """Extract the response body from a transport error.

    Returns:
        Parsed JSON body, text body, or None if the error carries no body.
    """
    response = _lookup(error, "response")
    for name in ("data", "body"):
        value = _lookup(response, name)
        if value is not None:
            return value

    if isinstance(response, httpx.Response):
        try:
            return response.json()
        except (ValueError, httpx.ResponseNotRead):
            try:
                return response.text or None
            except httpx.ResponseNotRead:
                return None

    for name in ("body", "data"):
        value = _lookup(error, name)
        if value is not None:
            return value
    return None


def extract_error_code(body: Any) -> str | None:
    """Extract a carrier error code from a response body.

    Looks for error, code, errorCode and error_code. A nested
    ``{"error": {"code": ...}}`` object is also recognized.
    """
    if not isinstance(body, Mapping):
        return None
    for name in _ERROR_CODE_FIELDS:
        value = body.get(name)
        if isinstance(value, Mapping):
            nested = extract_error_code(value)
            if nested is not None:
                return nested
            continue
        if isinstance(value, bool) or value is None or value == "":
            continue
        if isinstance(value, (str, int)):
            return str(value)
    return None


def extract_error_message(body: Any) -> str | None:
    """Extract a human-readable message from a response body."""
    if isinstance(body, str):
        return body.strip() or None
    if not isinstance(body, Mapping):
        return None
    for name in _ERROR_MESSAGE_FIELDS:
        value = body.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
        if isinstance(value, Mapping):
            nested = extract_error_message(value)
            if nested:
                return nested
    return None


def extract_retry_after_ms(error: Any) -> int | None:
    """Read the Retry-After header (integer seconds) as milliseconds.

    Returns:
        Milliseconds, or None when the header is absent or not a number.
    """
    response = _lookup(error, "response")
    headers = _lookup(response, "headers")
    if headers is None:
        headers = _lookup(error, "headers")
    if headers is None or not hasattr(headers, "items"):
        return None

    value = None
    for key, header_value in headers.items():
        if str(key).lower() == "retry-after":
            value = header_value
            break
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None

    try:
        seconds = float(str(value).strip())
    except ValueError:
        return None
    if seconds < 0:
        return None
    return int(seconds * 1000)


def retry_after_or_default(error: Any, default_ms: int = DEFAULT_RETRY_AFTER_MS) -> int:
    """Retry-After in milliseconds, or ``default_ms`` when the header is missing."""
    retry_after_ms = extract_retry_after_ms(error)
    return default_ms if retry_after_ms is None else retry_after_ms


def _is_network_failure(error: BaseException) -> bool:
    return isinstance(error, httpx.RequestError) or (isinstance(error, HttpError) and error.status is None)


def _status_message(
    carrier: str, category: ErrorCategory, status: int, detail: str | None
) -> str:
    match category:
        case ErrorCategory.VALIDATION:
            return f"{carrier} validation error: {detail or 'Bad request'}"
        case ErrorCategory.AUTH:
            return f"{carrier} credentials invalid"
        case ErrorCategory.RATE_LIMIT:
            return f"{carrier} rate limit exceeded"
        case ErrorCategory.TRANSIENT:
            return f"{carrier} server error (HTTP {status})"
        case ErrorCategory.PERMANENT:
            return f"{carrier} returned HTTP {status}: {detail or 'Unexpected response'}"


def translate_transport_error(
    error: Any,
    *,
    carrier: str,
    code_table: Mapping[str, CarrierErrorCode] = NO_KNOWN_CODES,
    status_overrides: Mapping[int, ErrorCategory] | None = None,
    default_retry_after_ms: int = DEFAULT_RETRY_AFTER_MS,
) -> CarrierError:
    """Translate a raw transport failure into exactly one CarrierError.

    Args:
        error: Exception (or error-shaped object) raised by the HTTP layer.
        carrier: Carrier display name used in messages.
        code_table: Known carrier codes, checked before the status fallback.
        status_overrides: Carrier-specific status classifications.
        default_retry_after_ms: Backoff used for 429 without Retry-After.

    Returns:
        CarrierError with the category, carrier code and raw payload set.
    """
    if isinstance(error, CarrierError):
        return error

    status = extract_http_status(error)
    body = extract_response_body(error)
    code = extract_error_code(body)
    raw = body if body is not None else error

    known = code_table.get(code) if code is not None else None
    if known is not None:
        retry_after_ms = None
        if known.category is ErrorCategory.RATE_LIMIT:
            retry_after_ms = retry_after_or_default(error, default_retry_after_ms)
        return CarrierError(
            f"{carrier}: {known.message}",
            known.category,
            carrier_code=code,
            raw=raw,
            retry_after_ms=retry_after_ms,
        )

    if status is None:
        if isinstance(error, BaseException):
            reason = str(error) or type(error).__name__
            kind = "connection error" if _is_network_failure(error) else "unexpected response"
            return CarrierError(
                f"{carrier} {kind}: {reason}",
                ErrorCategory.TRANSIENT,
                carrier_code=code,
                raw=raw,
            )
        return CarrierError(
            f"Unknown {carrier} error",
            ErrorCategory.PERMANENT,
            carrier_code=code,
            raw=raw,
        )

    category = category_for_status(status, status_overrides)
    retry_after_ms = None
    if category is ErrorCategory.RATE_LIMIT:
        retry_after_ms = retry_after_or_default(error, default_retry_after_ms)

    return CarrierError(
        _status_message(carrier, category, status, extract_error_message(body)),
        category,
        carrier_code=code or f"HTTP_{status}",
        raw=raw,
        retry_after_ms=retry_after_ms,
    )
