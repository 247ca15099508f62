"""MPL error translation.

MPL sits behind an API gateway. Gateway rejections (bad key, expired
token, quota) arrive as ``{"fault": {"faultstring": .., "detail":
{"errorcode": ..}}}``; the shipment API itself answers with the usual HTTP
statuses. 404 is a request problem here (unknown tracking number or
shipment), not a permanent failure.
"""

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from shopickup.errors.carrier import CarrierError, ErrorCategory
from shopickup.errors.translation import (
    CarrierErrorCode,
    category_for_status,
    extract_http_status,
    extract_response_body,
    retry_after_or_default,
    translate_transport_error,
)

MPL_ERROR_CODES = MappingProxyType({
    "oauth.v2.InvalidApiKey": CarrierErrorCode(ErrorCategory.AUTH, "Invalid API key"),
    "oauth.v2.InvalidApiKeyForGivenResource": CarrierErrorCode(
        ErrorCategory.AUTH, "API key not allowed for this resource"
    ),
    "oauth.v2.InvalidAccessToken": CarrierErrorCode(ErrorCategory.AUTH, "Invalid access token"),
    "oauth.v2.AccessTokenExpired": CarrierErrorCode(ErrorCategory.AUTH, "Access token expired"),
    "oauth.v2.InvalidClientIdentifier": CarrierErrorCode(ErrorCategory.AUTH, "Invalid client credentials"),
    "keymanagement.service.invalid_access_token": CarrierErrorCode(ErrorCategory.AUTH, "Invalid access token"),
    "steps.basicauthentication.NotAllowed": CarrierErrorCode(
        ErrorCategory.AUTH, "Basic authentication is disabled for this account"
    ),
    "policies.ratelimit.QuotaViolation": CarrierErrorCode(ErrorCategory.RATE_LIMIT, "Quota exceeded"),
    "policies.ratelimit.SpikeArrestViolation": CarrierErrorCode(ErrorCategory.RATE_LIMIT, "Too many requests"),
    "messaging.adaptors.http.flow.ServiceUnavailable": CarrierErrorCode(
        ErrorCategory.TRANSIENT, "Service temporarily unavailable"
    ),
})

MPL_STATUS_OVERRIDES = MappingProxyType({404: ErrorCategory.VALIDATION})


def gateway_fault(body: Any) -> tuple[str, str] | None:
    """Return (errorcode, faultstring) for a gateway error body, else None."""
    if not isinstance(body, Mapping):
        return None
    fault = body.get("fault")
    if not isinstance(fault, Mapping) or "faultstring" not in fault:
        return None
    detail = fault.get("detail") or {}
    code = detail.get("errorcode") if isinstance(detail, Mapping) else None
    return str(code or "UNKNOWN"), str(fault.get("faultstring") or "Unknown error")


def translate_mpl_error(error: Any) -> CarrierError:
    """Translate an MPL transport failure into a CarrierError."""
    if isinstance(error, CarrierError):
        return error

    body = extract_response_body(error)
    fault = gateway_fault(body)
    if fault is None:
        return translate_transport_error(
            error,
            carrier="MPL",
            code_table=MPL_ERROR_CODES,
            status_overrides=MPL_STATUS_OVERRIDES,
        )

    code, faultstring = fault
    known = MPL_ERROR_CODES.get(code)
    status = extract_http_status(error)
    if known is not None:
        category = known.category
        message = f"MPL: {known.message}"
    else:
        category = (
            category_for_status(status, MPL_STATUS_OVERRIDES)
            if status is not None
            else ErrorCategory.TRANSIENT
        )
        message = f"MPL gateway error: {faultstring} ({code})"

    retry_after_ms = None
    if category is ErrorCategory.RATE_LIMIT:
        retry_after_ms = retry_after_or_default(error)
    return CarrierError(
        message,
        category,
        carrier_code=code,
        raw=body,
        retry_after_ms=retry_after_ms,
    )
