"""Error handling for carrier adapters.

This package provides:
- The closed CarrierError taxonomy with its retry table
- The generic transport error translator used by every carrier
"""

from shopickup.errors.carrier import (
    RETRYABLE_BY_CATEGORY,
    CarrierError,
    ErrorCategory,
    NotImplementedCapabilityError,
)
from shopickup.errors.translation import (
    DEFAULT_RETRY_AFTER_MS,
    CarrierErrorCode,
    category_for_status,
    extract_error_code,
    extract_http_status,
    extract_response_body,
    extract_retry_after_ms,
    retry_after_or_default,
    translate_transport_error,
)

__all__ = [
    # Taxonomy
    "CarrierError",
    "ErrorCategory",
    "NotImplementedCapabilityError",
    "RETRYABLE_BY_CATEGORY",
    # Translation
    "CarrierErrorCode",
    "DEFAULT_RETRY_AFTER_MS",
    "category_for_status",
    "extract_error_code",
    "extract_http_status",
    "extract_response_body",
    "extract_retry_after_ms",
    "retry_after_or_default",
    "translate_transport_error",
]
