"""Foxpost error translation.

Foxpost reports errors as ``{"error": "CODE"}`` bodies on 4xx responses.
Known codes map to a category and message; anything else is classified by
HTTP status.
"""

from types import MappingProxyType
from typing import Any

from shopickup.errors.carrier import CarrierError, ErrorCategory
from shopickup.errors.translation import CarrierErrorCode, translate_transport_error

FOXPOST_ERROR_CODES = MappingProxyType({
    "WRONG_USERNAME_OR_PASSWORD": CarrierErrorCode(ErrorCategory.AUTH, "Invalid Foxpost credentials"),
    "INVALID_APM_ID": CarrierErrorCode(ErrorCategory.VALIDATION, "Invalid APM (locker) ID"),
    "INVALID_RECIPIENT": CarrierErrorCode(ErrorCategory.VALIDATION, "Invalid recipient information"),
    "INVALID_ADDRESS": CarrierErrorCode(ErrorCategory.VALIDATION, "Invalid address provided"),
})


def translate_foxpost_error(error: Any) -> CarrierError:
    """Translate a Foxpost transport failure into a CarrierError."""
    return translate_transport_error(
        error,
        carrier="Foxpost",
        code_table=FOXPOST_ERROR_CODES,
    )
