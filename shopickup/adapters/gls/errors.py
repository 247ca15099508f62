"""GLS error translation.

GLS answers most business failures with HTTP 200 and an error list in the
body (``PrepareLabelsError``, ``GetPrintedLabelsErrorList``,
``GetParcelStatusErrors``; the casing varies between deployments). Those
entries are classified by numeric code here. Transport failures go through
the shared HTTP-status fallback.
"""

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from shopickup.errors.carrier import CarrierError, ErrorCategory
from shopickup.errors.translation import CarrierErrorCode, translate_transport_error

GLS_ERROR_CODES = MappingProxyType({
    "-1": CarrierErrorCode(ErrorCategory.AUTH, "Authentication failed"),
    "14": CarrierErrorCode(ErrorCategory.AUTH, "Unauthorized client number"),
    "15": CarrierErrorCode(ErrorCategory.AUTH, "Access denied"),
    "27": CarrierErrorCode(ErrorCategory.AUTH, "Invalid username or password"),
})

# Codes GetParcelStatuses uses for an unknown parcel number
PARCEL_NOT_FOUND_CODES = frozenset({"4", "9"})


def read_field(entry: Mapping[str, Any], name: str) -> Any:
    """Read a GLS field under its camelCase or PascalCase name."""
    value = entry.get(name)
    if value is None:
        value = entry.get(name[:1].upper() + name[1:])
    return value


def error_list(body: Any, name: str) -> list[dict[str, Any]]:
    """Return the error list called ``name`` from a GLS response body."""
    if not isinstance(body, Mapping):
        return []
    entries = read_field(body, name) or []
    return [entry for entry in entries if isinstance(entry, Mapping)]


def gls_code_category(code: Any) -> ErrorCategory:
    """Classify a GLS in-body error code.

    -1, 14, 15 and 27 are authentication failures, codes from 1000 up are
    internal GLS errors, and everything else is a request problem.
    """
    text = str(code).strip()
    if text in GLS_ERROR_CODES:
        return GLS_ERROR_CODES[text].category
    try:
        number = int(text)
    except ValueError:
        return ErrorCategory.VALIDATION
    if number >= 1000:
        return ErrorCategory.PERMANENT
    return ErrorCategory.VALIDATION


def gls_body_error(entry: Mapping[str, Any]) -> CarrierError:
    """Build the CarrierError for one in-body GLS error entry."""
    code = read_field(entry, "errorCode")
    description = read_field(entry, "errorDescription") or "Unknown error"
    return CarrierError(
        f"GLS API error: {description} (code: {code})",
        gls_code_category(code),
        carrier_code=str(code) if code is not None else None,
        raw=dict(entry),
    )


def translate_gls_error(error: Any) -> CarrierError:
    """Translate a GLS transport failure into a CarrierError."""
    return translate_transport_error(
        error,
        carrier="GLS",
        code_table=GLS_ERROR_CODES,
    )
