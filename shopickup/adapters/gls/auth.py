"""MyGLS authentication and endpoint resolution.

MyGLS does not use HTTP auth. Every request body carries the username, the
SHA-512 digest of the password as a JSON byte array, and the client number
the call acts for.
"""

import hashlib
from typing import Any

from shopickup.errors.carrier import CarrierError, ErrorCategory
from shopickup.models.requests import GLSCredentials

SUPPORTED_COUNTRIES = ("HU", "CZ", "HR", "RO", "SI", "SK", "RS")

DEFAULT_WEBSHOP_ENGINE = "shopickup-adapter/1.0"


def hash_password_sha512(password: str) -> list[int]:
    """SHA-512 of the UTF-8 password as a list of byte values (0-255)."""
    return list(hashlib.sha512(password.encode("utf-8")).digest())


def resolve_gls_base_url(country: str, use_test_api: bool = False) -> str:
    """Return the ParcelService endpoint for a MyGLS country.

    Raises:
        CarrierError: Validation, for a country MyGLS does not serve.
    """
    code = (country or "").strip().upper()
    if code not in SUPPORTED_COUNTRIES:
        raise CarrierError(
            f"Unsupported GLS country: {country}. Supported countries: {', '.join(SUPPORTED_COUNTRIES)}",
            ErrorCategory.VALIDATION,
            carrier_code="UNSUPPORTED_COUNTRY",
        )
    env = "test." if use_test_api else ""
    return f"https://api.{env}mygls.{code.lower()}/ParcelService.svc"


def build_auth_fields(credentials: GLSCredentials) -> dict[str, Any]:
    """Authentication fields shared by every MyGLS request body."""
    return {
        "username": credentials.username,
        "password": hash_password_sha512(credentials.password),
        "clientNumberList": [credentials.client_number_list[0]],
        "webshopEngine": credentials.webshop_engine or DEFAULT_WEBSHOP_ENGINE,
    }
