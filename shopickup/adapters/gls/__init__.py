"""GLS (MyGLS) adapter."""

from shopickup.adapters.gls.adapter import GLSAdapter
from shopickup.adapters.gls.auth import hash_password_sha512, resolve_gls_base_url
from shopickup.adapters.gls.errors import GLS_ERROR_CODES, translate_gls_error

__all__ = [
    "GLSAdapter",
    "GLS_ERROR_CODES",
    "hash_password_sha512",
    "resolve_gls_base_url",
    "translate_gls_error",
]
