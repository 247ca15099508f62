"""MPL (Magyar Posta) adapter."""

from shopickup.adapters.mpl.adapter import MPLAdapter
from shopickup.adapters.mpl.auth import TokenCache, build_mpl_headers
from shopickup.adapters.mpl.errors import MPL_ERROR_CODES, translate_mpl_error

__all__ = [
    "MPLAdapter",
    "MPL_ERROR_CODES",
    "TokenCache",
    "build_mpl_headers",
    "translate_mpl_error",
]
