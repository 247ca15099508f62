"""HTTP client interface and the default httpx implementation."""

from shopickup.http.client import (
    HttpClient,
    HttpError,
    HttpErrorResponse,
    HttpResponse,
    HttpxClient,
)

__all__ = [
    "HttpClient",
    "HttpError",
    "HttpErrorResponse",
    "HttpResponse",
    "HttpxClient",
]
