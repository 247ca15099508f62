"""HTTP client seam used by carrier adapters.

Adapters only depend on the HttpClient protocol, so tests pass an AsyncMock
and the dev-server passes HttpxClient. Non-2xx responses raise HttpError,
whose ``response`` carries status, parsed body and headers in the shape
the error translators read.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

import httpx

from shopickup.utils.redaction import sanitize_headers_for_log

logger = logging.getLogger(__name__)

ResponseType = Literal["json", "bytes", "text"]


@dataclass(frozen=True)
class HttpResponse:
    """Successful response returned by an HttpClient."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None


@dataclass(frozen=True)
class HttpErrorResponse:
    """Response details attached to an HttpError."""

    status: int
    reason: str = ""
    data: Any = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(eq=False)
class HttpError(Exception):
    """Raised for non-2xx responses and for requests that never got one.

    Attributes:
        message: Error description.
        status: HTTP status, or None for network failures and timeouts.
        response: Response details when the server answered.
    """

    message: str
    status: int | None = None
    response: HttpErrorResponse | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class HttpClient(Protocol):
    """Minimal async HTTP interface the adapters call."""

    async def get(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        response_type: ResponseType = "json",
    ) -> HttpResponse: ...

    async def post(
        self,
        url: str,
        *,
        json: Any = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        response_type: ResponseType = "json",
    ) -> HttpResponse: ...


def _parse_body(response: httpx.Response, response_type: ResponseType) -> Any:
    if response_type == "bytes":
        return response.content
    if response_type == "text":
        return response.text
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class HttpxClient:
    """HttpClient implementation over httpx.AsyncClient.

    A fresh AsyncClient is opened per request. ``transport`` lets tests
    plug in httpx.MockTransport.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    async def get(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        response_type: ResponseType = "json",
    ) -> HttpResponse:
        return await self._request("GET", url, headers=headers, params=params, response_type=response_type)

    async def post(
        self,
        url: str,
        *,
        json: Any = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        response_type: ResponseType = "json",
    ) -> HttpResponse:
        return await self._request(
            "POST",
            url,
            json=json,
            data=data,
            headers=headers,
            params=params,
            response_type=response_type,
        )

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        response_type: ResponseType = "json",
    ) -> HttpResponse:
        """Send one request.

        Raises:
            HttpError: On non-2xx status or transport failure.
        """
        logger.debug(
            "HTTP %s %s headers=%s",
            method,
            url,
            sanitize_headers_for_log(headers),
        )

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.request(
                    method,
                    url,
                    json=json,
                    data=data,
                    headers=headers,
                    params=params,
                )
            except httpx.RequestError as e:
                reason = str(e) or type(e).__name__
                logger.warning("HTTP %s %s failed: %s", method, url, reason)
                raise HttpError(f"Request failed: {reason}") from e

        response_headers = dict(response.headers)
        logger.debug(
            "HTTP %s %s -> %d headers=%s",
            method,
            url,
            response.status_code,
            sanitize_headers_for_log(response_headers),
        )

        if response.is_success:
            return HttpResponse(
                status=response.status_code,
                headers=response_headers,
                body=_parse_body(response, response_type),
            )

        raise HttpError(
            f"{response.status_code} {response.reason_phrase}",
            status=response.status_code,
            response=HttpErrorResponse(
                status=response.status_code,
                reason=response.reason_phrase,
                data=_parse_body(response, "json"),
                headers=response_headers,
            ),
        )
