"""MPL authentication: request headers and the OAuth2 token cache.

Callers hand MPL either a ready OAuth2 token or an API key pair. A key pair
is exchanged for a bearer token at the gateway's ``/oauth2/token`` endpoint
(client credentials grant, HTTP Basic). Tokens are cached per credential
set until shortly before they expire. At most one exchange per credential
set is in flight; concurrent callers wait for it and share the result.
"""

import asyncio
import base64
import hashlib
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from shopickup.errors.carrier import CarrierError, ErrorCategory
from shopickup.http.client import HttpClient
from shopickup.models.requests import MPLCredentials

logger = logging.getLogger(__name__)

MPL_OAUTH_PROD_URL = "https://core.api.posta.hu/oauth2/token"
MPL_OAUTH_TEST_URL = "https://sandbox.api.posta.hu/oauth2/token"

# Refresh this many seconds before the gateway would reject the token
EXPIRY_MARGIN_SECONDS = 30


def basic_auth(credentials: MPLCredentials) -> str:
    token = base64.b64encode(f"{credentials.api_key}:{credentials.api_secret}".encode()).decode()
    return f"Basic {token}"


def build_mpl_headers(
    *,
    bearer_token: str | None = None,
    credentials: MPLCredentials | None = None,
    accounting_code: str | None = None,
    request_id: str | None = None,
) -> dict[str, str]:
    """Build MPL request headers.

    Uses ``bearer_token`` when given, otherwise the credentials' own OAuth2
    token, otherwise HTTP Basic with the API key pair.

    Raises:
        CarrierError: Validation, if no usable authentication is available.
    """
    headers = {
        "Content-Type": "application/json",
        "X-Request-ID": request_id or str(uuid.uuid4()),
    }
    if accounting_code:
        headers["X-Accounting-Code"] = accounting_code

    token = bearer_token or (credentials.oauth2_token if credentials else None)
    if token:
        headers["Authorization"] = f"Bearer {token}"
    elif credentials is not None and credentials.api_key and credentials.api_secret:
        headers["Authorization"] = basic_auth(credentials)
    else:
        raise CarrierError(
            "MPL request needs an OAuth2 token or an API key pair",
            ErrorCategory.VALIDATION,
            carrier_code="INVALID_CREDENTIALS",
        )
    return headers


@dataclass(frozen=True)
class OAuthToken:
    """Bearer token with its expiry on the monotonic clock."""

    access_token: str
    expires_at: float
    token_type: str = "Bearer"

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at - EXPIRY_MARGIN_SECONDS


def credentials_cache_key(credentials: MPLCredentials, scope: str = "") -> str:
    """SHA-256 of the API key pair; the secret itself is never kept as a key.

    ``scope`` separates tokens issued by different endpoints (sandbox, prod).
    """
    material = f"{scope}|{credentials.api_key}:{credentials.api_secret}".encode()
    return hashlib.sha256(material).hexdigest()


async def exchange_token(
    http: HttpClient,
    oauth_url: str,
    credentials: MPLCredentials,
    *,
    accounting_code: str | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> OAuthToken:
    """Exchange an API key pair for a bearer token.

    Raises:
        CarrierError: Permanent, if the gateway answers without a usable
            token. Transport failures propagate to the caller's translator.
    """
    headers = {
        "Content-Type": "application/x-www-form-urlencoded",
        "X-Request-ID": str(uuid.uuid4()),
        "Authorization": basic_auth(credentials),
    }
    if accounting_code:
        headers["X-Accounting-Code"] = accounting_code
    response = await http.post(oauth_url, data={"grant_type": "client_credentials"}, headers=headers)
    body = response.body
    if not isinstance(body, dict) or not isinstance(body.get("access_token"), str) or not body["access_token"]:
        raise CarrierError(
            "Invalid OAuth token response: missing access_token",
            ErrorCategory.PERMANENT,
            carrier_code="INVALID_TOKEN_RESPONSE",
        )
    expires_in = body.get("expires_in")
    if isinstance(expires_in, str) and expires_in.isdigit():
        expires_in = int(expires_in)
    if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)) or expires_in <= 0:
        raise CarrierError(
            "Invalid OAuth token response: expires_in is not a positive number",
            ErrorCategory.PERMANENT,
            carrier_code="INVALID_TOKEN_RESPONSE",
        )
    return OAuthToken(
        access_token=body["access_token"],
        expires_at=clock() + float(expires_in),
        token_type=body.get("token_type") or "Bearer",
    )


class TokenCache:
    """Per-credential OAuth2 token cache with single-flight refresh."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._tokens: dict[str, OAuthToken] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def get_token(
        self,
        credentials: MPLCredentials,
        fetch: Callable[[], Awaitable[OAuthToken]],
        *,
        scope: str = "",
    ) -> OAuthToken:
        """Return a fresh token for the credentials, fetching one if needed.

        Args:
            credentials: API key pair identifying the cache entry.
            fetch: Performs the token exchange. Called at most once per
                expiry, however many callers are waiting.
            scope: Token endpoint the entry belongs to.
        """
        key = credentials_cache_key(credentials, scope)
        token = self._tokens.get(key)
        if token is not None and token.is_fresh(self.clock()):
            return token

        async with self._lock_for(key):
            # Another caller may have refreshed while we waited
            token = self._tokens.get(key)
            if token is not None and token.is_fresh(self.clock()):
                return token
            logger.debug("Exchanging MPL API key for OAuth token")
            token = await fetch()
            self._tokens[key] = token
            return token

    def invalidate(self, credentials: MPLCredentials, *, scope: str = "") -> None:
        """Drop the cached token, e.g. after the gateway rejected it."""
        self._tokens.pop(credentials_cache_key(credentials, scope), None)

    def __len__(self) -> int:
        return len(self._tokens)
