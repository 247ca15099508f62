"""Root-level pytest fixtures for all tests.

Provides shared fixtures:
- Canonical parcel builders (home and pickup point delivery)
- A mocked HttpClient whose get/post are AsyncMocks
- An AdapterContext wired to that client
"""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from shopickup.adapters.base import AdapterContext
from shopickup.http.client import HttpError, HttpErrorResponse, HttpResponse
from shopickup.models.domain import (
    Address,
    Contact,
    HomeDelivery,
    Parcel,
    PickupPointDelivery,
    Recipient,
    Shipper,
)

# ============================================================================
# Pytest Markers
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests requiring external services"
    )


# ============================================================================
# Domain Builders
# ============================================================================


def _shipper() -> Shipper:
    return Shipper(
        contact=Contact(name="Webshop Kft.", phone="+3612345678", email="shop@example.hu"),
        address=Address(
            name="Webshop Kft.",
            street="Váci út 10",
            city="Budapest",
            postal_code="1132",
            country="HU",
        ),
    )


@pytest.fixture
def make_parcel() -> Callable[..., Parcel]:
    """Factory for parcels with valid Hungarian defaults.

    Keyword arguments:
        pickup_point: Deliver to this pickup point ID instead of home.
        provider: Pickup point operator.
        phone, email, country: Recipient contact and address overrides.
        Any other keyword is passed to Parcel.
    """

    def _make(
        parcel_id: str = "P1",
        *,
        pickup_point: str | None = None,
        provider: str | None = None,
        phone: str | None = "+36201234567",
        email: str | None = "anna@example.hu",
        country: str = "HU",
        **overrides,
    ) -> Parcel:
        if pickup_point:
            delivery = PickupPointDelivery(pickup_point_id=pickup_point, provider=provider)
        else:
            delivery = HomeDelivery(
                address=Address(
                    name="Kovács Anna",
                    street="Fő utca 12/A",
                    city="Szeged",
                    postal_code="6720",
                    country=country,
                )
            )
        fields = {
            "id": parcel_id,
            "shipper": _shipper(),
            "recipient": Recipient(
                contact=Contact(name="Kovács Anna", phone=phone, email=email),
                delivery=delivery,
            ),
            "weight_grams": 1200,
        }
        fields.update(overrides)
        return Parcel(**fields)

    return _make


# ============================================================================
# HTTP Mocks
# ============================================================================


@pytest.fixture
def http() -> MagicMock:
    """HttpClient double; set ``http.post.return_value`` etc. per test."""
    client = MagicMock()
    client.get = AsyncMock()
    client.post = AsyncMock()
    return client


@pytest.fixture
def ctx(http: MagicMock) -> AdapterContext:
    return AdapterContext(http=http)


def ok(body, status: int = 200, headers: dict | None = None) -> HttpResponse:
    """Successful HttpResponse with the given body."""
    return HttpResponse(status=status, headers=headers or {}, body=body)


def http_error(status: int | None, data=None, headers: dict | None = None) -> HttpError:
    """HttpError as raised by HttpxClient for a non-2xx response."""
    if status is None:
        return HttpError("Request failed: timed out")
    return HttpError(
        f"{status} Error",
        status=status,
        response=HttpErrorResponse(status=status, data=data, headers=headers or {}),
    )


@pytest.fixture
def ok_response() -> Callable[..., HttpResponse]:
    return ok


@pytest.fixture
def error_response() -> Callable[..., HttpError]:
    return http_error
