"""Request and response models for the MPL-only operations.

Shipment details and Pull-500 batch tracking have no counterpart in the
other carriers, so they live with the MPL adapter rather than in
shopickup.models.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shopickup.models.requests import RequestOptions

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)

PULL500_MAX_TRACKING_NUMBERS = 500

Pull500Status = Literal["NEW", "INPROGRESS", "READY", "ERROR"]


class ShipmentDetailsRequest(BaseModel):
    model_config = _CAMEL

    tracking_number: str = Field(..., min_length=1)
    credentials: dict[str, Any] = Field(default_factory=dict)
    options: RequestOptions = Field(default_factory=RequestOptions)


class ShipmentParty(BaseModel):
    """Sender or recipient as MPL stores it on a shipment."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    name: str | None = None
    street: str | None = None
    city: str | None = None
    postal_code: str | None = None
    country: str | None = None
    phone: str | None = None


class ShipmentDetails(BaseModel):
    """Shipment metadata returned by ``GET /shipments/{trackingNumber}``.

    This is the shipment as registered, not its tracking history.
    """

    model_config = _CAMEL

    tracking_number: str | None = None
    order_id: str | None = None
    shipment_date: str | None = None
    sender: ShipmentParty | None = None
    recipient: ShipmentParty | None = None
    items: list[dict[str, Any]] = Field(default_factory=list)
    raw: Any = None


class Pull500StartRequest(BaseModel):
    """Submit up to 500 tracking numbers for asynchronous tracking."""

    model_config = _CAMEL

    tracking_numbers: list[str] = Field(..., min_length=1)
    language: Literal["hu", "en"] = "hu"
    credentials: dict[str, Any] = Field(default_factory=dict)
    options: RequestOptions = Field(default_factory=RequestOptions)


class Pull500StartResponse(BaseModel):
    model_config = _CAMEL

    tracking_guid: str = Field(..., alias="trackingGUID")
    errors: list[dict[str, Any]] = Field(default_factory=list)
    raw: Any = None


class Pull500CheckRequest(BaseModel):
    model_config = _CAMEL

    tracking_guid: str = Field(..., min_length=1, alias="trackingGUID")
    credentials: dict[str, Any] = Field(default_factory=dict)
    options: RequestOptions = Field(default_factory=RequestOptions)


class Pull500CheckResponse(BaseModel):
    """Batch tracking job state. ``report`` is CSV text once status is READY."""

    model_config = _CAMEL

    status: Pull500Status
    report: str | None = None
    report_fields: str | None = None
    errors: list[dict[str, Any]] = Field(default_factory=list)
    raw: Any = None
