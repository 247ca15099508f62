"""Canonical shipping domain model shared by every carrier adapter."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Address(BaseModel):
    """Postal address."""

    model_config = _CAMEL

    name: str = Field(..., min_length=1, description="Recipient or sender name")
    street: str = Field(..., description="Street and house number")
    city: str = Field(..., description="City")
    postal_code: str = Field(..., description="Postal code")
    country: str = Field(..., min_length=2, max_length=2, description="ISO 3166-1 alpha-2 code")
    phone: str | None = Field(None, description="Phone number")
    email: str | None = Field(None, description="Email address")
    company: str | None = Field(None, description="Company name")
    province: str | None = Field(None, description="State/province")
    is_po_box: bool = Field(default=False, description="True for PO box addresses")


class Contact(BaseModel):
    """Contact person without address."""

    model_config = _CAMEL

    name: str = Field(..., min_length=1, description="Contact name")
    phone: str | None = Field(None, description="Phone number")
    email: str | None = Field(None, description="Email address")
    company: str | None = Field(None, description="Company name")


class HomeDelivery(BaseModel):
    """Delivery to the recipient's address."""

    model_config = _CAMEL

    method: Literal["HOME"] = "HOME"
    address: Address
    instructions: str | None = Field(None, description="Courier instructions")


class PickupPointDelivery(BaseModel):
    """Delivery to a locker, shop, or post office."""

    model_config = _CAMEL

    method: Literal["PICKUP_POINT"] = "PICKUP_POINT"
    pickup_point_id: str = Field(..., min_length=1, description="Carrier pickup point ID")
    provider: str | None = Field(None, description="Pickup point operator")
    instructions: str | None = Field(None, description="Courier instructions")


Delivery = Annotated[HomeDelivery | PickupPointDelivery, Field(discriminator="method")]


class Recipient(BaseModel):
    """Parcel recipient: who receives it and how."""

    model_config = _CAMEL

    contact: Contact
    delivery: Delivery


class Shipper(BaseModel):
    """Parcel sender."""

    model_config = _CAMEL

    contact: Contact
    address: Address


class Dimensions(BaseModel):
    """Package dimensions in centimeters."""

    model_config = _CAMEL

    length_cm: float = Field(..., gt=0)
    width_cm: float = Field(..., gt=0)
    height_cm: float = Field(..., gt=0)

    @property
    def volume_cm3(self) -> float:
        return self.length_cm * self.width_cm * self.height_cm


class ParcelItem(BaseModel):
    """Line item inside a parcel."""

    model_config = _CAMEL

    sku: str | None = None
    quantity: int = Field(default=1, ge=1)
    description: str | None = None
    weight_grams: int | None = Field(None, ge=0)


class Parcel(BaseModel):
    """A single physical package to be shipped."""

    model_config = _CAMEL

    id: str = Field(..., min_length=1, description="Caller-side parcel ID")
    shipper: Shipper
    recipient: Recipient
    weight_grams: int = Field(..., gt=0, description="Gross weight in grams")
    dimensions: Dimensions | None = None
    service: Literal["standard", "express", "economy", "overnight"] = "standard"
    reference: str | None = Field(None, description="Customer reference printed on the label")
    cod_amount: float | None = Field(None, ge=0, description="Cash on delivery amount")
    fragile: bool = False
    items: list[ParcelItem] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class TrackingStatus(str, Enum):
    """Normalized tracking status."""

    PENDING = "PENDING"
    IN_TRANSIT = "IN_TRANSIT"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    EXCEPTION = "EXCEPTION"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"


class TrackingEvent(BaseModel):
    """One carrier scan or status change."""

    model_config = _CAMEL

    timestamp: datetime
    status: TrackingStatus
    carrier_status_code: str | None = None
    description: str
    description_local: str | None = Field(None, description="Description in the carrier's language")
    location: dict[str, Any] | None = None
    raw: Any = None


class TrackingUpdate(BaseModel):
    """Tracking history of one parcel, oldest event first."""

    model_config = _CAMEL

    tracking_number: str
    events: list[TrackingEvent] = Field(default_factory=list)
    status: TrackingStatus
    last_update: datetime | None = None
    raw_carrier_response: Any = None


class PickupPoint(BaseModel):
    """Locker, parcel shop, or post office accepting parcels."""

    model_config = _CAMEL

    id: str
    provider_id: str | None = None
    name: str | None = None
    country: str | None = None
    postal_code: str | None = None
    city: str | None = None
    street: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    dropoff_allowed: bool | None = None
    pickup_allowed: bool | None = None
    metadata: dict[str, Any] | None = None
    raw: Any = None


class FetchPickupPointsResponse(BaseModel):
    """Pickup point list returned by fetch_pickup_points."""

    model_config = _CAMEL

    points: list[PickupPoint] = Field(default_factory=list)
    total_count: int = 0
    raw_carrier_response: Any = None
