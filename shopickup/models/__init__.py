"""Canonical models: domain objects, adapter requests, and results."""

from shopickup.models.domain import (
    Address,
    Contact,
    Delivery,
    Dimensions,
    FetchPickupPointsResponse,
    HomeDelivery,
    Parcel,
    ParcelItem,
    PickupPoint,
    PickupPointDelivery,
    Recipient,
    Shipper,
    TrackingEvent,
    TrackingStatus,
    TrackingUpdate,
)
from shopickup.models.requests import (
    CreateLabelRequest,
    CreateLabelsRequest,
    CreateParcelRequest,
    CreateParcelsRequest,
    FetchPickupPointsRequest,
    FoxpostCredentials,
    GLSCredentials,
    MPLCredentials,
    RequestOptions,
    TrackingRequest,
)
from shopickup.models.results import (
    CREATED,
    FAILED,
    BatchResponse,
    CarrierResource,
    CreateLabelsResponse,
    CreateParcelsResponse,
    LabelFile,
    LabelResult,
    PageRange,
    ParcelValidationError,
)

__all__ = [
    # Domain
    "Address",
    "Contact",
    "Delivery",
    "Dimensions",
    "FetchPickupPointsResponse",
    "HomeDelivery",
    "Parcel",
    "ParcelItem",
    "PickupPoint",
    "PickupPointDelivery",
    "Recipient",
    "Shipper",
    "TrackingEvent",
    "TrackingStatus",
    "TrackingUpdate",
    # Requests
    "CreateLabelRequest",
    "CreateLabelsRequest",
    "CreateParcelRequest",
    "CreateParcelsRequest",
    "FetchPickupPointsRequest",
    "FoxpostCredentials",
    "GLSCredentials",
    "MPLCredentials",
    "RequestOptions",
    "TrackingRequest",
    # Results
    "CREATED",
    "FAILED",
    "BatchResponse",
    "CarrierResource",
    "CreateLabelsResponse",
    "CreateParcelsResponse",
    "LabelFile",
    "LabelResult",
    "PageRange",
    "ParcelValidationError",
]
