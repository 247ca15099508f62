"""Mapping between canonical models and MPL (Magyar Posta) payloads."""

import base64
import binascii
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any

from shopickup.adapters.mpl.models import ShipmentDetails, ShipmentParty
from shopickup.models.domain import (
    Address,
    Contact,
    HomeDelivery,
    Parcel,
    PickupPoint,
    PickupPointDelivery,
    TrackingEvent,
    TrackingStatus,
    TrackingUpdate,
)
from shopickup.models.results import CREATED, FAILED, CarrierResource, ParcelValidationError

DEFAULT_DEVELOPER = "shopickup-mpl"

BASIC_SERVICE_CODES = frozenset({
    "A_175_UZL",
    "A_177_MPC",
    "A_176_NET",
    "A_176_NKP",
    "A_122_ECS",
    "A_121_CSG",
    "A_13_EMS",
    "A_123_EUP",
    "A_123_HAR",
    "A_123_HAI",
    "A_125_HAR",
    "A_125_HAI",
})

_DOMESTIC_SERVICES = MappingProxyType({
    "standard": "A_175_UZL",
    "economy": "A_175_UZL",
    "express": "A_121_CSG",
    "overnight": "A_121_CSG",
})

_INTERNATIONAL_SERVICES = MappingProxyType({
    "standard": "A_123_EUP",
    "economy": "A_123_EUP",
    "express": "A_13_EMS",
    "overnight": "A_13_EMS",
})

LABEL_TYPES = frozenset({"A4", "A5", "A5inA4", "A5E", "A5E_EXTRA", "A5E_STAND", "A6", "A6inA4"})
LABEL_FORMATS = frozenset({"PDF", "ZPL"})

# Post office, PostaPont and parcel locker; HA and RA are delivery-only
PICKUP_SERVICE_POINT_TYPES = frozenset({"PM", "PP", "CS"})

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_S = TrackingStatus

MPL_STATUS_MAP = MappingProxyType({
    "BEÉRKEZETT": _S.PENDING,
    "FELDOLGOZÁS": _S.PENDING,
    "FELDOLGOZÁS ALATT": _S.PENDING,
    "CSOMAG FELDOLGOZÁSA ALATT": _S.PENDING,
    "SZÁLLÍTÁS": _S.IN_TRANSIT,
    "KÉZBESÍTÉS_ALATT": _S.OUT_FOR_DELIVERY,
    "KÉZBESÍTÉS ALATT": _S.OUT_FOR_DELIVERY,
    "KÉZBESÍTVE": _S.DELIVERED,
    "VISSZAKÜLDVE": _S.RETURNED,
    "HIBA": _S.EXCEPTION,
    "RECEIVED": _S.PENDING,
    "PROCESSING": _S.PENDING,
    "PENDING": _S.PENDING,
    "IN_TRANSIT": _S.IN_TRANSIT,
    "IN_DELIVERY": _S.OUT_FOR_DELIVERY,
    "OUT_FOR_DELIVERY": _S.OUT_FOR_DELIVERY,
    "DELIVERED": _S.DELIVERED,
    "RETURNED": _S.RETURNED,
    "ERROR": _S.EXCEPTION,
    "EXCEPTION": _S.EXCEPTION,
})


def map_service_code(parcel: Parcel, *, international: bool = False) -> str:
    """Pick the MPL basic service code.

    An explicit ``carrierServiceCode`` in the parcel metadata wins when it is
    a known code.
    """
    explicit = parcel.metadata.get("carrierServiceCode")
    if explicit in BASIC_SERVICE_CODES:
        return explicit
    table = _INTERNATIONAL_SERVICES if international else _DOMESTIC_SERVICES
    return table[parcel.service]


def map_delivery_mode(parcel: Parcel) -> str:
    """HA for home delivery; PM for a post office, CS for lockers and shops."""
    delivery = parcel.recipient.delivery
    if isinstance(delivery, PickupPointDelivery):
        return "PM" if (delivery.provider or "").lower() in ("posta", "post_office") else "CS"
    return "HA"


def map_contact(contact: Contact) -> dict[str, Any]:
    payload = {"name": contact.name[:150]}
    if contact.phone:
        payload["phone"] = contact.phone
    if contact.email:
        payload["email"] = contact.email
    return payload


def map_address(address: Address) -> dict[str, Any]:
    return {
        "postCode": address.postal_code[:4].ljust(4, "0"),
        "city": address.city[:35],
        "address": address.street[:60],
    }


def map_parcel_to_shipment(
    parcel: Parcel,
    agreement_number: str,
    *,
    label_type: str = "A5",
    developer: str = DEFAULT_DEVELOPER,
) -> dict[str, Any]:
    """Build one ShipmentCreateRequest.

    ``webshopId`` carries the caller's parcel ID so results can be matched
    back to the input.
    """
    delivery = parcel.recipient.delivery
    if isinstance(delivery, HomeDelivery):
        recipient_address = map_address(delivery.address)
        international = delivery.address.country.upper() != "HU"
    else:
        recipient_address = {"parcelPickupSite": delivery.pickup_point_id[:100]}
        international = False

    services: dict[str, Any] = {
        "basic": map_service_code(parcel, international=international),
        "deliveryMode": map_delivery_mode(parcel),
    }
    extra = []
    if parcel.cod_amount:
        services["cod"] = parcel.cod_amount
        extra.append("K_UVT")
    if parcel.fragile:
        extra.append("K_TER")
    if extra:
        services["extra"] = extra

    item: dict[str, Any] = {
        "services": services,
        "weight": {"value": parcel.weight_grams, "unit": "g"},
    }
    if parcel.reference:
        item["customData1"] = parcel.reference[:40]
    if parcel.dimensions is not None:
        item["size"] = {
            "length": round(parcel.dimensions.length_cm),
            "width": round(parcel.dimensions.width_cm),
            "height": round(parcel.dimensions.height_cm),
        }

    shipment: dict[str, Any] = {
        "developer": developer,
        "sender": {
            "agreement": agreement_number.ljust(8, "0")[:8],
            "contact": map_contact(parcel.shipper.contact),
            "address": map_address(parcel.shipper.address),
        },
        "recipient": {
            "contact": map_contact(parcel.recipient.contact),
            "address": recipient_address,
        },
        "webshopId": parcel.id,
        "labelType": label_type,
        "item": [item],
    }
    if parcel.reference:
        shipment["orderId"] = parcel.reference[:50]
    return shipment


def map_result_errors(errors: Sequence[Mapping[str, Any]]) -> list[ParcelValidationError]:
    """MPL error entries carry Hungarian ``text`` and English ``text_eng``."""
    return [
        ParcelValidationError(
            field=err.get("parameter"),
            code=str(err.get("code") or "UNKNOWN_ERROR"),
            message=err.get("text_eng") or err.get("text") or "Unknown error",
        )
        for err in errors
    ]


def map_shipment_result(result: Mapping[str, Any]) -> CarrierResource:
    """Convert one ShipmentCreateResult. ``input_id`` is its webshopId."""
    input_id = result.get("webshopId")
    errors = [err for err in result.get("errors") or [] if isinstance(err, Mapping)]
    if errors:
        return CarrierResource(
            status=FAILED,
            input_id=input_id,
            errors=map_result_errors(errors),
            raw=dict(result),
        )

    tracking_number = result.get("trackingNumber")
    if not tracking_number:
        return CarrierResource(
            status=FAILED,
            input_id=input_id,
            errors=[ParcelValidationError(
                field="trackingNumber",
                code="NO_TRACKING_NUMBER",
                message="No tracking number assigned by carrier",
            )],
            raw=dict(result),
        )
    return CarrierResource(
        carrier_id=str(tracking_number),
        status=CREATED,
        input_id=input_id,
        raw=dict(result),
    )


def decode_label(value: Any) -> bytes | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return None


def map_status(code: str | None) -> TrackingStatus:
    if not code:
        return _S.PENDING
    return MPL_STATUS_MAP.get(code.strip().upper(), _S.PENDING)


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def map_tracking_record(record: Mapping[str, Any]) -> TrackingEvent:
    """Convert one track-and-trace record.

    Records use positional keys: c9 status, c10 timestamp, c8/c11 location,
    c12 event description, c6 service description.
    """
    location = record.get("c11") or record.get("c8")
    return TrackingEvent(
        timestamp=_parse_timestamp(record.get("c10")) or datetime.now(timezone.utc),
        status=map_status(record.get("c9")),
        carrier_status_code=record.get("c9"),
        description=record.get("c12") or record.get("c6") or "No description",
        location={"city": location} if location else None,
        raw=dict(record),
    )


def map_tracking_records(
    records: Sequence[Mapping[str, Any]],
    tracking_number: str,
    *,
    include_financial: bool = False,
) -> TrackingUpdate:
    """Build a TrackingUpdate from the records of one consignment, oldest event first.

    With ``include_financial`` (registered endpoint), weight, dimensions and
    declared value of the latest record are added to the raw response.
    """
    events = sorted((map_tracking_record(record) for record in records), key=lambda event: event.timestamp)
    raw: dict[str, Any] = {"records": [dict(record) for record in records]}
    if include_financial and records:
        latest = max(records, key=lambda record: _parse_timestamp(record.get("c10")) or _EPOCH)
        raw["financial"] = {
            "serviceCode": latest.get("c2"),
            "weight": latest.get("c5"),
            "dimensions": {"length": latest.get("c41"), "width": latest.get("c42"), "height": latest.get("c43")},
            "value": latest.get("c58"),
        }
    return TrackingUpdate(
        tracking_number=str(records[0].get("c1") or tracking_number) if records else tracking_number,
        events=events,
        status=events[-1].status if events else _S.PENDING,
        last_update=events[-1].timestamp if events else None,
        raw_carrier_response=raw,
    )


def _coordinate(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def map_delivery_place(entry: Mapping[str, Any]) -> PickupPoint | None:
    """Convert one ``/deliveryplace`` entry. Entries without an ID are skipped.

    A place whose service point types include none of PM, PP or CS only
    accepts drop-offs.
    """
    place = entry.get("deliveryplacesQueryResult")
    if not isinstance(place, Mapping):
        return None
    place_id = str(place.get("id") or "").strip()
    if not place_id:
        return None

    types = [str(t) for t in entry.get("servicePointType") or []]
    pickup_allowed = not types or any(t in PICKUP_SERVICE_POINT_TYPES for t in types)
    metadata = {
        "deliveryplace": place.get("deliveryplace"),
        "servicePointType": types or None,
        "errors": place.get("errors") or None,
    }
    return PickupPoint(
        id=place_id,
        name=place.get("deliveryplace"),
        country="hu",
        postal_code=place.get("postCode"),
        city=place.get("city"),
        street=place.get("address"),
        latitude=_coordinate(place.get("geocodeLat")),
        longitude=_coordinate(place.get("geocodeLong")),
        pickup_allowed=pickup_allowed,
        dropoff_allowed=True,
        metadata={key: value for key, value in metadata.items() if value is not None},
        raw=dict(entry),
    )


def map_shipment_details(body: Mapping[str, Any], shipment: Mapping[str, Any]) -> ShipmentDetails:
    items = [dict(item) for item in shipment.get("items") or [] if isinstance(item, Mapping)]
    sender = shipment.get("sender")
    recipient = shipment.get("recipient")
    return ShipmentDetails(
        tracking_number=shipment.get("trackingNumber"),
        order_id=shipment.get("orderId"),
        shipment_date=shipment.get("shipmentDate"),
        sender=ShipmentParty.model_validate(sender) if isinstance(sender, Mapping) else None,
        recipient=ShipmentParty.model_validate(recipient) if isinstance(recipient, Mapping) else None,
        items=items,
        raw=dict(body),
    )
