"""Mapping between canonical models and MyGLS JSON payloads."""

import base64
import binascii
import re
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any

from shopickup.adapters.gls.errors import read_field
from shopickup.models.domain import (
    Address,
    HomeDelivery,
    Parcel,
    PickupPoint,
    PickupPointDelivery,
    TrackingEvent,
    TrackingStatus,
    TrackingUpdate,
)
from shopickup.models.results import CREATED, FAILED, CarrierResource, ParcelValidationError

_S = TrackingStatus

GLS_STATUS_MAP = MappingProxyType({
    "1": _S.PENDING,
    "2": _S.IN_TRANSIT,
    "3": _S.IN_TRANSIT,
    "4": _S.OUT_FOR_DELIVERY,
    "5": _S.DELIVERED,
    "6": _S.EXCEPTION,
    "7": _S.EXCEPTION,
    "8": _S.OUT_FOR_DELIVERY,
    "9": _S.EXCEPTION,
    "10": _S.IN_TRANSIT,
    "11": _S.EXCEPTION,
    "12": _S.EXCEPTION,
    "13": _S.EXCEPTION,
    "14": _S.EXCEPTION,
    "15": _S.EXCEPTION,
    "16": _S.EXCEPTION,
    "17": _S.EXCEPTION,
    "18": _S.EXCEPTION,
    "19": _S.EXCEPTION,
    "20": _S.EXCEPTION,
    "21": _S.EXCEPTION,
    "22": _S.IN_TRANSIT,
    "23": _S.RETURNED,
    "24": _S.EXCEPTION,
    "25": _S.EXCEPTION,
    "26": _S.IN_TRANSIT,
    "27": _S.IN_TRANSIT,
    "28": _S.EXCEPTION,
    "29": _S.EXCEPTION,
    "30": _S.EXCEPTION,
    "31": _S.EXCEPTION,
    "32": _S.EXCEPTION,
    "33": _S.EXCEPTION,
    "34": _S.EXCEPTION,
    "35": _S.DELIVERED,
    "36": _S.EXCEPTION,
    "37": _S.EXCEPTION,
    "38": _S.IN_TRANSIT,
    "39": _S.IN_TRANSIT,
    "40": _S.EXCEPTION,
})

_HOUSE_NUMBER = re.compile(r"^(?P<street>.*?\D)\s*(?P<number>\d+[\w/.-]*)\.?$")
_WCF_DATE = re.compile(r"^/Date\((?P<millis>-?\d+)(?P<offset>[+-]\d{4})?\)/$")

_WEEKDAYS = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def split_street(street: str) -> tuple[str, str]:
    """Split "Fő utca 12/A" into ("Fő utca", "12/A").

    Returns the whole string and an empty house number when there is no
    trailing number.
    """
    match = _HOUSE_NUMBER.match(street.strip())
    if not match:
        return street.strip(), ""
    return match.group("street").strip().rstrip(","), match.group("number").rstrip(".")


def map_address(
    address: Address,
    *,
    name: str,
    phone: str | None = None,
    email: str | None = None,
) -> dict[str, Any]:
    street, house_number = split_street(address.street)
    payload: dict[str, Any] = {
        "name": name,
        "street": street,
        "houseNumber": house_number,
        "city": address.city,
        "zipCode": address.postal_code,
        "countryIsoCode": address.country.upper(),
        "contactName": name,
    }
    if phone:
        payload["contactPhone"] = phone
    if email:
        payload["contactEmail"] = email
    return payload


def map_parcel_to_gls(parcel: Parcel, client_number: int, *, cod_currency: str = "HUF") -> dict[str, Any]:
    """Build one ``parcelList`` entry for PrepareLabels.

    The caller's parcel ID travels as ``clientReference`` so results can be
    matched back to the input.
    """
    shipper = parcel.shipper
    recipient = parcel.recipient.contact
    payload: dict[str, Any] = {
        "clientNumber": client_number,
        "clientReference": parcel.id,
        "count": 1,
        "content": parcel.reference or "Package contents",
        "pickupAddress": map_address(
            shipper.address,
            name=shipper.contact.name,
            phone=shipper.contact.phone,
            email=shipper.contact.email,
        ),
    }

    delivery = parcel.recipient.delivery
    if isinstance(delivery, HomeDelivery):
        payload["deliveryAddress"] = map_address(
            delivery.address,
            name=recipient.name,
            phone=recipient.phone,
            email=recipient.email,
        )
    elif isinstance(delivery, PickupPointDelivery):
        # GLS resolves the real address from the parcel shop ID
        payload["deliveryAddress"] = {
            "name": recipient.name,
            "street": delivery.pickup_point_id,
            "houseNumber": "",
            "city": "Pickup Point",
            "zipCode": "00000",
            "countryIsoCode": shipper.address.country.upper(),
            "contactName": recipient.name,
            "contactPhone": recipient.phone,
            "contactEmail": recipient.email,
        }
        payload["serviceList"] = [
            {"code": "PSD", "psdParameter": {"stringValue": delivery.pickup_point_id}},
        ]

    if parcel.cod_amount:
        payload["codAmount"] = parcel.cod_amount
        payload["codCurrency"] = cod_currency
        payload["codReference"] = parcel.reference or parcel.id

    if parcel.dimensions is not None:
        payload["parcelPropertyList"] = [{
            "content": parcel.reference or "Package contents",
            "packageType": 1,
            "height": parcel.dimensions.height_cm,
            "length": parcel.dimensions.length_cm,
            "width": parcel.dimensions.width_cm,
            "weight": parcel.weight_grams / 1000,
        }]
    return payload


def map_parcel_info(info: Mapping[str, Any]) -> CarrierResource:
    """Convert one ``parcelInfoList`` entry to a created resource."""
    parcel_id = read_field(info, "parcelId")
    reference = read_field(info, "clientReference")
    if parcel_id is None:
        return CarrierResource(
            status=FAILED,
            input_id=reference,
            errors=[ParcelValidationError(
                field="parcelId",
                code="NO_PARCEL_ID",
                message="GLS returned no parcel ID",
            )],
            raw=dict(info),
        )
    return CarrierResource(
        carrier_id=str(parcel_id),
        status=CREATED,
        input_id=reference,
        raw=dict(info),
    )


def map_error_to_item(entry: Mapping[str, Any]) -> ParcelValidationError:
    code = read_field(entry, "errorCode")
    return ParcelValidationError(
        code=str(code) if code is not None else None,
        message=read_field(entry, "errorDescription") or "GLS rejected the parcel",
    )


def failed_by_reference(
    entries: list[dict[str, Any]],
    field: str = "clientReferenceList",
) -> dict[str, list[ParcelValidationError]]:
    """Group attributed error entries by the references they name."""
    grouped: dict[str, list[ParcelValidationError]] = {}
    for entry in entries:
        for reference in read_field(entry, field) or []:
            grouped.setdefault(str(reference), []).append(map_error_to_item(entry))
    return grouped


def decode_label_bytes(value: Any) -> bytes | None:
    """GLS returns label PDFs either base64 encoded or as a JSON byte array."""
    if isinstance(value, str) and value:
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            return None
    if isinstance(value, list) and value:
        try:
            return bytes(value)
        except (TypeError, ValueError):
            return None
    return None


def parse_gls_date(value: Any) -> datetime | None:
    """Parse ISO 8601 or WCF ``/Date(millis+hhmm)/`` timestamps."""
    if not isinstance(value, str) or not value:
        return None
    match = _WCF_DATE.match(value)
    if match:
        moment = datetime.fromtimestamp(int(match.group("millis")) / 1000, tz=timezone.utc)
        offset = match.group("offset")
        if offset:
            sign = 1 if offset[0] == "+" else -1
            delta = timedelta(hours=int(offset[1:3]), minutes=int(offset[3:5]))
            moment = moment.astimezone(timezone(sign * delta))
        return moment
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def map_status_to_event(status: Mapping[str, Any]) -> TrackingEvent:
    """Convert one ``parcelStatusList`` entry to a TrackingEvent."""
    code = str(read_field(status, "statusCode") or "").lstrip("0") or "0"
    location = {
        key: value
        for key, value in (
            ("city", read_field(status, "depotCity")),
            ("facility", read_field(status, "depotNumber")),
        )
        if value
    }
    return TrackingEvent(
        timestamp=parse_gls_date(read_field(status, "statusDate")) or datetime.now(timezone.utc),
        status=GLS_STATUS_MAP.get(code, _S.PENDING),
        carrier_status_code=code,
        description=read_field(status, "statusDescription") or f"GLS status {code}",
        description_local=read_field(status, "statusInfo"),
        location=location or None,
        raw=dict(status),
    )


def map_tracking_response(body: Mapping[str, Any], tracking_number: str) -> TrackingUpdate:
    """Build a TrackingUpdate from a GetParcelStatuses response, oldest event first."""
    statuses = read_field(body, "parcelStatusList") or []
    events = sorted(
        (map_status_to_event(status) for status in statuses if isinstance(status, Mapping)),
        key=lambda event: event.timestamp,
    )
    return TrackingUpdate(
        tracking_number=str(read_field(body, "parcelNumber") or tracking_number),
        events=events,
        status=events[-1].status if events else _S.PENDING,
        last_update=events[-1].timestamp if events else None,
        raw_carrier_response=dict(body),
    )


def _opening_hours(hours: Any) -> dict[str, str] | None:
    result = {}
    for entry in hours or []:
        if not isinstance(entry, (list, tuple)) or len(entry) < 3:
            continue
        weekday, opens, closes = entry[0], entry[1], entry[2]
        if opens is None or closes is None or not isinstance(weekday, int):
            continue
        day = _WEEKDAYS[weekday % 7]
        result[day] = f"{opens} - {closes}"
    return result or None


def map_delivery_point(point: Mapping[str, Any], country: str) -> PickupPoint | None:
    """Convert one entry of the GLS delivery point feed. Entries without an ID are skipped."""
    point_id = str(point.get("id") or "").strip()
    if not point_id:
        return None

    contact = point.get("contact") or {}
    features = point.get("features") or []
    location = point.get("location") or []
    latitude = location[0] if len(location) > 0 else None
    longitude = location[1] if len(location) > 1 else None
    point_type = str(point.get("type") or "")

    payment = [name for feature, name in (("acceptsCash", "cash"), ("acceptsCard", "card")) if feature in features]
    metadata = {
        "type": point_type or None,
        "isLocker": "locker" in point_type.lower(),
        "paymentOptions": payment or None,
        "openingHours": _opening_hours(point.get("hours")),
        "phone": contact.get("phone"),
        "glsFeatures": features or None,
    }
    provider_id = point.get("externalId") or point.get("goldId")
    return PickupPoint(
        id=point_id,
        provider_id=str(provider_id) if provider_id is not None else None,
        name=point.get("name"),
        country=(contact.get("countryCode") or country).lower(),
        postal_code=contact.get("postalCode"),
        city=contact.get("city"),
        street=contact.get("address"),
        latitude=latitude,
        longitude=longitude,
        pickup_allowed="pickup" in features,
        dropoff_allowed="delivery" in features,
        metadata={key: value for key, value in metadata.items() if value is not None},
        raw=dict(point),
    )
