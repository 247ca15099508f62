"""Mapping between canonical models and Foxpost payloads."""

import re
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, NamedTuple

from shopickup.errors.carrier import CarrierError, ErrorCategory
from shopickup.models.domain import (
    HomeDelivery,
    Parcel,
    PickupPoint,
    PickupPointDelivery,
    TrackingEvent,
    TrackingStatus,
)
from shopickup.models.results import CREATED, FAILED, CarrierResource, ParcelValidationError

_HUNGARIAN_MOBILE = re.compile(r"^(\+36|36)(20|30|31|70|50|51)\d{7}$")

# Upper volume bound (cm3) for each Foxpost size
_SIZE_BY_VOLUME = (
    (5_000, "XS"),
    (15_000, "S"),
    (50_000, "M"),
    (100_000, "L"),
)


class FoxpostStatus(NamedTuple):
    canonical: TrackingStatus
    description_en: str
    description_hu: str | None = None


_S = TrackingStatus

FOXPOST_STATUS_MAP = MappingProxyType({
    "CREATE": FoxpostStatus(_S.PENDING, "Order created", "Rendelés létrehozva"),
    "OPERIN": FoxpostStatus(_S.IN_TRANSIT, "Arrived at locker", "Automatában megérkezett"),
    "OPEROUT": FoxpostStatus(_S.IN_TRANSIT, "Removed from locker / Out for delivery", "Automatából kivéve / Kiszállítás"),
    "RECEIVE": FoxpostStatus(_S.DELIVERED, "Delivered to recipient", "Átvéve"),
    "RETURN": FoxpostStatus(_S.RETURNED, "Returned to sender", "Visszaküldésre került"),
    "REDIRECT": FoxpostStatus(_S.IN_TRANSIT, "Redirected to new destination", "Átirányítva új célhelyre"),
    "BACKTOSENDER": FoxpostStatus(_S.RETURNED, "Returned to sender", "Szállító felé visszaküldve"),
    "RESENT": FoxpostStatus(_S.IN_TRANSIT, "Resent to new destination", "Újra küldve új célhelyre"),
    "SORTIN": FoxpostStatus(_S.IN_TRANSIT, "Arrived at sorting facility", "Rendezőközpontba megérkezett"),
    "SORTOUT": FoxpostStatus(_S.IN_TRANSIT, "Left sorting facility", "Rendezőközpontból elküldve"),
    "MPSIN": FoxpostStatus(_S.IN_TRANSIT, "Arrived at parcel hub", "Csomagközpontba megérkezett"),
    "C2CIN": FoxpostStatus(_S.IN_TRANSIT, "Arrived at customer collection point", "Ügyfél felvevőpontba megérkezett"),
    "C2BIN": FoxpostStatus(_S.IN_TRANSIT, "Arrived at business collection point", "Üzleti felvevőpontba megérkezett"),
    "INWAREHOUSE": FoxpostStatus(_S.IN_TRANSIT, "In warehouse", "Raktárban van"),
    "HDSENT": FoxpostStatus(_S.OUT_FOR_DELIVERY, "Home delivery sent", "Házhozszállítás küldve"),
    "HDINTRANSIT": FoxpostStatus(_S.OUT_FOR_DELIVERY, "Out for home delivery", "Házhoz szállítás alatt"),
    "HDDEPO": FoxpostStatus(_S.IN_TRANSIT, "At home delivery depot", "Kiszállítási depoban"),
    "HDCOURIER": FoxpostStatus(_S.OUT_FOR_DELIVERY, "With courier for delivery", "Futárnál szállításra"),
    "HDHUBIN": FoxpostStatus(_S.IN_TRANSIT, "Arrived at delivery hub", "Szállítási csomópontra megérkezett"),
    "HDHUBOUT": FoxpostStatus(_S.OUT_FOR_DELIVERY, "Left delivery hub", "Szállítási csomópontból elküldve"),
    "HDRECEIVE": FoxpostStatus(_S.DELIVERED, "Delivered by home delivery", "Házhoz szállítva"),
    "HDRETURN": FoxpostStatus(_S.RETURNED, "Returned from home delivery", "Házhoz szállítás visszatérült"),
    "HDUNDELIVERABLE": FoxpostStatus(_S.EXCEPTION, "Undeliverable (home delivery failed)", "Nem szállítható"),
    "OVERTIMEOUT": FoxpostStatus(_S.EXCEPTION, "Overtime out (delivery exceeded time limit)", "Túlóra lejárt"),
    "OVERTIMED": FoxpostStatus(_S.EXCEPTION, "Overtime (delivery delayed)", "Túlóra (késedelem)"),
    "MISSORT": FoxpostStatus(_S.EXCEPTION, "Missorted - rerouted", "Hibásan rendezett - átirányított"),
    "EMPTYSLOT": FoxpostStatus(_S.EXCEPTION, "No locker slot available", "Nincs szabad automatahely"),
    "BACKLOGINFULL": FoxpostStatus(_S.EXCEPTION, "Backlog - facility at capacity", "Feldolgozási várakozási sor teljes"),
    "BACKLOGINFAIL": FoxpostStatus(_S.EXCEPTION, "Backlog failed - retry needed", "Feldolgozási sor sikertelen"),
    "COLLECTSENT": FoxpostStatus(_S.IN_TRANSIT, "Collect shipment sent", "Gyűjtőszállítmány küldve"),
    "COLLECTED": FoxpostStatus(_S.DELIVERED, "Collected from sender", "Feladótól összeszedve"),
    "SLOTCHANGE": FoxpostStatus(_S.IN_TRANSIT, "Locker slot changed", "Automatahely módosult"),
    "WBXREDIRECT": FoxpostStatus(_S.IN_TRANSIT, "Redirected via WBX", "WBX-en keresztül átirányított"),
    "PREREDIRECT": FoxpostStatus(_S.IN_TRANSIT, "Pre-redirect (staged for redirection)", "Előátirányítás"),
    "RETURNED": FoxpostStatus(_S.DELIVERED, "Returned (delivered back to sender)", "Visszaküldve (feladónak szállítva)"),
    "PREPAREDFORPD": FoxpostStatus(_S.IN_TRANSIT, "Prepared for home delivery", "Házhoz szállításra előkészítve"),
})


def map_foxpost_status(code: str) -> FoxpostStatus:
    """Look up a Foxpost status code; unknown codes map to PENDING."""
    return FOXPOST_STATUS_MAP.get(code) or FoxpostStatus(_S.PENDING, f"Foxpost: {code}")


def determine_size(parcel: Parcel) -> str:
    """Pick the Foxpost locker size from the parcel volume. Defaults to S."""
    if parcel.dimensions is None:
        return "S"
    volume = parcel.dimensions.volume_cm3
    for bound, size in _SIZE_BY_VOLUME:
        if volume < bound:
            return size
    return "XL"


def map_parcel_to_foxpost(parcel: Parcel) -> dict[str, Any]:
    """Build the Foxpost create-parcel payload.

    Pickup point delivery produces an APM parcel, home delivery an HD parcel.

    Raises:
        CarrierError: Validation, if the recipient cannot be shipped with Foxpost.
    """
    contact = parcel.recipient.contact
    phone = (contact.phone or "").replace(" ", "")
    if not _HUNGARIAN_MOBILE.match(phone):
        raise CarrierError(
            f"Parcel {parcel.id}: recipient phone must be a Hungarian mobile number",
            ErrorCategory.VALIDATION,
            carrier_code="INVALID_RECIPIENT",
            raw={"parcel_id": parcel.id, "field": "recipientPhone"},
        )
    if not contact.email:
        raise CarrierError(
            f"Parcel {parcel.id}: recipient email is required",
            ErrorCategory.VALIDATION,
            carrier_code="INVALID_RECIPIENT",
            raw={"parcel_id": parcel.id, "field": "recipientEmail"},
        )

    payload: dict[str, Any] = {
        "recipientName": contact.name[:150],
        "recipientPhone": phone,
        "recipientEmail": contact.email,
        "size": determine_size(parcel),
        "cod": int(parcel.cod_amount or 0),
    }
    if parcel.reference:
        payload["refCode"] = parcel.reference[:30]

    delivery = parcel.recipient.delivery
    if isinstance(delivery, PickupPointDelivery):
        payload["type"] = "APM"
        payload["destination"] = delivery.pickup_point_id
    elif isinstance(delivery, HomeDelivery):
        address = delivery.address
        payload.update({
            "type": "HD",
            "recipientCity": address.city[:25],
            "recipientZip": address.postal_code,
            "recipientAddress": address.street[:150],
            "recipientCountry": address.country,
            "fragile": parcel.fragile,
        })
        if delivery.instructions:
            payload["deliveryNote"] = delivery.instructions
    if parcel.fragile:
        payload["comment"] = "FRAGILE"
    return payload


def map_parcel_result(item: dict[str, Any] | None, input_id: str) -> CarrierResource:
    """Convert one entry of the Foxpost ``parcels`` response array."""
    if not item:
        return CarrierResource(
            status=FAILED,
            input_id=input_id,
            errors=[ParcelValidationError(
                code="MISSING_RESULT",
                message="Foxpost returned no result for this parcel",
            )],
        )

    item_errors = item.get("errors") or []
    if item_errors:
        errors = [
            ParcelValidationError(
                field=err.get("field"),
                code=err.get("message"),
                message=f"Field '{err['field']}': {err.get('message')}" if err.get("field") else str(err.get("message")),
            )
            for err in item_errors
        ]
        return CarrierResource(status=FAILED, input_id=input_id, errors=errors, raw=item)

    carrier_id = item.get("clFoxId")
    if not carrier_id:
        return CarrierResource(
            status=FAILED,
            input_id=input_id,
            errors=[ParcelValidationError(
                field="clFoxId",
                code="NO_BARCODE_ASSIGNED",
                message="No barcode assigned by carrier",
            )],
            raw=item,
        )

    return CarrierResource(
        carrier_id=str(carrier_id),
        status=CREATED,
        input_id=input_id,
        raw=item,
        meta={"refCode": item.get("refCode")} if item.get("refCode") else None,
    )


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return datetime.now(timezone.utc)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc)


def map_trace_to_event(trace: dict[str, Any]) -> TrackingEvent:
    """Convert one Foxpost trace entry to a TrackingEvent."""
    code = trace.get("status") or "CREATE"
    status = map_foxpost_status(code)
    return TrackingEvent(
        timestamp=_parse_timestamp(trace.get("statusDate")),
        status=status.canonical,
        carrier_status_code=code,
        description=trace.get("longName") or trace.get("shortName") or status.description_en,
        description_local=status.description_hu,
        location={"name": trace["statusStationName"]} if trace.get("statusStationName") else None,
        raw=trace,
    )


def _as_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def map_apm_to_pickup_point(apm: dict[str, Any]) -> PickupPoint | None:
    """Convert one entry of the Foxpost APM feed. Entries without an ID are skipped."""
    operator_id = str(apm.get("operator_id") or "").strip()
    place_id = str(apm.get("place_id") or "").strip()
    point_id = operator_id or place_id
    if not point_id:
        return None

    allowed = apm.get("allowed2")
    metadata = {
        key: apm[key]
        for key in ("depot", "load", "apmType", "variant", "substitutes", "findme", "isOutdoor")
        if apm.get(key) not in (None, "", [])
    }
    return PickupPoint(
        id=point_id,
        provider_id=place_id if operator_id else None,
        name=apm.get("name"),
        country=(apm.get("country") or "").lower() or None,
        postal_code=apm.get("zip"),
        city=apm.get("city"),
        street=apm.get("street") or apm.get("address"),
        latitude=_as_float(apm.get("geolat")),
        longitude=_as_float(apm.get("geolng")),
        dropoff_allowed=True,
        pickup_allowed=allowed != "C2C",
        metadata=metadata or None,
        raw=apm,
    )
