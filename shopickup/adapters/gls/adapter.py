"""GLS (MyGLS) carrier adapter.

MyGLS is a JSON-over-HTTP facade on a WCF service. Business errors come
back with HTTP 200 and an error list in the body; errors that name
specific parcels fail only those items, anything else fails the call.

Endpoints (per country, see resolve_gls_base_url):
    POST {base}/json/PrepareLabels      create parcels
    POST {base}/json/GetPrintedLabels   labels for created parcels
    POST {base}/json/GetParcelStatuses  tracking history
Pickup points come from the public delivery point feed.
"""

import logging
import uuid

from shopickup.adapters.base import AdapterContext, Capability, CarrierAdapter
from shopickup.adapters.gls.auth import build_auth_fields, resolve_gls_base_url
from shopickup.adapters.gls.errors import (
    PARCEL_NOT_FOUND_CODES,
    error_list,
    gls_body_error,
    read_field,
    translate_gls_error,
)
from shopickup.adapters.gls.mappers import (
    decode_label_bytes,
    failed_by_reference,
    map_delivery_point,
    map_parcel_info,
    map_parcel_to_gls,
    map_tracking_response,
)
from shopickup.batch.aggregator import build_batch_response, build_labels_response, order_by_input
from shopickup.errors.carrier import CarrierError, ErrorCategory
from shopickup.models.domain import FetchPickupPointsResponse, TrackingUpdate
from shopickup.models.requests import (
    CreateLabelsRequest,
    CreateParcelsRequest,
    FetchPickupPointsRequest,
    GLSCredentials,
    RequestOptions,
    TrackingRequest,
)
from shopickup.models.results import (
    CREATED,
    FAILED,
    BatchResponse,
    CarrierResource,
    CreateLabelsResponse,
    LabelFile,
    LabelResult,
    PageRange,
    ParcelValidationError,
)
from shopickup.utils.log_helpers import safe_log, summarize_raw_response

logger = logging.getLogger(__name__)

GLS_DELIVERY_POINTS_URL = "https://map.gls-hungary.com/data/deliveryPoints"

PRINTER_TYPES = frozenset({"A4_2x2", "A4_4x1", "Connect", "Thermo", "ThermoZPL"})


def _country(options: RequestOptions) -> str:
    return str(options.extra_option("country", "HU")).upper()


class GLSAdapter(CarrierAdapter):
    """Adapter for the MyGLS ParcelService API."""

    id = "gls"
    display_name = "GLS"
    capabilities = frozenset({
        Capability.CREATE_PARCEL,
        Capability.CREATE_PARCELS,
        Capability.CREATE_LABEL,
        Capability.CREATE_LABELS,
        Capability.TRACK,
        Capability.LIST_PICKUP_POINTS,
        Capability.TEST_MODE_SUPPORTED,
    })
    credentials_model = GLSCredentials

    def __init__(self, delivery_points_url: str = GLS_DELIVERY_POINTS_URL) -> None:
        self.delivery_points_url = delivery_points_url.rstrip("/")

    def translate_error(self, error: Exception) -> CarrierError:
        return translate_gls_error(error)

    def resolve_base_url(self, options: RequestOptions) -> str:
        return resolve_gls_base_url(_country(options), options.use_test_api)

    async def _create_parcels(
        self, req: CreateParcelsRequest, credentials: GLSCredentials, ctx: AdapterContext
    ) -> BatchResponse:
        http = self.require_http(ctx)
        base_url = self.resolve_base_url(req.options)
        client_number = credentials.client_number_list[0]
        cod_currency = str(req.options.extra_option("cod_currency", "HUF"))
        body = {
            **build_auth_fields(credentials),
            "parcelList": [
                map_parcel_to_gls(parcel, client_number, cod_currency=cod_currency)
                for parcel in req.parcels
            ],
        }

        response = await http.post(f"{base_url}/json/PrepareLabels", json=body)
        data = response.body
        if not isinstance(data, dict):
            raise CarrierError(
                "Invalid response from GLS",
                ErrorCategory.TRANSIENT,
                raw=summarize_raw_response(data),
            )

        errors = error_list(data, "prepareLabelsError")
        attributed = failed_by_reference(errors)
        unattributed = [entry for entry in errors if not read_field(entry, "clientReferenceList")]
        if unattributed:
            raise gls_body_error(unattributed[0])

        # Failures first so an error wins over a stray parcelInfo entry
        resources = [
            CarrierResource(status=FAILED, input_id=reference, errors=items)
            for reference, items in attributed.items()
        ]
        resources.extend(map_parcel_info(info) for info in read_field(data, "parcelInfoList") or [])
        results = order_by_input(
            [parcel.id for parcel in req.parcels],
            resources,
            key=lambda resource: resource.input_id,
        )

        safe_log(
            logger,
            logging.INFO,
            "GLS: PrepareLabels finished",
            {
                "count": len(results),
                "country": _country(req.options),
                "test_mode": req.options.use_test_api,
                "rejected": sorted(attributed),
            },
            ctx,
        )
        return build_batch_response(results, noun="parcels", raw_carrier_response=data)

    async def _create_labels(
        self, req: CreateLabelsRequest, credentials: GLSCredentials, ctx: AdapterContext
    ) -> CreateLabelsResponse:
        http = self.require_http(ctx)
        options = req.options
        printer = options.extra_option("printer_type", "Thermo")
        if printer not in PRINTER_TYPES:
            raise CarrierError(
                f"Invalid GLS printer type {printer!r}; expected one of {sorted(PRINTER_TYPES)}",
                ErrorCategory.VALIDATION,
                carrier_code="INVALID_PRINTER_TYPE",
            )

        invalid: dict[str, list[ParcelValidationError]] = {}
        parcel_ids: list[int] = []
        for carrier_id in req.parcel_carrier_ids:
            if carrier_id.isdigit() and int(carrier_id) > 0:
                parcel_ids.append(int(carrier_id))
            else:
                invalid[carrier_id] = [ParcelValidationError(
                    field="parcelCarrierIds",
                    code="INVALID_PARCEL_ID",
                    message=f"GLS parcel IDs are positive integers, got {carrier_id!r}",
                )]

        data = None
        label_bytes = None
        rejected: dict[str, list[ParcelValidationError]] = dict(invalid)
        if parcel_ids:
            body = {
                **build_auth_fields(credentials),
                "parcelIdList": parcel_ids,
                "typeOfPrinter": printer,
                "printPosition": int(options.extra_option("print_position", 1)),
                "showPrintDialog": False,
            }
            response = await http.post(f"{self.resolve_base_url(options)}/json/GetPrintedLabels", json=body)
            data = response.body
            if not isinstance(data, dict):
                raise CarrierError(
                    "Invalid response from GLS",
                    ErrorCategory.TRANSIENT,
                    raw=summarize_raw_response(data),
                )
            errors = error_list(data, "getPrintedLabelsErrorList")
            unattributed = [entry for entry in errors if not read_field(entry, "parcelIdList")]
            if unattributed:
                raise gls_body_error(unattributed[0])
            for parcel_id, items in failed_by_reference(errors, field="parcelIdList").items():
                rejected.setdefault(parcel_id, []).extend(items)
            label_bytes = decode_label_bytes(read_field(data, "labels"))

        printed = [carrier_id for carrier_id in req.parcel_carrier_ids if carrier_id not in rejected]
        if printed and not label_bytes:
            raise CarrierError(
                "GLS returned no label data",
                ErrorCategory.TRANSIENT,
                carrier_code="NO_LABEL_DATA",
                raw=summarize_raw_response(data),
            )

        files = []
        file_id = None
        if printed:
            file_id = str(uuid.uuid4())
            files.append(LabelFile(
                id=file_id,
                byte_length=len(label_bytes),
                pages=len(printed),
                metadata={"combined": True, "printerType": printer, "parcelCount": len(printed)},
                content=label_bytes,
            ))

        results = []
        page = 0
        for carrier_id in req.parcel_carrier_ids:
            if carrier_id in rejected:
                results.append(LabelResult(status=FAILED, input_id=carrier_id, errors=rejected[carrier_id]))
                continue
            page += 1
            results.append(LabelResult(
                carrier_id=carrier_id,
                status=CREATED,
                input_id=carrier_id,
                file_id=file_id,
                page_range=PageRange(start=page, end=page),
            ))

        raw = None
        if data is not None:
            raw = {key: value for key, value in data.items() if key.lower() != "labels"}
            raw["labelByteLength"] = len(label_bytes or b"")
        return build_labels_response(results, files, raw_carrier_response=raw)

    async def _track(
        self, req: TrackingRequest, credentials: GLSCredentials, ctx: AdapterContext
    ) -> TrackingUpdate:
        http = self.require_http(ctx)
        tracking_number = req.tracking_number.strip()
        if not tracking_number.isdigit() or int(tracking_number) <= 0:
            raise CarrierError(
                f"Invalid GLS parcel number: {req.tracking_number}",
                ErrorCategory.VALIDATION,
                carrier_code="INVALID_PARCEL_NUMBER",
            )

        auth = build_auth_fields(credentials)
        body = {
            "username": auth["username"],
            "password": auth["password"],
            "parcelNumber": int(tracking_number),
            "returnPOD": bool(req.options.extra_option("return_pod", False)),
            "languageIsoCode": str(req.options.extra_option("language", "EN")).upper(),
        }
        response = await http.post(f"{self.resolve_base_url(req.options)}/json/GetParcelStatuses", json=body)
        data = response.body
        if not isinstance(data, dict):
            raise CarrierError(
                "Invalid response from GLS",
                ErrorCategory.TRANSIENT,
                raw=summarize_raw_response(data),
            )

        errors = error_list(data, "getParcelStatusErrors")
        if errors:
            error = gls_body_error(errors[0])
            if error.carrier_code in PARCEL_NOT_FOUND_CODES:
                raise CarrierError(
                    f"No tracking information found for {tracking_number}",
                    ErrorCategory.VALIDATION,
                    carrier_code="NOT_FOUND",
                    raw=error.raw,
                )
            raise error

        update = map_tracking_response(data, tracking_number)
        safe_log(
            logger,
            logging.INFO,
            "GLS: tracking retrieved",
            {"tracking_number": tracking_number, "status": update.status.value, "events": len(update.events)},
            ctx,
        )
        return update

    async def _fetch_pickup_points(
        self, req: FetchPickupPointsRequest, ctx: AdapterContext
    ) -> FetchPickupPointsResponse:
        http = self.require_http(ctx)
        country = _country(req.options).lower()
        if len(country) != 2 or not country.isalpha():
            raise CarrierError(
                f"Invalid country code format: {country}. Expected 2-letter ISO code.",
                ErrorCategory.VALIDATION,
                carrier_code="INVALID_COUNTRY",
            )

        url = f"{self.delivery_points_url}/{country}.json"
        safe_log(logger, logging.DEBUG, "Fetching GLS delivery points", {"url": url}, ctx)
        response = await http.get(url)
        feed = response.body
        if not isinstance(feed, dict) or not isinstance(feed.get("items"), list):
            raise CarrierError(
                "Invalid response format from GLS: expected { items: [...] }",
                ErrorCategory.PERMANENT,
                raw=summarize_raw_response(feed),
            )

        points = [
            point
            for point in (map_delivery_point(item, country) for item in feed["items"] if isinstance(item, dict))
            if point
        ]
        safe_log(
            logger,
            logging.INFO,
            "Fetched GLS delivery points",
            {"country": country, "count": len(points)},
            ctx,
        )
        return FetchPickupPointsResponse(points=points, total_count=len(points), raw_carrier_response=None)
