"""Foxpost carrier adapter.

Foxpost (Hungarian parcel lockers and home delivery) exposes a batch
create endpoint, a combined-PDF label endpoint and per-barcode tracking.
Pickup points come from a public JSON feed.

Endpoints:
    POST {base}/api/parcel?isWeb=..&isRedirect=false   create parcels
    POST {base}/api/label/{size}                        labels as one PDF
    GET  {base}/api/tracking/{barcode}                  tracking history
"""

import base64
import logging
import uuid
from urllib.parse import quote

from shopickup.adapters.base import (
    AdapterContext,
    Capability,
    CarrierAdapter,
    create_resolve_base_url,
)
from shopickup.adapters.foxpost.errors import translate_foxpost_error
from shopickup.adapters.foxpost.mappers import (
    map_apm_to_pickup_point,
    map_parcel_result,
    map_parcel_to_foxpost,
    map_trace_to_event,
)
from shopickup.batch.aggregator import build_batch_response, build_labels_response
from shopickup.errors.carrier import CarrierError, ErrorCategory
from shopickup.models.domain import FetchPickupPointsResponse, TrackingStatus, TrackingUpdate
from shopickup.models.requests import (
    CreateLabelsRequest,
    CreateParcelsRequest,
    FetchPickupPointsRequest,
    FoxpostCredentials,
    TrackingRequest,
)
from shopickup.models.results import CREATED, BatchResponse, CreateLabelsResponse, LabelFile, LabelResult, PageRange
from shopickup.utils.log_helpers import safe_log, summarize_raw_response

logger = logging.getLogger(__name__)

FOXPOST_PROD_URL = "https://webapi.foxpost.hu"
FOXPOST_TEST_URL = "https://webapi-test.foxpost.hu"
FOXPOST_APM_FEED_URL = "https://cdn.foxpost.hu/foxplus.json"

LABEL_SIZES = frozenset({"A6", "A7", "_85X85"})


def build_foxpost_headers(credentials: FoxpostCredentials, *, accept: str = "application/json") -> dict[str, str]:
    """Basic auth plus the Api-key header required on every Foxpost call."""
    token = base64.b64encode(
        f"{credentials.basic_username}:{credentials.basic_password}".encode()
    ).decode()
    return {
        "Content-Type": "application/json",
        "Accept": accept,
        "Authorization": f"Basic {token}",
        "Api-key": credentials.api_key,
    }


class FoxpostAdapter(CarrierAdapter):
    """Adapter for the Foxpost web API."""

    id = "foxpost"
    display_name = "Foxpost"
    capabilities = frozenset({
        Capability.CREATE_PARCEL,
        Capability.CREATE_PARCELS,
        Capability.CREATE_LABEL,
        Capability.CREATE_LABELS,
        Capability.TRACK,
        Capability.LIST_PICKUP_POINTS,
        Capability.TEST_MODE_SUPPORTED,
    })
    credentials_model = FoxpostCredentials

    def __init__(
        self,
        prod_base_url: str = FOXPOST_PROD_URL,
        test_base_url: str = FOXPOST_TEST_URL,
        apm_feed_url: str = FOXPOST_APM_FEED_URL,
    ) -> None:
        self.resolve_base_url = create_resolve_base_url(prod_base_url, test_base_url)
        self.apm_feed_url = apm_feed_url

    def translate_error(self, error: Exception) -> CarrierError:
        return translate_foxpost_error(error)

    async def _create_parcels(
        self, req: CreateParcelsRequest, credentials: FoxpostCredentials, ctx: AdapterContext
    ) -> BatchResponse:
        http = self.require_http(ctx)
        payload = [map_parcel_to_foxpost(parcel) for parcel in req.parcels]
        use_test_api = req.options.use_test_api

        response = await http.post(
            f"{self.resolve_base_url(req.options)}/api/parcel",
            json=payload,
            headers=build_foxpost_headers(credentials),
            params={"isWeb": "false" if use_test_api else "true", "isRedirect": "false"},
        )
        body = response.body
        if not isinstance(body, dict) or not isinstance(body.get("parcels"), list):
            raise CarrierError(
                "Invalid response from Foxpost",
                ErrorCategory.TRANSIENT,
                raw=summarize_raw_response(body),
            )

        batch_errors = body.get("errors") or []
        if body.get("valid") is False and batch_errors:
            first = batch_errors[0] or {}
            code = first.get("message") or "VALIDATION_ERROR"
            raise CarrierError(
                f"Validation error: {code} (field: {first.get('field') or 'unknown'})",
                ErrorCategory.VALIDATION,
                carrier_code=code,
                raw=body,
            )

        items = body["parcels"]
        results = [
            map_parcel_result(items[index] if index < len(items) else None, parcel.id)
            for index, parcel in enumerate(req.parcels)
        ]
        for result in results:
            if result.errors:
                safe_log(
                    logger,
                    logging.WARNING,
                    "Foxpost: parcel rejected",
                    {
                        "parcel_id": result.input_id,
                        "errors": [f"{e.field or 'unknown'}: {e.code}" for e in result.errors],
                    },
                    ctx,
                )
        return build_batch_response(results, noun="parcels", raw_carrier_response=body)

    async def _create_labels(
        self, req: CreateLabelsRequest, credentials: FoxpostCredentials, ctx: AdapterContext
    ) -> CreateLabelsResponse:
        http = self.require_http(ctx)
        options = req.options
        size = options.extra_option("size", "A7")
        if size not in LABEL_SIZES:
            raise CarrierError(
                f"Invalid Foxpost label size {size!r}; expected one of {sorted(LABEL_SIZES)}",
                ErrorCategory.VALIDATION,
                carrier_code="INVALID_LABEL_SIZE",
            )
        start_pos = options.extra_option("start_pos")
        is_portrait = options.extra_option("is_portrait")
        params = {}
        if start_pos is not None:
            params["startPos"] = str(start_pos)
        if is_portrait is not None:
            params["isPortrait"] = str(bool(is_portrait)).lower()

        barcodes = list(req.parcel_carrier_ids)
        response = await http.post(
            f"{self.resolve_base_url(options)}/api/label/{size}",
            json=barcodes,
            headers=build_foxpost_headers(credentials, accept="application/pdf"),
            params=params or None,
            response_type="bytes",
        )
        pdf = response.body
        if not isinstance(pdf, (bytes, bytearray)) or not pdf.startswith(b"%PDF"):
            raise CarrierError(
                "Invalid PDF response from Foxpost",
                ErrorCategory.TRANSIENT,
                raw=summarize_raw_response(pdf),
            )

        label_file = LabelFile(
            id=str(uuid.uuid4()),
            byte_length=len(pdf),
            pages=len(barcodes),
            orientation="landscape" if is_portrait is False else "portrait",
            metadata={"size": size, "barcodeCount": len(barcodes), "combined": True},
            content=bytes(pdf),
        )
        # One page per barcode, in request order
        results = [
            LabelResult(
                carrier_id=barcode,
                status=CREATED,
                input_id=barcode,
                file_id=label_file.id,
                page_range=PageRange(start=index + 1, end=index + 1),
                raw={"barcode": barcode, "pageSize": size, "pageNumber": index + 1},
            )
            for index, barcode in enumerate(barcodes)
        ]
        return build_labels_response(
            results,
            [label_file],
            raw_carrier_response={"size": size, "byteLength": len(pdf), "barcodeCount": len(barcodes)},
        )

    async def _track(
        self, req: TrackingRequest, credentials: FoxpostCredentials, ctx: AdapterContext
    ) -> TrackingUpdate:
        http = self.require_http(ctx)
        tracking_number = req.tracking_number
        response = await http.get(
            f"{self.resolve_base_url(req.options)}/api/tracking/{quote(tracking_number, safe='')}",
            headers=build_foxpost_headers(credentials),
        )
        body = response.body
        if not isinstance(body, dict) or not body.get("clFox"):
            raise CarrierError(
                f"No tracking information found for {tracking_number}",
                ErrorCategory.VALIDATION,
                carrier_code="NOT_FOUND",
                raw=body,
            )
        traces = body.get("traces")
        if not isinstance(traces, list):
            raise CarrierError(
                f"Invalid tracking response: traces missing for {tracking_number}",
                ErrorCategory.TRANSIENT,
                raw=body,
            )

        # Foxpost lists the newest trace first
        events = [map_trace_to_event(trace) for trace in reversed(traces)]
        safe_log(
            logger,
            logging.INFO,
            "Foxpost: tracking retrieved",
            {"tracking_number": tracking_number, "events": len(events), "parcel_type": body.get("parcelType")},
            ctx,
        )
        return TrackingUpdate(
            tracking_number=tracking_number,
            events=events,
            status=events[-1].status if events else TrackingStatus.PENDING,
            last_update=events[-1].timestamp if events else None,
            raw_carrier_response=body,
        )

    async def _fetch_pickup_points(
        self, req: FetchPickupPointsRequest, ctx: AdapterContext
    ) -> FetchPickupPointsResponse:
        http = self.require_http(ctx)
        safe_log(logger, logging.DEBUG, "Fetching Foxpost APM feed", {"url": self.apm_feed_url}, ctx)
        response = await http.get(self.apm_feed_url)
        feed = response.body
        if not isinstance(feed, list):
            raise CarrierError(
                f"Expected a list of APMs from the Foxpost feed, got {type(feed).__name__}",
                ErrorCategory.TRANSIENT,
                raw=summarize_raw_response(feed),
            )

        points = [point for point in (map_apm_to_pickup_point(apm) for apm in feed if isinstance(apm, dict)) if point]
        safe_log(
            logger,
            logging.INFO,
            "Fetched Foxpost APM feed",
            {"count": len(points), "raw": feed},
            ctx,
        )
        return FetchPickupPointsResponse(points=points, total_count=len(points), raw_carrier_response=None)
