"""MPL (Magyar Posta) carrier adapter.

Endpoints:
    POST {base}/shipments                      create up to 100 shipments
    GET  {base}/shipments/label                labels, one base64 document per shipment
    GET  {base}/shipments/{trackingNumber}     shipment details
    GET  {base}/nyomkovetes/guest              track and trace
    GET  {base}/nyomkovetes/registered         track and trace with weight, size and value
    POST {base}/deliveryplace                  post offices, PostaPont and parcel lockers
    POST {tracking}/tracking                   Pull-500 batch tracking, start
    GET  {tracking}/tracking/{trackingGUID}    Pull-500 batch tracking, poll

API key credentials are exchanged for an OAuth2 bearer token, cached per
credential set (see TokenCache). A caller-supplied OAuth2 token is used as is.
"""

import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar
from urllib.parse import quote

from shopickup.adapters.base import AdapterContext, Capability, CarrierAdapter, create_resolve_base_url
from shopickup.adapters.mpl.auth import (
    MPL_OAUTH_PROD_URL,
    MPL_OAUTH_TEST_URL,
    TokenCache,
    build_mpl_headers,
    exchange_token,
)
from shopickup.adapters.mpl.errors import translate_mpl_error
from shopickup.adapters.mpl.mappers import (
    DEFAULT_DEVELOPER,
    LABEL_FORMATS,
    LABEL_TYPES,
    PICKUP_SERVICE_POINT_TYPES,
    decode_label,
    map_delivery_place,
    map_parcel_to_shipment,
    map_result_errors,
    map_shipment_details,
    map_shipment_result,
    map_tracking_records,
)
from shopickup.adapters.mpl.models import (
    PULL500_MAX_TRACKING_NUMBERS,
    Pull500CheckRequest,
    Pull500CheckResponse,
    Pull500StartRequest,
    Pull500StartResponse,
    ShipmentDetails,
    ShipmentDetailsRequest,
)
from shopickup.batch.aggregator import build_batch_response, build_labels_response, order_by_input
from shopickup.errors.carrier import CarrierError, ErrorCategory
from shopickup.http.client import HttpClient, HttpError, HttpResponse
from shopickup.models.domain import FetchPickupPointsResponse, TrackingUpdate
from shopickup.models.requests import (
    CreateLabelsRequest,
    CreateParcelsRequest,
    FetchPickupPointsRequest,
    MPLCredentials,
    RequestOptions,
    TrackingRequest,
)
from shopickup.models.results import (
    CREATED,
    FAILED,
    BatchResponse,
    CreateLabelsResponse,
    LabelFile,
    LabelResult,
    PageRange,
    ParcelValidationError,
)
from shopickup.utils.log_helpers import safe_log, summarize_raw_response

logger = logging.getLogger(__name__)

MPL_PROD_URL = "https://core.api.posta.hu/v2/mplapi"
MPL_TEST_URL = "https://sandbox.api.posta.hu/v2/mplapi"
MPL_TRACKING_PROD_URL = "https://core.api.posta.hu/v2/mplapi-tracking"
MPL_TRACKING_TEST_URL = "https://sandbox.api.posta.hu/v2/mplapi-tracking"

MAX_BATCH_SIZE = 100

T = TypeVar("T")


class MPLAdapter(CarrierAdapter):
    """Adapter for the MPL shipment API.

    Besides the common operations, MPL offers shipment details, tracking on
    the registered endpoint and Pull-500 batch tracking. These are listed in
    ``extra_operations`` so adapter wrappers expose them too.
    """

    id = "mpl"
    display_name = "MPL"
    capabilities = frozenset({
        Capability.CREATE_PARCEL,
        Capability.CREATE_PARCELS,
        Capability.CREATE_LABEL,
        Capability.CREATE_LABELS,
        Capability.TRACK,
        Capability.LIST_PICKUP_POINTS,
        Capability.TEST_MODE_SUPPORTED,
    })
    credentials_model = MPLCredentials
    extra_operations = (
        "get_shipment_details",
        "track_registered",
        "track_pull500_start",
        "track_pull500_check",
    )

    def __init__(
        self,
        prod_base_url: str = MPL_PROD_URL,
        test_base_url: str = MPL_TEST_URL,
        oauth_prod_url: str = MPL_OAUTH_PROD_URL,
        oauth_test_url: str = MPL_OAUTH_TEST_URL,
        tracking_prod_url: str = MPL_TRACKING_PROD_URL,
        tracking_test_url: str = MPL_TRACKING_TEST_URL,
        token_cache: TokenCache | None = None,
        developer: str = DEFAULT_DEVELOPER,
    ) -> None:
        self.resolve_base_url = create_resolve_base_url(prod_base_url, test_base_url)
        self.resolve_oauth_url = create_resolve_base_url(oauth_prod_url, oauth_test_url)
        self.resolve_tracking_url = create_resolve_base_url(tracking_prod_url, tracking_test_url)
        self.token_cache = token_cache or TokenCache()
        self.developer = developer

    def translate_error(self, error: Exception) -> CarrierError:
        return translate_mpl_error(error)

    def check_batch_size(self, count: int) -> None:
        if count > MAX_BATCH_SIZE:
            raise CarrierError(
                f"Too many items: {count} > {MAX_BATCH_SIZE} (MPL API limit)",
                ErrorCategory.VALIDATION,
                carrier_code="BATCH_TOO_LARGE",
                raw={"maxAllowed": MAX_BATCH_SIZE, "requested": count},
            )

    async def _headers(self, http: HttpClient, credentials: MPLCredentials, options: RequestOptions) -> dict[str, str]:
        if credentials.auth_type == "oauth2":
            return build_mpl_headers(credentials=credentials, accounting_code=credentials.accounting_code)

        oauth_url = self.resolve_oauth_url(options)
        token = await self.token_cache.get_token(
            credentials,
            lambda: exchange_token(
                http,
                oauth_url,
                credentials,
                accounting_code=credentials.accounting_code,
                clock=self.token_cache.clock,
            ),
            scope=oauth_url,
        )
        return build_mpl_headers(bearer_token=token.access_token, accounting_code=credentials.accounting_code)

    async def _send(
        self,
        method: str,
        url: str,
        credentials: MPLCredentials,
        options: RequestOptions,
        ctx: AdapterContext,
        **kwargs: Any,
    ) -> HttpResponse:
        """Send an authorized request. A 401 evicts the cached token."""
        http = self.require_http(ctx)
        headers = await self._headers(http, credentials, options)
        try:
            if method == "GET":
                return await http.get(url, headers=headers, **kwargs)
            return await http.post(url, headers=headers, **kwargs)
        except HttpError as e:
            if e.status == 401 and credentials.auth_type == "apiKey":
                self.token_cache.invalidate(credentials, scope=self.resolve_oauth_url(options))
            raise

    async def _create_parcels(
        self, req: CreateParcelsRequest, credentials: MPLCredentials, ctx: AdapterContext
    ) -> BatchResponse:
        if not credentials.agreement_number:
            raise CarrierError(
                "MPL agreement number is required to create shipments",
                ErrorCategory.VALIDATION,
                carrier_code="MISSING_AGREEMENT",
            )
        label_type = req.options.extra_option("label_type", "A5")
        if label_type not in LABEL_TYPES:
            raise CarrierError(
                f"Invalid MPL label type {label_type!r}",
                ErrorCategory.VALIDATION,
                carrier_code="INVALID_LABEL_TYPE",
            )
        shipments = [
            map_parcel_to_shipment(
                parcel,
                credentials.agreement_number,
                label_type=label_type,
                developer=self.developer,
            )
            for parcel in req.parcels
        ]

        response = await self._send(
            "POST",
            f"{self.resolve_base_url(req.options)}/shipments",
            credentials,
            req.options,
            ctx,
            json=shipments,
        )
        body = response.body
        if not isinstance(body, list):
            raise CarrierError(
                "Invalid response from MPL: expected a list of shipment results",
                ErrorCategory.TRANSIENT,
                raw=summarize_raw_response(body),
            )

        resources = [map_shipment_result(result) for result in body if isinstance(result, dict)]
        for resource in resources:
            if resource.errors:
                safe_log(
                    logger,
                    logging.WARNING,
                    "MPL: shipment rejected",
                    {
                        "webshop_id": resource.input_id,
                        "errors": [f"{e.field or 'unknown'}: {e.code}" for e in resource.errors],
                    },
                    ctx,
                )
        results = order_by_input(
            [parcel.id for parcel in req.parcels],
            resources,
            key=lambda resource: resource.input_id,
        )
        return build_batch_response(results, noun="parcels", raw_carrier_response=body)

    async def _create_labels(
        self, req: CreateLabelsRequest, credentials: MPLCredentials, ctx: AdapterContext
    ) -> CreateLabelsResponse:
        options = req.options
        label_type = options.extra_option("label_type", "A5")
        label_format = str(options.extra_option("label_format", "PDF")).upper()
        if label_type not in LABEL_TYPES or label_format not in LABEL_FORMATS:
            raise CarrierError(
                f"Invalid MPL label options: type {label_type!r}, format {label_format!r}",
                ErrorCategory.VALIDATION,
                carrier_code="INVALID_LABEL_OPTIONS",
            )
        params: dict[str, Any] = {
            "trackingNumbers": list(req.parcel_carrier_ids),
            "labelType": label_type,
            "labelFormat": label_format,
        }
        order_by = options.extra_option("order_by")
        if order_by:
            params["orderBy"] = order_by

        response = await self._send(
            "GET",
            f"{self.resolve_base_url(options)}/shipments/label",
            credentials,
            options,
            ctx,
            params=params,
        )
        body = response.body
        if not isinstance(body, list):
            raise CarrierError(
                "Invalid response from MPL: expected a list of label results",
                ErrorCategory.TRANSIENT,
                raw=summarize_raw_response(body),
            )

        content_type = "text/plain" if label_format == "ZPL" else "application/pdf"
        files: list[LabelFile] = []
        resources: list[LabelResult] = []
        for entry in body:
            if not isinstance(entry, dict):
                continue
            tracking_number = entry.get("trackingNumber")
            raw = {key: value for key, value in entry.items() if key != "label"}
            errors = [err for err in entry.get("errors") or [] if isinstance(err, dict)]
            content = decode_label(entry.get("label"))
            if errors or content is None:
                resources.append(LabelResult(
                    status=FAILED,
                    input_id=tracking_number,
                    errors=map_result_errors(errors) if errors else [ParcelValidationError(
                        code="NO_LABEL_DATA",
                        message="No label data in response",
                    )],
                    raw=raw,
                ))
                continue

            label_file = LabelFile(
                id=str(uuid.uuid4()),
                content_type=content_type,
                byte_length=len(content),
                pages=1,
                metadata={"labelType": label_type, "labelFormat": label_format, "trackingNumber": tracking_number},
                content=content,
            )
            files.append(label_file)
            resources.append(LabelResult(
                carrier_id=str(tracking_number),
                status=CREATED,
                input_id=tracking_number,
                file_id=label_file.id,
                page_range=PageRange(start=1, end=1),
                raw=raw,
            ))

        results = order_by_input(
            list(req.parcel_carrier_ids),
            resources,
            key=lambda resource: resource.input_id,
            resource_type=LabelResult,
        )
        used = {result.file_id for result in results if result.file_id}
        return build_labels_response(
            results,
            [label_file for label_file in files if label_file.id in used],
            raw_carrier_response={"labelType": label_type, "labelFormat": label_format, "count": len(body)},
        )

    async def _track(
        self, req: TrackingRequest, credentials: MPLCredentials, ctx: AdapterContext
    ) -> TrackingUpdate:
        tracking_number = req.tracking_number.strip()
        registered = bool(req.options.extra_option("use_registered_endpoint", False))
        endpoint = "registered" if registered else "guest"
        response = await self._send(
            "GET",
            f"{self.resolve_base_url(req.options)}/nyomkovetes/{endpoint}",
            credentials,
            req.options,
            ctx,
            params={
                "ids": tracking_number,
                "state": req.options.extra_option("state", "all"),
                "language": req.options.extra_option("language", "hu"),
            },
        )
        body = response.body
        records = body.get("trackAndTrace") if isinstance(body, dict) else body
        if not isinstance(records, list):
            raise CarrierError(
                "Invalid tracking response from MPL",
                ErrorCategory.TRANSIENT,
                raw=summarize_raw_response(body),
            )

        matching = [
            record
            for record in records
            if isinstance(record, dict) and str(record.get("c1") or "").strip() == tracking_number
        ]
        if not matching:
            raise CarrierError(
                f"No tracking information found for {tracking_number}",
                ErrorCategory.VALIDATION,
                carrier_code="NOT_FOUND",
                raw=body,
            )

        update = map_tracking_records(matching, tracking_number, include_financial=registered)
        safe_log(
            logger,
            logging.INFO,
            "MPL: tracking retrieved",
            {
                "tracking_number": tracking_number,
                "endpoint": endpoint,
                "status": update.status.value,
                "events": len(update.events),
            },
            ctx,
        )
        return update

    async def _fetch_pickup_points(
        self, req: FetchPickupPointsRequest, ctx: AdapterContext
    ) -> FetchPickupPointsResponse:
        credentials = self.validate_credentials(req.credentials)
        self._require_accounting_code(credentials)
        options = req.options
        post_code = str(options.extra_option("post_code") or "").strip()
        city = str(options.extra_option("city") or "").strip()
        service_point_types = options.extra_option("service_point_type") or []
        if isinstance(service_point_types, str):
            service_point_types = [service_point_types]
        service_point_types = list(service_point_types)
        if post_code and len(post_code) != 4:
            raise CarrierError(
                f"Invalid postal code {post_code!r}: MPL expects 4 characters",
                ErrorCategory.VALIDATION,
                carrier_code="INVALID_POST_CODE",
            )
        unknown = sorted(set(service_point_types) - PICKUP_SERVICE_POINT_TYPES)
        if unknown:
            raise CarrierError(
                f"Invalid service point types: {', '.join(unknown)}",
                ErrorCategory.VALIDATION,
                carrier_code="INVALID_SERVICE_POINT_TYPE",
            )

        filters = {"postCode": post_code, "city": city, "servicePointType": service_point_types}
        safe_log(logger, logging.DEBUG, "Fetching MPL delivery places", {"filters": filters}, ctx)
        response = await self._send(
            "POST",
            f"{self.resolve_base_url(options)}/deliveryplace",
            credentials,
            options,
            ctx,
            json={
                "deliveryPlacesQuery": {"postCode": post_code, "city": city},
                "servicePointType": service_point_types,
            },
        )
        body = response.body
        entries = body.get("deliveryplaces") if isinstance(body, dict) else body
        if not isinstance(entries, list):
            raise CarrierError(
                "Invalid response format from MPL: expected a list of delivery places",
                ErrorCategory.PERMANENT,
                raw=summarize_raw_response(body),
            )

        points = [
            point
            for point in (map_delivery_place(entry) for entry in entries if isinstance(entry, dict))
            if point
        ]
        safe_log(
            logger,
            logging.INFO,
            "Fetched MPL delivery places",
            {"count": len(points), "skipped": len(entries) - len(points), "filters": filters},
            ctx,
        )
        return FetchPickupPointsResponse(points=points, total_count=len(points), raw_carrier_response=None)

    # --- MPL-only operations ---

    def _require_accounting_code(self, credentials: MPLCredentials) -> None:
        if not credentials.accounting_code:
            raise CarrierError(
                "MPL accounting code is required for this operation",
                ErrorCategory.VALIDATION,
                carrier_code="MISSING_ACCOUNTING_CODE",
            )

    async def _run(
        self,
        operation: str,
        req: Any,
        ctx: AdapterContext,
        call: Callable[[MPLCredentials], Awaitable[T]],
    ) -> T:
        """Preflight, then translate whatever the call raises into a CarrierError."""
        self.require_http(ctx)
        credentials = self.validate_credentials(req.credentials)
        try:
            return await call(credentials)
        except CarrierError:
            raise
        except Exception as e:
            error = self._to_carrier_error(e)
            self._log_failure(operation, error, ctx)
            raise error from e

    async def get_shipment_details(self, req: ShipmentDetailsRequest, ctx: AdapterContext) -> ShipmentDetails:
        """Fetch the registered shipment (parties, items, dates) by tracking number.

        Raises:
            CarrierError: Validation for a missing accounting code, for
                errors MPL reports in the body, or when no shipment exists.
        """

        async def call(credentials: MPLCredentials) -> ShipmentDetails:
            self._require_accounting_code(credentials)
            tracking_number = req.tracking_number.strip()
            response = await self._send(
                "GET",
                f"{self.resolve_base_url(req.options)}/shipments/{quote(tracking_number, safe='')}",
                credentials,
                req.options,
                ctx,
            )
            body = response.body
            if not isinstance(body, dict):
                raise CarrierError(
                    "Invalid shipment response from MPL",
                    ErrorCategory.TRANSIENT,
                    raw=summarize_raw_response(body),
                )
            errors = [err for err in body.get("errors") or [] if isinstance(err, dict)]
            if errors:
                raise CarrierError(
                    "MPL error: " + "; ".join(str(err.get("text") or err.get("code")) for err in errors),
                    ErrorCategory.VALIDATION,
                    carrier_code=errors[0].get("code"),
                    raw=errors,
                )
            shipment = body.get("shipment")
            if not isinstance(shipment, dict):
                raise CarrierError(
                    f"No shipment found for tracking number {tracking_number}",
                    ErrorCategory.VALIDATION,
                    carrier_code="NOT_FOUND",
                    raw=body,
                )
            details = map_shipment_details(body, shipment)
            safe_log(
                logger,
                logging.INFO,
                "MPL: shipment details retrieved",
                {"tracking_number": tracking_number, "items": len(details.items)},
                ctx,
            )
            return details

        return await self._run("get_shipment_details", req, ctx, call)

    async def track_registered(self, req: TrackingRequest, ctx: AdapterContext) -> TrackingUpdate:
        """Track on the registered endpoint, which adds weight, size and declared value."""
        options = RequestOptions.model_validate(
            {**req.options.model_dump(by_alias=True), "useRegisteredEndpoint": True}
        )
        return await self.track(req.model_copy(update={"options": options}), ctx)

    async def track_pull500_start(self, req: Pull500StartRequest, ctx: AdapterContext) -> Pull500StartResponse:
        """Submit up to 500 tracking numbers; MPL answers with a GUID to poll.

        Raises:
            CarrierError: Validation for more than 500 tracking numbers,
                Transient when the answer carries no trackingGUID.
        """
        if len(req.tracking_numbers) > PULL500_MAX_TRACKING_NUMBERS:
            raise CarrierError(
                f"Too many tracking numbers: {len(req.tracking_numbers)} > {PULL500_MAX_TRACKING_NUMBERS}",
                ErrorCategory.VALIDATION,
                carrier_code="BATCH_TOO_LARGE",
                raw={"maxAllowed": PULL500_MAX_TRACKING_NUMBERS, "requested": len(req.tracking_numbers)},
            )

        async def call(credentials: MPLCredentials) -> Pull500StartResponse:
            response = await self._send(
                "POST",
                f"{self.resolve_tracking_url(req.options)}/tracking",
                credentials,
                req.options,
                ctx,
                json={"trackingNumbers": list(req.tracking_numbers), "language": req.language},
            )
            body = response.body
            guid = body.get("trackingGUID") if isinstance(body, dict) else None
            if not guid:
                raise CarrierError(
                    "Pull-500 start response missing trackingGUID",
                    ErrorCategory.TRANSIENT,
                    raw=body,
                )
            logger.info("MPL: Pull-500 submitted %d tracking numbers as %s", len(req.tracking_numbers), guid)
            return Pull500StartResponse(
                tracking_guid=str(guid),
                errors=[err for err in body.get("errors") or [] if isinstance(err, dict)],
                raw=body,
            )

        return await self._run("track_pull500_start", req, ctx, call)

    async def track_pull500_check(self, req: Pull500CheckRequest, ctx: AdapterContext) -> Pull500CheckResponse:
        """Poll a Pull-500 job. Status moves NEW, INPROGRESS, then READY or ERROR."""

        async def call(credentials: MPLCredentials) -> Pull500CheckResponse:
            response = await self._send(
                "GET",
                f"{self.resolve_tracking_url(req.options)}/tracking/{quote(req.tracking_guid, safe='')}",
                credentials,
                req.options,
                ctx,
            )
            body = response.body
            status = body.get("status") if isinstance(body, dict) else None
            if status not in ("NEW", "INPROGRESS", "READY", "ERROR"):
                raise CarrierError(
                    f"Invalid Pull-500 check response: unknown status {status!r}",
                    ErrorCategory.TRANSIENT,
                    raw=summarize_raw_response(body),
                )
            logger.info("MPL: Pull-500 job %s is %s", req.tracking_guid, status)
            return Pull500CheckResponse(
                status=status,
                report=body.get("report"),
                report_fields=body.get("report_fields"),
                errors=[err for err in body.get("errors") or [] if isinstance(err, dict)],
                raw=body,
            )

        return await self._run("track_pull500_check", req, ctx, call)
