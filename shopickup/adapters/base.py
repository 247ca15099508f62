"""Abstract base class for carrier adapters.

Each carrier (Foxpost, GLS, MPL) implements the protected ``_create_parcels``,
``_create_labels``, ``_track`` and ``_fetch_pickup_points`` hooks. The public
operations defined here apply the error propagation policy uniformly:

- Batch operations return an envelope. A whole-batch failure becomes an
  all-failed envelope; only request validation errors and a missing HTTP
  client are raised, since no item could be attempted.
- Single-item operations run the batch hook with one item and raise
  CarrierError when that item failed. Adapters on the default per-item
  fan-out have their item hook called directly, so a transport error keeps
  its own category.
- Every exception leaving a public operation is a CarrierError, except
  NotImplementedCapabilityError for a capability the adapter does not declare.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ValidationError

from shopickup.batch.aggregator import (
    build_batch_response,
    build_labels_response,
    empty_batch_response,
    error_item,
    failed_batch_response,
    gather_in_order,
)
from shopickup.errors.carrier import CarrierError, ErrorCategory, NotImplementedCapabilityError
from shopickup.http.client import HttpClient
from shopickup.models.domain import FetchPickupPointsResponse, Parcel, TrackingUpdate
from shopickup.models.requests import (
    CreateLabelRequest,
    CreateLabelsRequest,
    CreateParcelRequest,
    CreateParcelsRequest,
    FetchPickupPointsRequest,
    RequestOptions,
    TrackingRequest,
)
from shopickup.models.results import (
    FAILED,
    BatchResponse,
    CarrierResource,
    CreateLabelsResponse,
    LabelResult,
)
from shopickup.utils.log_helpers import LoggingOptions, error_to_log, safe_log

logger = logging.getLogger(__name__)


class Capability(str, Enum):
    """Operations an adapter may support."""

    CREATE_PARCEL = "CREATE_PARCEL"
    CREATE_PARCELS = "CREATE_PARCELS"
    CREATE_LABEL = "CREATE_LABEL"
    CREATE_LABELS = "CREATE_LABELS"
    TRACK = "TRACK"
    LIST_PICKUP_POINTS = "LIST_PICKUP_POINTS"
    TEST_MODE_SUPPORTED = "TEST_MODE_SUPPORTED"


@dataclass(frozen=True)
class AdapterContext:
    """Per-call collaborators handed to every adapter operation.

    Attributes:
        http: HTTP client used for carrier calls.
        operation_name: Name of the running operation, used by safe_log.
        logging_options: Log volume controls.
        max_concurrency: Upper bound for per-item fan-out.
    """

    http: HttpClient | None = None
    operation_name: str | None = None
    logging_options: LoggingOptions | None = None
    max_concurrency: int = 5


ResolveBaseUrl = Callable[[RequestOptions | None], str]


def create_resolve_base_url(prod_base_url: str, test_base_url: str) -> ResolveBaseUrl:
    """Build a resolver picking the sandbox URL when ``use_test_api`` is set."""

    def resolve(options: RequestOptions | None) -> str:
        if options is not None and options.use_test_api:
            return test_base_url
        return prod_base_url

    return resolve


def unwrap_single_result(batch: BatchResponse, *, operation: str):
    """Return the only result of a one-item batch or raise its error.

    Raises:
        CarrierError: Transient if the batch came back empty, Validation if
            the item failed (carrier_code is the item's first error code).
    """
    if not batch.results:
        raise CarrierError(
            f"{operation} returned no results",
            ErrorCategory.TRANSIENT,
            raw={"summary": batch.summary},
        )
    result = batch.results[0]
    if result.succeeded:
        return result

    first = result.errors[0] if result.errors else None
    raise CarrierError(
        first.message if first else f"{operation} failed",
        ErrorCategory.VALIDATION,
        carrier_code=first.code if first else None,
        raw=result.model_dump(mode="json", by_alias=True),
    )


class CarrierAdapter(ABC):
    """Abstract base class for carrier adapters.

    Subclasses declare ``capabilities`` and ``credentials_model`` and
    implement the protected hooks for what they support. Hooks may raise
    any exception; the public operations translate it with
    ``translate_error``. Carrier-specific public coroutines are named in
    ``extra_operations`` so adapter wrappers forward them.

    Example implementation:
        class AcmeAdapter(CarrierAdapter):
            id = "acme"
            display_name = "Acme"
            capabilities = frozenset({Capability.TRACK})
            credentials_model = AcmeCredentials

            def translate_error(self, error):
                return translate_transport_error(error, carrier="Acme")

            async def _track(self, req, credentials, ctx):
                ...
    """

    id: ClassVar[str]
    display_name: ClassVar[str]
    capabilities: ClassVar[frozenset[Capability]] = frozenset()
    credentials_model: ClassVar[type[BaseModel] | None] = None
    extra_operations: ClassVar[tuple[str, ...]] = ()

    @abstractmethod
    def translate_error(self, error: Exception) -> CarrierError:
        """Translate any exception raised by a hook into a CarrierError."""
        ...

    # --- Preflight ---

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def require_capability(self, capability: Capability) -> None:
        if capability not in self.capabilities:
            raise NotImplementedCapabilityError(capability.value, self.id)

    def require_http(self, ctx: AdapterContext) -> HttpClient:
        """Return the context's HTTP client.

        Raises:
            CarrierError: Permanent if the context has none.
        """
        if ctx.http is None:
            raise CarrierError("HTTP client not provided in context", ErrorCategory.PERMANENT)
        return ctx.http

    def validate_credentials(self, credentials: dict[str, Any] | None) -> BaseModel | None:
        """Validate raw credentials against ``credentials_model``.

        Raises:
            CarrierError: Validation, listing the invalid fields.
        """
        if self.credentials_model is None:
            return None
        try:
            return self.credentials_model.model_validate(credentials or {})
        except ValidationError as e:
            problems = [
                f"{'.'.join(str(part) for part in err['loc']) or 'credentials'}: {err['msg']}"
                for err in e.errors()
            ]
            fields = sorted({".".join(str(part) for part in err["loc"]) or "credentials" for err in e.errors()})
            raise CarrierError(
                f"Invalid {self.display_name} credentials: {'; '.join(problems)}",
                ErrorCategory.VALIDATION,
                carrier_code="INVALID_CREDENTIALS",
                raw={"fields": fields},
            ) from None

    def check_batch_size(self, count: int) -> None:
        """Reject a batch the carrier cannot accept. No limit by default."""

    def _to_carrier_error(self, error: Exception) -> CarrierError:
        if isinstance(error, CarrierError):
            return error
        if isinstance(error, NotImplementedCapabilityError):
            return CarrierError(str(error), ErrorCategory.PERMANENT, carrier_code="NOT_IMPLEMENTED")
        return self.translate_error(error)

    def _log_failure(self, operation: str, error: CarrierError, ctx: AdapterContext) -> None:
        safe_log(
            logger,
            logging.WARNING,
            f"{self.display_name} {operation} failed",
            {"error": error_to_log(error)},
            ctx,
        )

    # --- Public operations ---

    async def create_parcels(self, req: CreateParcelsRequest, ctx: AdapterContext) -> BatchResponse:
        """Create parcels in one batch.

        Returns:
            Envelope with one result per input parcel, in input order.

        Raises:
            CarrierError: Only when no parcel could be attempted.
        """
        self.require_capability(Capability.CREATE_PARCELS)
        if not req.parcels:
            return empty_batch_response("parcels")

        self.require_http(ctx)
        credentials = self.validate_credentials(req.credentials)
        self.check_batch_size(len(req.parcels))

        safe_log(
            logger,
            logging.DEBUG,
            f"{self.display_name}: creating parcels batch",
            {"count": len(req.parcels), "test_mode": req.options.use_test_api},
            ctx,
        )
        try:
            batch = await self._create_parcels(req, credentials, ctx)
        except Exception as e:
            error = self._to_carrier_error(e)
            self._log_failure("create_parcels", error, ctx)
            return failed_batch_response([parcel.id for parcel in req.parcels], error, noun="parcels")

        safe_log(
            logger,
            logging.INFO,
            f"{self.display_name}: {batch.summary}",
            {"success_count": batch.success_count, "failure_count": batch.failure_count},
            ctx,
        )
        return batch

    async def create_parcel(self, req: CreateParcelRequest, ctx: AdapterContext) -> CarrierResource:
        """Create one parcel.

        Runs the batch hook with one item, or the item hook directly when the
        adapter uses the default fan-out.

        Raises:
            CarrierError: The translated transport error, or Validation when
                the carrier rejected the parcel.
        """
        self.require_capability(Capability.CREATE_PARCEL)
        batch_req = CreateParcelsRequest(
            parcels=[req.parcel],
            credentials=req.credentials,
            options=req.options,
        )
        self.require_http(ctx)
        credentials = self.validate_credentials(batch_req.credentials)
        try:
            if type(self)._create_parcels is CarrierAdapter._create_parcels:
                result = await self._create_one_parcel(req.parcel, batch_req, credentials, ctx)
                batch = build_batch_response([result], noun="parcels")
            else:
                batch = await self._create_parcels(batch_req, credentials, ctx)
        except CarrierError:
            raise
        except Exception as e:
            raise self._to_carrier_error(e) from e
        return unwrap_single_result(batch, operation="create_parcel")

    async def create_labels(self, req: CreateLabelsRequest, ctx: AdapterContext) -> CreateLabelsResponse:
        """Generate labels for already created parcels.

        Raises:
            CarrierError: Only when no label could be attempted.
        """
        self.require_capability(Capability.CREATE_LABELS)
        if not req.parcel_carrier_ids:
            return build_labels_response([])

        self.require_http(ctx)
        credentials = self.validate_credentials(req.credentials)
        self.check_batch_size(len(req.parcel_carrier_ids))

        try:
            batch = await self._create_labels(req, credentials, ctx)
        except Exception as e:
            error = self._to_carrier_error(e)
            self._log_failure("create_labels", error, ctx)
            return failed_batch_response(
                req.parcel_carrier_ids, error, noun="labels", resource_type=LabelResult
            )

        safe_log(
            logger,
            logging.INFO,
            f"{self.display_name}: {batch.summary}",
            {"files": len(batch.files)},
            ctx,
        )
        return batch

    async def create_label(self, req: CreateLabelRequest, ctx: AdapterContext) -> LabelResult:
        """Generate one label through the batch hook.

        Raises:
            CarrierError: As for create_parcel.
        """
        self.require_capability(Capability.CREATE_LABEL)
        batch_req = CreateLabelsRequest(
            parcel_carrier_ids=[req.parcel_carrier_id],
            credentials=req.credentials,
            options=req.options,
        )
        self.require_http(ctx)
        credentials = self.validate_credentials(batch_req.credentials)
        try:
            batch = await self._create_labels(batch_req, credentials, ctx)
        except CarrierError:
            raise
        except Exception as e:
            raise self._to_carrier_error(e) from e
        return unwrap_single_result(batch, operation="create_label")

    async def track(self, req: TrackingRequest, ctx: AdapterContext) -> TrackingUpdate:
        """Fetch the tracking history of one parcel.

        Raises:
            CarrierError: On any failure.
        """
        self.require_capability(Capability.TRACK)
        self.require_http(ctx)
        credentials = self.validate_credentials(req.credentials)
        try:
            return await self._track(req, credentials, ctx)
        except CarrierError:
            raise
        except Exception as e:
            raise self._to_carrier_error(e) from e

    async def fetch_pickup_points(
        self, req: FetchPickupPointsRequest, ctx: AdapterContext
    ) -> FetchPickupPointsResponse:
        """List the carrier's pickup points.

        Raises:
            CarrierError: On any failure.
        """
        self.require_capability(Capability.LIST_PICKUP_POINTS)
        self.require_http(ctx)
        try:
            return await self._fetch_pickup_points(req, ctx)
        except CarrierError:
            raise
        except Exception as e:
            raise self._to_carrier_error(e) from e

    # --- Hooks ---

    async def _create_parcels(
        self, req: CreateParcelsRequest, credentials: Any, ctx: AdapterContext
    ) -> BatchResponse:
        """Create parcels one request at a time, concurrently.

        Carriers with a batch endpoint override this. Results are returned
        in input order regardless of completion order.
        """

        def on_error(parcel: Parcel, error: Exception) -> CarrierResource:
            return CarrierResource(
                status=FAILED,
                input_id=parcel.id,
                errors=[error_item(self._to_carrier_error(error))],
            )

        results = await gather_in_order(
            req.parcels,
            lambda parcel: self._create_one_parcel(parcel, req, credentials, ctx),
            on_error=on_error,
            concurrency=ctx.max_concurrency,
        )
        return build_batch_response(results, noun="parcels")

    async def _create_one_parcel(
        self,
        parcel: Parcel,
        req: CreateParcelsRequest,
        credentials: Any,
        ctx: AdapterContext,
    ) -> CarrierResource:
        raise NotImplementedCapabilityError(Capability.CREATE_PARCEL.value, self.id)

    async def _create_labels(
        self, req: CreateLabelsRequest, credentials: Any, ctx: AdapterContext
    ) -> CreateLabelsResponse:
        raise NotImplementedCapabilityError(Capability.CREATE_LABELS.value, self.id)

    async def _track(self, req: TrackingRequest, credentials: Any, ctx: AdapterContext) -> TrackingUpdate:
        raise NotImplementedCapabilityError(Capability.TRACK.value, self.id)

    async def _fetch_pickup_points(
        self, req: FetchPickupPointsRequest, ctx: AdapterContext
    ) -> FetchPickupPointsResponse:
        raise NotImplementedCapabilityError(Capability.LIST_PICKUP_POINTS.value, self.id)
