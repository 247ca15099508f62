"""Route factory shared by the per-carrier routers.

Every carrier exposes the same operations. Batch routes answer with the
status derived from the envelope (200, 207 or 400); single-item routes
answer 200 and let CarrierError propagate to the application handler.
"""

import base64

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from shopickup.adapters.base import AdapterContext, CarrierAdapter
from shopickup.api.dependencies import adapter_dependency, get_adapter_context
from shopickup.batch.aggregator import derive_batch_status
from shopickup.models.domain import FetchPickupPointsResponse, TrackingUpdate
from shopickup.models.requests import (
    CreateLabelRequest,
    CreateLabelsRequest,
    CreateParcelRequest,
    CreateParcelsRequest,
    FetchPickupPointsRequest,
    TrackingRequest,
)
from shopickup.models.results import BatchResponse, CarrierResource, CreateLabelsResponse, LabelResult


def batch_json(batch: BatchResponse) -> JSONResponse:
    return JSONResponse(
        status_code=int(derive_batch_status(batch)),
        content=batch.model_dump(mode="json", by_alias=True),
    )


def labels_json(batch: CreateLabelsResponse, include_content: bool) -> JSONResponse:
    """Labels envelope; file bytes are inlined as base64 only on request."""
    content = batch.model_dump(mode="json", by_alias=True)
    if include_content:
        for dumped, label_file in zip(content["files"], batch.files):
            if label_file.content is not None:
                dumped["contentBase64"] = base64.b64encode(label_file.content).decode()
    return JSONResponse(status_code=int(derive_batch_status(batch)), content=content)


def build_carrier_router(carrier_id: str, *, pickup_points: bool = False) -> APIRouter:
    """Create the router for one carrier under ``/{carrier_id}``."""
    router = APIRouter(prefix=f"/{carrier_id}", tags=[carrier_id])
    get_adapter = adapter_dependency(carrier_id)

    @router.post("/parcels")
    async def create_parcels(
        req: CreateParcelsRequest,
        adapter: CarrierAdapter = Depends(get_adapter),
        ctx: AdapterContext = Depends(get_adapter_context),
    ) -> JSONResponse:
        """Create a batch of parcels."""
        return batch_json(await adapter.create_parcels(req, ctx))

    @router.post("/parcel", response_model=CarrierResource, response_model_by_alias=True)
    async def create_parcel(
        req: CreateParcelRequest,
        adapter: CarrierAdapter = Depends(get_adapter),
        ctx: AdapterContext = Depends(get_adapter_context),
    ) -> CarrierResource:
        """Create one parcel."""
        return await adapter.create_parcel(req, ctx)

    @router.post("/labels")
    async def create_labels(
        req: CreateLabelsRequest,
        include_content: bool = Query(False, alias="includeContent"),
        adapter: CarrierAdapter = Depends(get_adapter),
        ctx: AdapterContext = Depends(get_adapter_context),
    ) -> JSONResponse:
        """Generate labels for created parcels."""
        return labels_json(await adapter.create_labels(req, ctx), include_content)

    @router.post("/label", response_model=LabelResult, response_model_by_alias=True)
    async def create_label(
        req: CreateLabelRequest,
        adapter: CarrierAdapter = Depends(get_adapter),
        ctx: AdapterContext = Depends(get_adapter_context),
    ) -> LabelResult:
        """Generate the label of one parcel."""
        return await adapter.create_label(req, ctx)

    @router.post("/track", response_model=TrackingUpdate, response_model_by_alias=True)
    async def track(
        req: TrackingRequest,
        adapter: CarrierAdapter = Depends(get_adapter),
        ctx: AdapterContext = Depends(get_adapter_context),
    ) -> TrackingUpdate:
        """Fetch tracking history."""
        return await adapter.track(req, ctx)

    if pickup_points:

        @router.post(
            "/pickup-points",
            response_model=FetchPickupPointsResponse,
            response_model_by_alias=True,
        )
        async def fetch_pickup_points(
            req: FetchPickupPointsRequest,
            adapter: CarrierAdapter = Depends(get_adapter),
            ctx: AdapterContext = Depends(get_adapter_context),
        ) -> FetchPickupPointsResponse:
            """List pickup points."""
            return await adapter.fetch_pickup_points(req, ctx)

    return router
