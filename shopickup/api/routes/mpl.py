"""MPL routes: the common carrier routes plus shipment details and Pull-500 tracking.

The registered adapter is wrapped; the MPL-only coroutines reach it through
the wrapper's ``extra_operations`` forwarding.
"""

from fastapi import Depends

from shopickup.adapters.base import AdapterContext, CarrierAdapter
from shopickup.adapters.mpl.models import (
    Pull500CheckRequest,
    Pull500CheckResponse,
    Pull500StartRequest,
    Pull500StartResponse,
    ShipmentDetails,
    ShipmentDetailsRequest,
)
from shopickup.api.dependencies import adapter_dependency, get_adapter_context
from shopickup.api.routes.carrier import build_carrier_router
from shopickup.models.domain import TrackingUpdate
from shopickup.models.requests import TrackingRequest

CARRIER_ID = "mpl"

router = build_carrier_router(CARRIER_ID, pickup_points=True)
get_mpl_adapter = adapter_dependency(CARRIER_ID)


@router.post("/shipment-details", response_model=ShipmentDetails, response_model_by_alias=True)
async def get_shipment_details(
    req: ShipmentDetailsRequest,
    adapter: CarrierAdapter = Depends(get_mpl_adapter),
    ctx: AdapterContext = Depends(get_adapter_context),
) -> ShipmentDetails:
    """Fetch the registered shipment by tracking number."""
    return await adapter.get_shipment_details(req, ctx)


@router.post("/track-registered", response_model=TrackingUpdate, response_model_by_alias=True)
async def track_registered(
    req: TrackingRequest,
    adapter: CarrierAdapter = Depends(get_mpl_adapter),
    ctx: AdapterContext = Depends(get_adapter_context),
) -> TrackingUpdate:
    """Track with weight, size and declared value."""
    return await adapter.track_registered(req, ctx)


@router.post("/tracking-batch", response_model=Pull500StartResponse, response_model_by_alias=True)
async def track_pull500_start(
    req: Pull500StartRequest,
    adapter: CarrierAdapter = Depends(get_mpl_adapter),
    ctx: AdapterContext = Depends(get_adapter_context),
) -> Pull500StartResponse:
    """Submit up to 500 tracking numbers."""
    return await adapter.track_pull500_start(req, ctx)


@router.post("/tracking-batch/check", response_model=Pull500CheckResponse, response_model_by_alias=True)
async def track_pull500_check(
    req: Pull500CheckRequest,
    adapter: CarrierAdapter = Depends(get_mpl_adapter),
    ctx: AdapterContext = Depends(get_adapter_context),
) -> Pull500CheckResponse:
    """Poll a Pull-500 job."""
    return await adapter.track_pull500_check(req, ctx)
