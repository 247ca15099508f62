"""GLS routes."""

from shopickup.api.routes.carrier import build_carrier_router

CARRIER_ID = "gls"

router = build_carrier_router(CARRIER_ID, pickup_points=True)
