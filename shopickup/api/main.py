"""FastAPI dev-server exposing the carrier adapters over HTTP.

Routes live under ``/api/v1/{carrier}``. CarrierError raised by single-item
operations is mapped to an HTTP status by category; batch operations answer
with the status derived from their envelope.
"""

import logging
import math
import sys
from contextlib import asynccontextmanager
from typing import assert_never

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

# Configure logging to stdout for uvicorn to capture
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

from shopickup import __version__
from shopickup.api.dependencies import build_adapter_registry, get_config
from shopickup.api.routes import foxpost, gls, mpl
from shopickup.errors.carrier import CarrierError, ErrorCategory, NotImplementedCapabilityError

logger = logging.getLogger(__name__)


def http_status_for_error(error: CarrierError) -> int:
    """Map a CarrierError category to the HTTP status the dev-server answers with."""
    match error.category:
        case ErrorCategory.VALIDATION:
            return 400
        case ErrorCategory.AUTH:
            return 401
        case ErrorCategory.RATE_LIMIT:
            return 429
        case ErrorCategory.TRANSIENT:
            return 503
        case ErrorCategory.PERMANENT:
            return 502
        case _:
            assert_never(error.category)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the adapter registry once at startup."""
    config = get_config()
    logging.getLogger("shopickup").setLevel(config.server.log_level.upper())
    app.state.adapters = build_adapter_registry(config)
    logger.info("Shopickup dev-server %s started", __version__)
    yield
    logger.info("Shopickup dev-server shutting down")


async def carrier_error_handler(request: Request, exc: CarrierError) -> JSONResponse:
    """Answer with the category's status and the serialized error.

    Args:
        request: The incoming request.
        exc: The CarrierError raised by an adapter.

    Returns:
        JSONResponse with the serialized error; RateLimit errors carry a
        Retry-After header in whole seconds.
    """
    status = http_status_for_error(exc)
    headers = None
    if exc.category is ErrorCategory.RATE_LIMIT and exc.retry_after_ms is not None:
        headers = {"Retry-After": str(math.ceil(exc.retry_after_ms / 1000))}
    logger.warning("%s %s -> %d: %s", request.method, request.url.path, status, exc)
    return JSONResponse(status_code=status, content=exc.to_dict(), headers=headers)


async def not_implemented_handler(request: Request, exc: NotImplementedCapabilityError) -> JSONResponse:
    return JSONResponse(
        status_code=501,
        content={
            "error": {
                "message": str(exc),
                "capability": exc.capability,
                "adapterId": exc.adapter_id,
            }
        },
    )


def create_app() -> FastAPI:
    """Assemble the application: handlers, carrier routers, health check."""
    app = FastAPI(
        title="Shopickup dev-server",
        description="Multi-carrier shipping adapters (Foxpost, GLS, MPL)",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_exception_handler(CarrierError, carrier_error_handler)
    app.add_exception_handler(NotImplementedCapabilityError, not_implemented_handler)

    for module in (foxpost, gls, mpl):
        app.include_router(module.router, prefix="/api/v1")

    @app.get("/health")
    def health_check() -> dict:
        """Health check endpoint.

        Returns:
            Status, package version, and the carriers served.
        """
        return {
            "status": "ok",
            "version": __version__,
            "carriers": [module.CARRIER_ID for module in (foxpost, gls, mpl)],
        }

    return app


app = create_app()
