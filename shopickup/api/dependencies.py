"""FastAPI dependencies: configuration, HTTP client, adapter registry.

The registry is built once per application from configuration and kept on
``app.state``. Tests replace the outbound HTTP client by overriding
``get_http_client``.
"""

import logging
import os
from collections.abc import Callable
from functools import lru_cache

from fastapi import Depends, HTTPException, Request

from shopickup.adapters.base import AdapterContext, CarrierAdapter
from shopickup.adapters.foxpost import FoxpostAdapter
from shopickup.adapters.gls import GLSAdapter
from shopickup.adapters.mpl import MPLAdapter
from shopickup.adapters.wrappers import wrap_adapter
from shopickup.config import ShopickupConfig, load_config
from shopickup.http.client import HttpClient, HttpxClient

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "SHOPICKUP_CONFIG_PATH"


@lru_cache
def get_config() -> ShopickupConfig:
    """Load configuration once, honouring SHOPICKUP_CONFIG_PATH."""
    return load_config(config_path=os.environ.get(CONFIG_PATH_ENV))


def build_adapter_registry(config: ShopickupConfig) -> dict[str, CarrierAdapter]:
    """Instantiate and wrap every carrier adapter from configuration."""
    adapters: list[CarrierAdapter] = [
        FoxpostAdapter(
            prod_base_url=config.foxpost.prod_base_url,
            test_base_url=config.foxpost.test_base_url,
            apm_feed_url=config.foxpost.apm_feed_url,
        ),
        GLSAdapter(delivery_points_url=config.gls.delivery_points_url),
        MPLAdapter(
            prod_base_url=config.mpl.prod_base_url,
            test_base_url=config.mpl.test_base_url,
            oauth_prod_url=config.mpl.oauth_prod_url,
            oauth_test_url=config.mpl.oauth_test_url,
            tracking_prod_url=config.mpl.tracking_prod_url,
            tracking_test_url=config.mpl.tracking_test_url,
        ),
    ]
    registry = {adapter.id: wrap_adapter(adapter, tracing=config.server.tracing) for adapter in adapters}
    logger.info("Adapter registry ready: %s", ", ".join(sorted(registry)))
    return registry


def get_adapter_registry(
    request: Request,
    config: ShopickupConfig = Depends(get_config),
) -> dict[str, CarrierAdapter]:
    registry = getattr(request.app.state, "adapters", None)
    if registry is None:
        registry = request.app.state.adapters = build_adapter_registry(config)
    return registry


def get_http_client(config: ShopickupConfig = Depends(get_config)) -> HttpClient:
    return HttpxClient(timeout=config.http.timeout_seconds)


def get_adapter_context(
    http: HttpClient = Depends(get_http_client),
    config: ShopickupConfig = Depends(get_config),
) -> AdapterContext:
    return AdapterContext(
        http=http,
        logging_options=config.logging.to_options(),
        max_concurrency=config.batch.max_concurrency,
    )


def adapter_dependency(carrier_id: str) -> Callable[..., CarrierAdapter]:
    """Dependency returning the registered adapter for one carrier."""

    def _get_adapter(
        registry: dict[str, CarrierAdapter] = Depends(get_adapter_registry),
    ) -> CarrierAdapter:
        adapter = registry.get(carrier_id)
        if adapter is None:
            raise HTTPException(status_code=404, detail=f"Carrier not configured: {carrier_id}")
        return adapter

    return _get_adapter
