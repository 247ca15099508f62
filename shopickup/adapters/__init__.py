"""Carrier adapters and the adapter base class."""

from shopickup.adapters.base import (
    AdapterContext,
    Capability,
    CarrierAdapter,
    create_resolve_base_url,
    unwrap_single_result,
)
from shopickup.adapters.foxpost import FoxpostAdapter
from shopickup.adapters.gls import GLSAdapter
from shopickup.adapters.mpl import MPLAdapter
from shopickup.adapters.wrappers import (
    CallTracingAdapter,
    OperationNameAdapter,
    compose_adapter_wrappers,
    wrap_adapter,
)

__all__ = [
    # Base
    "AdapterContext",
    "Capability",
    "CarrierAdapter",
    "create_resolve_base_url",
    "unwrap_single_result",
    # Carriers
    "FoxpostAdapter",
    "GLSAdapter",
    "MPLAdapter",
    # Wrappers
    "CallTracingAdapter",
    "OperationNameAdapter",
    "compose_adapter_wrappers",
    "wrap_adapter",
]
