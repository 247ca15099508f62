"""Decorators around carrier adapters.

OperationNameAdapter stamps each call's context with the operation name so
safe_log can mute chatty operations. CallTracingAdapter logs the start,
duration and outcome of each call. Both delegate everything else to the
wrapped adapter and can be stacked with compose_adapter_wrappers.
"""

import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import replace
from types import MappingProxyType
from typing import Any

from shopickup.adapters.base import AdapterContext, CarrierAdapter
from shopickup.errors.carrier import CarrierError
from shopickup.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

DEFAULT_OPERATION_NAMES: Mapping[str, str] = MappingProxyType({
    "create_parcel": "create_parcel",
    "create_parcels": "create_parcels",
    "create_label": "create_label",
    "create_labels": "create_labels",
    "track": "track",
    "fetch_pickup_points": "fetch_pickup_points",
})


class AdapterWrapper(CarrierAdapter):
    """Base decorator: forwards every operation to the wrapped adapter."""

    def __init__(self, inner: CarrierAdapter) -> None:
        self.inner = inner
        self.id = inner.id
        self.display_name = inner.display_name
        self.capabilities = inner.capabilities
        self.credentials_model = inner.credentials_model
        self.extra_operations = inner.extra_operations

    def __getattr__(self, name: str) -> Any:
        # Only reached for names the wrapper itself does not define.
        if name == "inner":
            raise AttributeError(name)
        attr = getattr(self.inner, name)
        if name not in self.extra_operations:
            return attr

        async def call(req, ctx):
            return await self._invoke(name, attr, req, ctx)

        return call

    def translate_error(self, error: Exception) -> CarrierError:
        return self.inner.translate_error(error)

    async def _invoke(
        self,
        method_name: str,
        call: Callable[[Any, AdapterContext], Awaitable[Any]],
        req: Any,
        ctx: AdapterContext,
    ) -> Any:
        return await call(req, ctx)

    async def create_parcels(self, req, ctx):
        return await self._invoke("create_parcels", self.inner.create_parcels, req, ctx)

    async def create_parcel(self, req, ctx):
        return await self._invoke("create_parcel", self.inner.create_parcel, req, ctx)

    async def create_labels(self, req, ctx):
        return await self._invoke("create_labels", self.inner.create_labels, req, ctx)

    async def create_label(self, req, ctx):
        return await self._invoke("create_label", self.inner.create_label, req, ctx)

    async def track(self, req, ctx):
        return await self._invoke("track", self.inner.track, req, ctx)

    async def fetch_pickup_points(self, req, ctx):
        return await self._invoke("fetch_pickup_points", self.inner.fetch_pickup_points, req, ctx)


class OperationNameAdapter(AdapterWrapper):
    """Sets ``ctx.operation_name`` unless the caller already set one."""

    def __init__(
        self,
        inner: CarrierAdapter,
        operation_names: Mapping[str, str] = DEFAULT_OPERATION_NAMES,
    ) -> None:
        super().__init__(inner)
        self.operation_names = operation_names

    async def _invoke(self, method_name, call, req, ctx):
        name = self.operation_names.get(method_name, method_name)
        if name and not ctx.operation_name:
            ctx = replace(ctx, operation_name=name)
        return await call(req, ctx)


class CallTracingAdapter(AdapterWrapper):
    """Logs every call with its duration. Errors are logged and re-raised."""

    def __init__(self, inner: CarrierAdapter, trace_logger: logging.Logger | None = None) -> None:
        super().__init__(inner)
        self.trace_logger = trace_logger or logger

    async def _invoke(self, method_name, call, req, ctx):
        op_name = ctx.operation_name or method_name
        start = time.perf_counter()
        self.trace_logger.debug("[%s] %s started", self.id, op_name)
        try:
            result = await call(req, ctx)
        except Exception as e:
            duration_ms = int((time.perf_counter() - start) * 1000)
            self.trace_logger.error(
                "[%s] %s failed after %dms: %s",
                self.id,
                op_name,
                duration_ms,
                sanitize_error_message(str(e)),
            )
            raise
        duration_ms = int((time.perf_counter() - start) * 1000)
        self.trace_logger.info("[%s] %s completed in %dms", self.id, op_name, duration_ms)
        return result


def compose_adapter_wrappers(
    adapter: CarrierAdapter,
    wrappers: Iterable[Callable[[CarrierAdapter], CarrierAdapter]],
) -> CarrierAdapter:
    """Apply wrappers in order; the last one is outermost."""
    for wrapper in wrappers:
        adapter = wrapper(adapter)
    return adapter


def wrap_adapter(adapter: CarrierAdapter, *, tracing: bool = True) -> CarrierAdapter:
    """Name operations and, optionally, trace calls."""
    wrappers: list[Callable[[CarrierAdapter], CarrierAdapter]] = []
    if tracing:
        wrappers.append(CallTracingAdapter)
    wrappers.append(OperationNameAdapter)
    return compose_adapter_wrappers(adapter, wrappers)
