"""Batch result aggregation and batch status derivation.

Adapters produce one CarrierResource per input item, in input order, and
hand the list to build_batch_response. The envelope's counts, flags and
summary are computed here and nowhere else.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from enum import IntEnum
from typing import Any, TypeVar

from shopickup.errors.carrier import CarrierError
from shopickup.models.results import (
    FAILED,
    BatchResponse,
    CarrierResource,
    CreateLabelsResponse,
    LabelFile,
    LabelResult,
    ParcelValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R", bound=CarrierResource)

MISSING_RESULT = "MISSING_RESULT"


class BatchOutcome(IntEnum):
    """HTTP status conventionally used for each batch outcome."""

    FULL_SUCCESS = 200
    PARTIAL_SUCCESS = 207
    FULL_FAILURE = 400


def _summary(noun: str, total: int, succeeded: int, failed: int, all_ok: bool, all_bad: bool) -> str:
    if total == 0:
        return f"No {noun} to process"
    if all_ok:
        return f"All {total} {noun} created successfully"
    if all_bad:
        return f"All {total} {noun} failed"
    return f"Mixed results: {succeeded} succeeded, {failed} failed"


def _envelope_fields(results: Sequence[CarrierResource], noun: str) -> dict[str, Any]:
    total = len(results)
    succeeded = sum(1 for result in results if result.succeeded)
    failed = total - succeeded
    all_ok = total > 0 and failed == 0
    all_bad = total > 0 and succeeded == 0
    return {
        "results": list(results),
        "success_count": succeeded,
        "failure_count": failed,
        "total_count": total,
        "all_succeeded": all_ok,
        "all_failed": all_bad,
        "some_failed": succeeded > 0 and failed > 0,
        "summary": _summary(noun, total, succeeded, failed, all_ok, all_bad),
    }


def build_batch_response(
    results: Sequence[CarrierResource],
    *,
    noun: str = "parcels",
    raw_carrier_response: Any = None,
) -> BatchResponse:
    """Aggregate per-item results into a batch envelope.

    Args:
        results: One result per input item, already in input order.
        noun: Plural item name used in the summary ("parcels", "labels").
        raw_carrier_response: Untouched carrier response kept for audit.

    Returns:
        BatchResponse whose counts and flags are derived from results.
    """
    if not results:
        return empty_batch_response(noun)
    return BatchResponse[CarrierResource](
        **_envelope_fields(results, noun),
        raw_carrier_response=raw_carrier_response,
    )


def build_labels_response(
    results: Sequence[LabelResult],
    files: Sequence[LabelFile] = (),
    *,
    raw_carrier_response: Any = None,
) -> CreateLabelsResponse:
    """Aggregate label results plus the generated files."""
    return CreateLabelsResponse(
        **_envelope_fields(results, "labels"),
        files=list(files),
        raw_carrier_response=raw_carrier_response,
    )


def empty_batch_response(noun: str = "parcels") -> BatchResponse:
    """Envelope for an empty input: no results and every flag false."""
    return BatchResponse[CarrierResource](**_envelope_fields([], noun))


def error_item(error: CarrierError) -> ParcelValidationError:
    """Per-item error entry embedding a whole-operation CarrierError."""
    return ParcelValidationError(
        code=error.carrier_code or error.category.value,
        message=error.message,
    )


def failed_batch_response(
    input_ids: Sequence[str | None],
    error: CarrierError,
    *,
    noun: str = "parcels",
    resource_type: type[CarrierResource] = CarrierResource,
) -> BatchResponse:
    """Envelope for a batch whose carrier call failed before any item result.

    Every input item is marked failed with the error embedded in its
    ``errors`` list. The error's raw payload, when it is carrier data
    rather than an exception, becomes ``raw_carrier_response``.
    """
    results = [
        resource_type(
            status=FAILED,
            input_id=input_id,
            errors=[error_item(error)],
        )
        for input_id in input_ids
    ]
    raw = None if isinstance(error.raw, BaseException) else error.raw
    if resource_type is LabelResult:
        return build_labels_response(results, raw_carrier_response=raw)
    return build_batch_response(results, noun=noun, raw_carrier_response=raw)


def derive_batch_status(batch: BatchResponse) -> BatchOutcome:
    """Map a batch envelope to one of three outcomes.

    An empty batch has every flag false and lands in PARTIAL_SUCCESS.
    """
    if batch.all_succeeded:
        return BatchOutcome.FULL_SUCCESS
    if batch.all_failed:
        return BatchOutcome.FULL_FAILURE
    return BatchOutcome.PARTIAL_SUCCESS


async def gather_in_order(
    items: Sequence[T],
    fetch: Callable[[T], Awaitable[R]],
    *,
    on_error: Callable[[T, Exception], R],
    concurrency: int = 5,
) -> list[R]:
    """Run fetch for each item concurrently and return results in input order.

    Args:
        items: Input items.
        fetch: Coroutine function producing one result per item.
        on_error: Builds a failed result for an item whose fetch raised.
        concurrency: Maximum number of fetches in flight.

    Returns:
        Results positionally aligned with items.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def run(index: int, item: T) -> tuple[int, R]:
        async with semaphore:
            try:
                return index, await fetch(item)
            except Exception as e:
                logger.warning("Batch item %d failed: %s", index, e)
                return index, on_error(item, e)

    tagged = await asyncio.gather(*(run(index, item) for index, item in enumerate(items)))
    return [result for _, result in sorted(tagged, key=lambda pair: pair[0])]


def order_by_input(
    input_ids: Sequence[str],
    resources: Iterable[R],
    key: Callable[[R], str | None],
    *,
    resource_type: type[R] = CarrierResource,
) -> list[R]:
    """Align carrier results with the input by an identifier.

    Carriers that answer a batch call out of order are re-sorted here. An
    input with no matching result gets a failed MISSING_RESULT item.
    """
    by_id: dict[str | None, R] = {}
    for resource in resources:
        by_id.setdefault(key(resource), resource)

    ordered = []
    for input_id in input_ids:
        resource = by_id.get(input_id)
        if resource is None:
            resource = resource_type(
                status=FAILED,
                input_id=input_id,
                errors=[ParcelValidationError(
                    code=MISSING_RESULT,
                    message=f"Carrier returned no result for {input_id}",
                )],
            )
        ordered.append(resource)
    return ordered
