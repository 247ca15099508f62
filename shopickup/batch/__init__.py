"""Batch envelope construction and status derivation."""

from shopickup.batch.aggregator import (
    MISSING_RESULT,
    BatchOutcome,
    build_batch_response,
    build_labels_response,
    derive_batch_status,
    empty_batch_response,
    failed_batch_response,
    gather_in_order,
    order_by_input,
)

__all__ = [
    "MISSING_RESULT",
    "BatchOutcome",
    "build_batch_response",
    "build_labels_response",
    "derive_batch_status",
    "empty_batch_response",
    "failed_batch_response",
    "gather_in_order",
    "order_by_input",
]
