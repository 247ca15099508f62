"""Per-item results and the batch envelope returned by adapters.

All models here are frozen snapshots. They serialize with camelCase
aliases (``carrierId``, ``successCount``) so the JSON shape matches what
HTTP clients of the dev-server expect.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

CREATED = "created"
FAILED = "failed"

_RESULT_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
)


class ParcelValidationError(BaseModel):
    """Field-level error attached to a failed item."""

    model_config = _RESULT_CONFIG

    field: str | None = Field(None, description="Offending field, when the carrier names one")
    code: str | None = Field(None, description="Carrier or library error code")
    message: str = Field(..., description="Human-readable error message")


class CarrierResource(BaseModel):
    """Outcome of one create operation for one input item."""

    model_config = _RESULT_CONFIG

    carrier_id: str | None = Field(None, description="Carrier-assigned ID; set only when created")
    status: str = Field(..., description="'created', 'failed', or a carrier-specific status")
    errors: list[ParcelValidationError] | None = Field(
        None, description="Item errors; non-empty when present"
    )
    raw: Any = Field(None, description="Carrier's raw per-item payload")
    input_id: str | None = Field(None, description="Caller-side identifier of the input item")
    meta: dict[str, Any] | None = Field(None, description="Carrier-specific extras")

    @model_validator(mode="after")
    def _check_consistency(self) -> "CarrierResource":
        if self.errors is not None and not self.errors:
            raise ValueError("errors must be non-empty when present")
        if self.status == CREATED and not self.carrier_id:
            raise ValueError("a created resource requires carrier_id")
        if self.status != CREATED and self.carrier_id is not None:
            raise ValueError("carrier_id is only set on created resources")
        return self

    @property
    def succeeded(self) -> bool:
        """True if the carrier assigned an ID and reported no errors."""
        return self.status == CREATED and bool(self.carrier_id) and not self.errors


class PageRange(BaseModel):
    """1-based inclusive page span inside a label file."""

    model_config = _RESULT_CONFIG

    start: int = Field(..., ge=1)
    end: int = Field(..., ge=1)


class LabelResult(CarrierResource):
    """Label outcome for one parcel. ``input_id`` is the parcel carrier ID."""

    file_id: str | None = Field(None, description="LabelFile holding this label")
    page_range: PageRange | None = Field(None, description="Pages of this label in the file")


class LabelFile(BaseModel):
    """A label document produced by a label batch.

    The bytes are kept on the object for callers but are never part of the
    serialized envelope.
    """

    model_config = _RESULT_CONFIG

    id: str = Field(..., description="File identifier referenced by LabelResult.file_id")
    content_type: str = Field(default="application/pdf", description="MIME type")
    byte_length: int = Field(..., ge=0, description="Size of the document in bytes")
    pages: int = Field(..., ge=0, description="Number of pages")
    orientation: str | None = Field(None, description="portrait or landscape")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Carrier extras")
    content: bytes | None = Field(None, exclude=True, repr=False)


TResource = TypeVar("TResource", bound=CarrierResource)


class BatchResponse(BaseModel, Generic[TResource]):
    """Partial-success envelope for batch create operations.

    Invariants (checked on construction):
        success_count + failure_count == total_count == len(results)
        all_succeeded == (failure_count == 0 and total_count > 0)
        all_failed == (success_count == 0 and total_count > 0)
        some_failed == (success_count > 0 and failure_count > 0)
    """

    model_config = _RESULT_CONFIG

    results: list[TResource] = Field(default_factory=list)
    success_count: int = Field(..., ge=0)
    failure_count: int = Field(..., ge=0)
    total_count: int = Field(..., ge=0)
    all_succeeded: bool
    all_failed: bool
    some_failed: bool
    summary: str
    raw_carrier_response: Any = Field(None, description="Untouched carrier response")

    @model_validator(mode="after")
    def _check_invariants(self) -> "BatchResponse":
        total = self.total_count
        if self.success_count + self.failure_count != total or len(self.results) != total:
            raise ValueError(
                f"inconsistent counts: {self.success_count} + {self.failure_count} "
                f"!= {total} (results: {len(self.results)})"
            )
        expected = (
            self.failure_count == 0 and total > 0,
            self.success_count == 0 and total > 0,
            self.success_count > 0 and self.failure_count > 0,
        )
        if (self.all_succeeded, self.all_failed, self.some_failed) != expected:
            raise ValueError("batch flags do not match counts")
        return self


CreateParcelsResponse = BatchResponse[CarrierResource]


class CreateLabelsResponse(BatchResponse[LabelResult]):
    """Label batch envelope; adds the generated label files."""

    files: list[LabelFile] = Field(default_factory=list)
