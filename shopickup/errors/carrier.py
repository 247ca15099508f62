"""Carrier error taxonomy.

Every adapter failure that crosses a public adapter boundary is a
CarrierError. Its category is one of a closed set of five values and is
the only input to the retry decision:

- Validation: the carrier rejected the request data (HTTP 400). Do not retry.
- Auth: credentials are missing or rejected (HTTP 401/403). Do not retry.
- RateLimit: the carrier throttled the caller (HTTP 429). Retry after backoff.
- Transient: server error, timeout, or network failure. Retry.
- Permanent: anything else. Do not retry.
"""

from dataclasses import dataclass, fields
from enum import Enum
from types import MappingProxyType
from typing import Any


class ErrorCategory(str, Enum):
    """Closed set of carrier error categories."""

    VALIDATION = "Validation"
    AUTH = "Auth"
    RATE_LIMIT = "RateLimit"
    TRANSIENT = "Transient"
    PERMANENT = "Permanent"


# One entry per category; a new category must be added here explicitly.
RETRYABLE_BY_CATEGORY: MappingProxyType[ErrorCategory, bool] = MappingProxyType({
    ErrorCategory.VALIDATION: False,
    ErrorCategory.AUTH: False,
    ErrorCategory.RATE_LIMIT: True,
    ErrorCategory.TRANSIENT: True,
    ErrorCategory.PERMANENT: False,
})

_uncovered = set(ErrorCategory) - set(RETRYABLE_BY_CATEGORY)
if _uncovered:
    raise RuntimeError(
        f"RETRYABLE_BY_CATEGORY is missing categories: {sorted(c.value for c in _uncovered)}"
    )


@dataclass(eq=False)
class CarrierError(Exception):
    """Structured error raised by carrier adapters.

    Attributes:
        message: Human-readable description.
        category: Error category; determines retry eligibility.
        carrier_code: The carrier's own error code, kept for diagnostics.
        raw: Original carrier payload or exception. Never interpreted downstream.
        retry_after_ms: Advisory backoff hint, only set for RateLimit errors.
    """

    message: str
    category: ErrorCategory
    carrier_code: str | None = None
    raw: Any = None
    retry_after_ms: int | None = None

    def __post_init__(self) -> None:
        """Coerce the category and seal the fields."""
        self.category = ErrorCategory(self.category)
        if self.carrier_code is not None:
            self.carrier_code = str(self.carrier_code)
        super().__init__(self.message)
        object.__setattr__(self, "_sealed", True)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _CARRIER_ERROR_FIELDS and getattr(self, "_sealed", False):
            raise AttributeError(f"CarrierError.{name} is read-only")
        super().__setattr__(name, value)

    def __str__(self) -> str:
        """Return the message prefixed with the category."""
        return f"[{self.category.value}] {self.message}"

    def is_retryable(self) -> bool:
        """Return True if a caller may retry the failed operation."""
        return RETRYABLE_BY_CATEGORY[self.category]

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses. The raw payload is left out."""
        return {
            "message": self.message,
            "category": self.category.value,
            "carrierCode": self.carrier_code,
            "retryAfterMs": self.retry_after_ms,
            "retryable": self.is_retryable(),
        }


_CARRIER_ERROR_FIELDS = frozenset(f.name for f in fields(CarrierError))


class NotImplementedCapabilityError(Exception):
    """Raised when an adapter is asked for a capability it does not declare."""

    def __init__(self, capability: str, adapter_id: str) -> None:
        super().__init__(
            f"Capability '{capability}' is not implemented by adapter '{adapter_id}'"
        )
        self.capability = capability
        self.adapter_id = adapter_id
