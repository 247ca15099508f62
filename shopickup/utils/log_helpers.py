"""Log-volume control for adapter operations.

Carrier responses can be large (the Foxpost pickup point feed has thousands
of entries), so adapters log through safe_log, which truncates nested
payloads, summarizes raw carrier responses and mutes chatty operations.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Literal, Protocol

from pydantic import BaseModel

from shopickup.utils.redaction import redact_for_logging, sanitize_error_message

DEFAULT_SILENT_OPERATIONS = ("fetch_pickup_points",)

_RAW_KEYS = ("raw", "raw_carrier_response")


@dataclass(frozen=True)
class LoggingOptions:
    """Controls how much of each payload reaches the logs.

    Attributes:
        max_array_items: Items kept from each list; 0 replaces lists with a count.
        max_depth: Nesting depth kept before objects are summarized.
        log_raw_response: True logs truncated raw responses, "summary" logs
            only their shape, False drops them.
        log_metadata: Keep ``metadata`` blocks instead of summarizing them.
        silent_operations: Operation names whose DEBUG/INFO lines are muted.
    """

    max_array_items: int = 10
    max_depth: int = 2
    log_raw_response: bool | Literal["summary"] = "summary"
    log_metadata: bool = False
    silent_operations: tuple[str, ...] = field(default_factory=tuple)


class LogContext(Protocol):
    operation_name: str | None
    logging_options: LoggingOptions | None


def is_silent_operation(ctx: LogContext | None) -> bool:
    """Return True if ctx names an operation whose chatter is muted."""
    if ctx is None or not ctx.operation_name:
        return False
    options = ctx.logging_options or LoggingOptions()
    silent = set(options.silent_operations) | set(DEFAULT_SILENT_OPERATIONS)
    return ctx.operation_name in silent


def truncate_for_logging(obj: Any, options: LoggingOptions, depth: int = 0) -> Any:
    """Cut lists and nested objects down to the configured size."""
    if depth >= options.max_depth:
        if isinstance(obj, (list, tuple)):
            return f"[Array: {len(obj)} items]"
        if isinstance(obj, dict):
            return f"[Object: {len(obj)} keys]"
        return obj

    if isinstance(obj, (list, tuple)):
        if options.max_array_items == 0:
            return f"[Array: {len(obj)} items (truncated)]"
        kept = [truncate_for_logging(item, options, depth + 1) for item in obj[:options.max_array_items]]
        if len(obj) > options.max_array_items:
            kept.append(f"... and {len(obj) - options.max_array_items} more items")
        return kept

    if isinstance(obj, dict):
        result = {}
        for key, value in obj.items():
            if key == "metadata" and not options.log_metadata and isinstance(value, dict):
                result[key] = f"[Object: metadata ({len(value)} keys, omitted)]"
                continue
            result[key] = truncate_for_logging(value, options, depth + 1)
        return result

    return obj


def summarize_raw_response(raw: Any) -> dict[str, Any]:
    """Describe the shape of a raw carrier response without its content."""
    if raw is None or raw == [] or raw == {}:
        return {"message": "No raw response"}
    if isinstance(raw, (list, tuple)):
        first = raw[0]
        keys = list(first.keys()) if isinstance(first, dict) else []
        return {"type": "array", "count": len(raw), "item_keys": keys[:5], "item_key_count": len(keys)}
    if isinstance(raw, dict):
        keys = list(raw.keys())
        return {"type": "object", "key_count": len(keys), "keys": keys[:10]}
    if isinstance(raw, (bytes, bytearray)):
        return {"type": "bytes", "length": len(raw)}
    return {"type": type(raw).__name__, "value": str(raw)[:100]}


def serialize_for_log(value: Any, _depth: int = 0) -> Any:
    """Convert a value to a JSON-safe structure.

    Pydantic models, enums, datetimes, bytes and exceptions are
    converted; unknown objects become their repr.
    """
    if _depth > 8:
        return "[Max depth]"
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return f"[bytes: {len(value)}]"
    if isinstance(value, BaseException):
        return error_to_log(value)
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, dict):
        return {str(k): serialize_for_log(v, _depth + 1) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [serialize_for_log(item, _depth + 1) for item in value]
    return repr(value)


def error_to_log(error: BaseException) -> dict[str, Any]:
    """Build a JSON-safe description of an exception for structured logs."""
    entry: dict[str, Any] = {
        "type": type(error).__name__,
        "message": sanitize_error_message(str(error)),
    }
    for attr in ("category", "carrier_code", "retry_after_ms", "status"):
        value = getattr(error, attr, None)
        if value is not None:
            entry[attr] = serialize_for_log(value)
    return entry


def safe_log(
    logger: logging.Logger,
    level: int,
    message: str,
    data: dict[str, Any] | None = None,
    ctx: LogContext | None = None,
) -> None:
    """Log message with a size-limited, redacted JSON payload.

    DEBUG and INFO lines of silent operations are dropped. WARNING and
    above are always emitted.

    Args:
        logger: Module logger.
        level: logging level constant.
        message: Log message.
        data: Structured context. ``raw`` and ``raw_carrier_response`` are
            summarized according to the logging options.
        ctx: Adapter context carrying the operation name and options.
    """
    if level < logging.WARNING and is_silent_operation(ctx):
        return
    if not logger.isEnabledFor(level):
        return

    options = (ctx.logging_options if ctx else None) or LoggingOptions()
    processed = redact_for_logging(serialize_for_log(data or {}))

    for key in _RAW_KEYS:
        if key not in processed:
            continue
        if options.log_raw_response is False:
            del processed[key]
        elif options.log_raw_response == "summary":
            processed[key] = summarize_raw_response(processed[key])
        else:
            processed[key] = truncate_for_logging(processed[key], options)

    for key, value in processed.items():
        if key not in _RAW_KEYS and isinstance(value, (dict, list)):
            processed[key] = truncate_for_logging(value, options)

    if processed:
        logger.log(level, "%s %s", message, json.dumps(processed, default=str))
    else:
        logger.log(level, "%s", message)
