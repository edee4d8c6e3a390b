"""
bakery_engines.tracer -- BAKERY_ENGINE_TRACE records for engine calls.

Responsibility:
    ``@traced_engine`` wraps a pure engine method and logs one trace record
    per call: engine name and version, a fingerprint of selected keyword
    arguments, duration, and the outcome.  A call that raises is traced
    with the error code before the exception propagates.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Emits log records only; never changes arguments or results.

Usage:
    @traced_engine("allocation", "1.0", fingerprint_fields=("batch_id",))
    def allocate(self, *, batch_id, ...):
        ...

    Fingerprinted arguments must be passed by keyword.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from dataclasses import fields, is_dataclass
from datetime import date
from enum import Enum
from typing import Any

from bakery_kernel.domain.values import Money
from bakery_kernel.logging_config import get_logger
from bakery_kernel.utils.hashing import hash_payload

_logger = get_logger("engines.tracer")

TRACE_TYPE = "BAKERY_ENGINE_TRACE"


def _plain(value: Any) -> Any:
    """Reduce engine inputs to JSON-ready values. Money becomes "<minor><CCY>"."""
    if isinstance(value, Money):
        return f"{value.minor_units}{value.currency.code}"
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if value is None or isinstance(value, (int, str, bool)):
        return value
    return str(value)


def compute_input_fingerprint(fingerprint_fields: tuple[str, ...], kwargs: dict[str, Any]) -> str:
    """First 16 hex chars of the SHA-256 over the selected kwargs (missing ones hash as null)."""
    selected = {name: _plain(kwargs.get(name)) for name in fingerprint_fields}
    return hash_payload(selected)[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator emitting BAKERY_ENGINE_TRACE around an engine call."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs) if fingerprint_fields else ""
            )
            trace = {
                "trace_type": TRACE_TYPE,
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": fingerprint,
                "function": func.__qualname__,
            }
            started = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                trace["duration_ms"] = round((time.monotonic() - started) * 1000, 2)
                trace["outcome"] = "error"
                trace["error_code"] = getattr(exc, "code", type(exc).__name__)
                _logger.info(TRACE_TYPE, extra=trace)
                raise
            trace["duration_ms"] = round((time.monotonic() - started) * 1000, 2)
            trace["outcome"] = "ok"
            _logger.info(TRACE_TYPE, extra=trace)
            return result

        return wrapper

    return decorator
