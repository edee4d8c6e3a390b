"""
Deterministic hashing for the optimistic-commit snapshot.

Stores and the batch service must arrive at the same digest for the same
customer state, whatever order the rows were read in.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Cannot hash value of type {type(obj).__name__}")


def canonicalize_json(data: Any) -> str:
    """Sorted keys, no whitespace."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_json_default)


def hash_payload(payload: dict) -> str:
    """Hex SHA-256 of the canonical JSON form of ``payload``."""
    return hashlib.sha256(canonicalize_json(payload).encode("utf-8")).hexdigest()


def hash_snapshot(invoice_rows: list[dict], payment_rows: list[dict]) -> str:
    """
    Hash a customer's ledger state.

    Rows are sorted by ``id`` first.
    """
    return hash_payload({
        "invoices": sorted(invoice_rows, key=lambda r: r["id"]),
        "payments": sorted(payment_rows, key=lambda r: r["id"]),
    })
