"""
Module: bakery_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    bakery_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import bakery_kernel (domain, exceptions, logging).
    MUST NOT import bakery_services or bakery_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Dates, timestamps and ids are passed in by services.
    - Integer money: all amounts are Money in minor units; floats are
      rejected at the value-object boundary.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from bakery_engines import PaymentAllocationEngine, CurrencyNormalizer
    from bakery_engines import ReferenceValidator, resolve_status
"""

from bakery_engines.allocation import PaymentAllocationEngine, allocate
from bakery_engines.credit_ledger import (
    CreditLedgerReader,
    current_balance,
    overdue_balance,
    usable_credit,
)
from bakery_engines.currency import (
    CurrencyNormalizer,
    NormalizedAmount,
    RateSource,
    RateTable,
    to_local,
)
from bakery_engines.invoice_status import applied_total, invoice_balance, resolve_status
from bakery_engines.references import (
    DEFAULT_REFERENCE_DIGITS,
    ReferenceValidator,
    is_well_formed,
    normalize_reference,
    reference_index,
)
from bakery_engines.settlement import (
    account_balances,
    cash_movement_for,
    settlement_account_for,
)
from bakery_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "DEFAULT_REFERENCE_DIGITS",
    "CreditLedgerReader",
    "CurrencyNormalizer",
    "NormalizedAmount",
    "PaymentAllocationEngine",
    "RateSource",
    "RateTable",
    "ReferenceValidator",
    "account_balances",
    "allocate",
    "applied_total",
    "cash_movement_for",
    "compute_input_fingerprint",
    "current_balance",
    "invoice_balance",
    "is_well_formed",
    "normalize_reference",
    "overdue_balance",
    "reference_index",
    "resolve_status",
    "settlement_account_for",
    "to_local",
    "traced_engine",
    "usable_credit",
]
