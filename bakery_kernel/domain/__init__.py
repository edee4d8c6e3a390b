"""
Pure domain layer.

Value objects and frozen dataclasses with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the injectable Clock itself)
- I/O
"""

from bakery_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from bakery_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from bakery_kernel.domain.models import (
    AllocationPlan,
    BatchRejection,
    BatchResult,
    BranchSubtotal,
    CashMovement,
    Invoice,
    InvoiceStatus,
    InvoiceTarget,
    NormalizedSubPayment,
    Payment,
    PaymentSource,
    SubPayment,
    TargetKind,
)
from bakery_kernel.domain.payment_method import (
    PaymentMethod,
    PaymentStatus,
    SettlementAccount,
)
from bakery_kernel.domain.tolerance import DEFAULT_TOLERANCE, Tolerance
from bakery_kernel.domain.values import Currency, ExchangeRate, Money, sum_money

__all__ = [
    "AllocationPlan",
    "BatchRejection",
    "BatchResult",
    "BranchSubtotal",
    "CashMovement",
    "Clock",
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "DEFAULT_TOLERANCE",
    "DeterministicClock",
    "ExchangeRate",
    "Invoice",
    "InvoiceStatus",
    "InvoiceTarget",
    "Money",
    "NormalizedSubPayment",
    "Payment",
    "PaymentMethod",
    "PaymentSource",
    "PaymentStatus",
    "SettlementAccount",
    "SubPayment",
    "SystemClock",
    "TargetKind",
    "Tolerance",
    "sum_money",
]
