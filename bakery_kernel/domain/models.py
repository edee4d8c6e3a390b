"""
Payment Domain Models (``bakery_kernel.domain.models``).

Responsibility
--------------
Frozen dataclass value objects for the nouns of payment allocation:
invoices, payments, incoming sub-payments, allocation targets and plans,
and cash-account movements.

Architecture position
---------------------
**Kernel > Domain** -- pure data definitions with ZERO I/O. Produced by
the engines, persisted by the stores, returned to callers.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields are ``Money`` in integer minor units.
* A Payment's settlement amount never changes; only ``status`` does,
  through ``Payment.with_status``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from bakery_kernel.domain.payment_method import (
    PaymentMethod,
    PaymentStatus,
    SettlementAccount,
)
from bakery_kernel.domain.values import Money, sum_money


class PaymentSource(str, Enum):
    """What a payment record represents within its batch."""

    INVOICE_APPLICATION = "invoice_application"
    BALANCE_ADJUSTMENT = "balance_adjustment"


class InvoiceStatus(str, Enum):
    """Derived invoice states, from least to most settled."""

    PENDING_PAYMENT = "pending_payment"
    OVERDUE = "overdue"
    PARTIALLY_PAID = "partially_paid"
    COMPLETED = "completed"


class TargetKind(str, Enum):
    CASCADE = "cascade"
    INVOICE = "invoice"
    DEBT_ADJUSTMENT = "debt_adjustment"


@dataclass(frozen=True)
class BranchSubtotal:
    """Informational per-branch share of an invoice."""
    branch_id: str
    amount: Money


@dataclass(frozen=True)
class Invoice:
    """A customer's bill. ``total`` is fixed at creation."""
    id: str
    customer_id: str
    issue_date: date
    total: Money
    due_date: date | None = None
    branch_subtotals: tuple[BranchSubtotal, ...] = ()

    def is_overdue(self, today: date) -> bool:
        return self.due_date is not None and today > self.due_date


@dataclass(frozen=True)
class Payment:
    """
    A recorded payment or payment fragment.

    ``input_amount`` is what the customer handed over, in its own currency;
    ``settlement_amount`` is the same value in the settlement currency.
    ``exchange_rate`` is set only when the input currency differs.
    """
    id: str
    customer_id: str
    payment_date: date
    input_amount: Money
    settlement_amount: Money
    method: PaymentMethod
    status: PaymentStatus
    exchange_rate: Decimal | None = None
    reference: str | None = None
    invoice_id: str | None = None
    source: PaymentSource | None = None
    batch_id: str | None = None
    notes: str = ""
    created_at: datetime | None = None
    status_changed_at: datetime | None = None
    status_changed_by: str | None = None

    @property
    def is_verified(self) -> bool:
        return self.status is PaymentStatus.VERIFIED

    @property
    def counts_toward_balance(self) -> bool:
        """Verified cash and transfers reduce debt; credit draw-downs do not."""
        return self.is_verified and self.method is not PaymentMethod.ACCOUNT_CREDIT

    def with_status(self, status: PaymentStatus, at: datetime, by: str) -> Payment:
        return replace(self, status=status, status_changed_at=at, status_changed_by=by)


@dataclass(frozen=True)
class SubPayment:
    """One line of an incoming payment batch, as entered by the operator."""
    amount: Money
    method: PaymentMethod
    payment_date: date
    reference: str | None = None
    exchange_rate: Decimal | None = None
    notes: str = ""


@dataclass(frozen=True)
class NormalizedSubPayment:
    """A validated sub-payment with its settlement-currency value."""
    index: int
    sub_payment: SubPayment
    settlement: Money
    rate: Decimal | None = None


@dataclass(frozen=True)
class InvoiceTarget:
    """Where a batch should be applied."""
    kind: TargetKind
    invoice_id: str | None = None

    @classmethod
    def cascade(cls) -> InvoiceTarget:
        """All outstanding invoices, oldest first."""
        return cls(TargetKind.CASCADE)

    @classmethod
    def invoice(cls, invoice_id: str) -> InvoiceTarget:
        return cls(TargetKind.INVOICE, invoice_id)

    @classmethod
    def debt_adjustment(cls) -> InvoiceTarget:
        """No invoice: every unit of cash becomes a balance adjustment."""
        return cls(TargetKind.DEBT_ADJUSTMENT)


@dataclass(frozen=True)
class AllocationPlan:
    """
    The full set of payment records one batch will create.

    ``applied_total`` is what reached invoices (credit plus cash);
    ``excess_total`` is cash recorded as balance adjustments.
    """
    batch_id: str
    customer_id: str
    payments: tuple[Payment, ...]
    cash_total: Money
    credit_applied: Money
    excess_total: Money
    applied_total: Money

    @property
    def is_empty(self) -> bool:
        return not self.payments

    def applications_for(self, invoice_id: str) -> tuple[Payment, ...]:
        return tuple(p for p in self.payments if p.invoice_id == invoice_id)

    def credit_fragments(self) -> tuple[Payment, ...]:
        return tuple(p for p in self.payments if p.method is PaymentMethod.ACCOUNT_CREDIT)

    def cash_fragments(self) -> tuple[Payment, ...]:
        return tuple(
            p for p in self.payments
            if p.method is not PaymentMethod.ACCOUNT_CREDIT
            and p.source is PaymentSource.INVOICE_APPLICATION
        )

    def adjustments(self) -> tuple[Payment, ...]:
        return tuple(p for p in self.payments if p.source is PaymentSource.BALANCE_ADJUSTMENT)

    def references(self) -> frozenset[str]:
        return frozenset(p.reference for p in self.payments if p.reference)

    def invoice_ids(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for p in self.payments:
            if p.invoice_id is not None:
                seen.setdefault(p.invoice_id, None)
        return tuple(seen)

    def total_settlement(self) -> Money:
        return sum_money((p.settlement_amount for p in self.payments), self.cash_total.currency)


@dataclass(frozen=True)
class CashMovement:
    """Money landing in a cash account for a verified payment."""
    payment_id: str
    account: SettlementAccount
    amount: Money
    movement_date: date
    description: str = ""


@dataclass(frozen=True)
class BatchRejection:
    """Why a batch was refused. No payments exist for a rejected batch."""
    code: str
    message: str
    rule: str
    sub_payment_index: int | None = None


@dataclass(frozen=True)
class BatchResult:
    """Outcome of ``submit_payment_batch``."""
    batch_id: str | None
    created_payments: tuple[Payment, ...] = field(default_factory=tuple)
    applied_total: Money | None = None
    rejection: BatchRejection | None = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None
