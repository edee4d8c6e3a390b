"""
Module: bakery_engines.invoice_status
Responsibility:
    Derive an invoice's status and open balance from its total, its due
    date and the verified payments applied to it.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  "Today" is always passed
    in by the caller.

Invariants enforced:
    - Only VERIFIED payments whose invoice_id matches count as applied.
      Credit draw-down fragments count: they settle the invoice they name.
    - balance <= tolerance -> COMPLETED, regardless of due date.
    - Otherwise past due -> OVERDUE; otherwise applied > tolerance ->
      PARTIALLY_PAID; otherwise PENDING_PAYMENT.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from bakery_kernel.domain.models import Invoice, InvoiceStatus, Payment
from bakery_kernel.domain.tolerance import DEFAULT_TOLERANCE, Tolerance
from bakery_kernel.domain.values import Money, sum_money


def applied_total(invoice: Invoice, payments: Iterable[Payment]) -> Money:
    """Settlement value of verified payments applied to ``invoice``."""
    return sum_money(
        (
            p.settlement_amount for p in payments
            if p.invoice_id == invoice.id and p.is_verified
        ),
        invoice.total.currency,
    )


def invoice_balance(invoice: Invoice, payments: Iterable[Payment]) -> Money:
    """Open balance: total minus applied. Negative when overpaid."""
    return invoice.total - applied_total(invoice, payments)


def resolve_status(
    invoice: Invoice,
    payments: Iterable[Payment],
    today: date,
    tolerance: Tolerance = DEFAULT_TOLERANCE,
) -> InvoiceStatus:
    """Status of ``invoice`` as of ``today``."""
    applied = applied_total(invoice, payments)
    balance = invoice.total - applied

    if tolerance.is_settled(balance):
        return InvoiceStatus.COMPLETED
    if invoice.is_overdue(today):
        return InvoiceStatus.OVERDUE
    if tolerance.is_positive(applied):
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus.PENDING_PAYMENT
