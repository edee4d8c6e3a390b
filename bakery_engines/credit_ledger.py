"""
Module: bakery_engines.credit_ledger
Responsibility:
    Derive a customer's net position (debt positive, credit negative) from
    their invoices and verified payments.  Balances are never stored.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - balance = sum(invoice totals) - sum(settlement of verified payments
      whose method is not ACCOUNT_CREDIT).  Credit draw-down fragments move
      value between an invoice and the customer's credit; the excess cash
      behind that credit was already counted as a balance adjustment.
    - Invoices with negative totals are ignored.
    - Usable credit is -balance when balance < -tolerance, else zero.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from bakery_engines.invoice_status import invoice_balance
from bakery_kernel.domain.models import Invoice, Payment
from bakery_kernel.domain.tolerance import DEFAULT_TOLERANCE, Tolerance
from bakery_kernel.domain.values import Currency, Money, sum_money


def current_balance(
    customer_id: str,
    invoices: Iterable[Invoice],
    payments: Iterable[Payment],
    currency: Currency | str = "USD",
) -> Money:
    """Net balance for ``customer_id``. Positive is debt, negative is credit."""
    owed = sum_money(
        (
            inv.total for inv in invoices
            if inv.customer_id == customer_id and not inv.total.is_negative
        ),
        currency,
    )
    paid = sum_money(
        (
            p.settlement_amount for p in payments
            if p.customer_id == customer_id and p.counts_toward_balance
        ),
        currency,
    )
    return owed - paid


def usable_credit(balance: Money, tolerance: Tolerance = DEFAULT_TOLERANCE) -> Money:
    """Credit the customer can draw on: -balance when clearly negative."""
    if tolerance.is_negative(balance):
        return -balance
    return Money.zero(balance.currency)


def overdue_balance(
    customer_id: str,
    invoices: Iterable[Invoice],
    payments: Iterable[Payment],
    today: date,
    currency: Currency | str = "USD",
    tolerance: Tolerance = DEFAULT_TOLERANCE,
) -> Money:
    """Sum of the open balances of the customer's invoices that are past due."""
    payments = list(payments)
    total = Money.zero(currency)
    for invoice in invoices:
        if invoice.customer_id != customer_id or not invoice.is_overdue(today):
            continue
        remaining = invoice_balance(invoice, payments)
        if tolerance.is_positive(remaining):
            total = total + remaining
    return total


class CreditLedgerReader:
    """
    Credit view bound to a settlement currency and tolerance.

    Contract:
        Thin wrapper so services do not thread currency and tolerance
        through every call.
    """

    def __init__(self, currency: Currency | str = "USD", tolerance: Tolerance = DEFAULT_TOLERANCE):
        self._currency = Currency(currency) if isinstance(currency, str) else currency
        self._tolerance = tolerance

    def current_balance(
        self,
        customer_id: str,
        invoices: Iterable[Invoice],
        payments: Iterable[Payment],
    ) -> Money:
        return current_balance(customer_id, invoices, payments, self._currency)

    def usable_credit(
        self,
        customer_id: str,
        invoices: Iterable[Invoice],
        payments: Iterable[Payment],
    ) -> Money:
        return usable_credit(self.current_balance(customer_id, invoices, payments), self._tolerance)

    def overdue_balance(
        self,
        customer_id: str,
        invoices: Iterable[Invoice],
        payments: Iterable[Payment],
        today: date,
    ) -> Money:
        return overdue_balance(
            customer_id, invoices, payments, today, self._currency, self._tolerance,
        )
