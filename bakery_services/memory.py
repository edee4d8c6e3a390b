"""
In-memory payment store.

Backs the services in tests, the demo script and single-process use.
All four repository roles share one state object guarded by a re-entrant
lock, so the optimistic re-check and the write in ``commit()`` happen as
one step.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from bakery_engines.currency import RateTable
from bakery_engines.references import normalize_reference, reference_index
from bakery_kernel.domain.models import AllocationPlan, CashMovement, Invoice, Payment
from bakery_kernel.domain.payment_method import PaymentStatus, SettlementAccount
from bakery_kernel.exceptions import (
    ConcurrentModificationError,
    DuplicateReferenceError,
    InvalidStatusTransitionError,
    PersistenceFailureError,
)
from bakery_kernel.logging_config import get_logger
from bakery_services.repositories import CommitGuard, snapshot_fingerprint

logger = get_logger("services.memory")


@dataclass
class _State:
    lock: threading.RLock = field(default_factory=threading.RLock)
    invoices: dict[str, Invoice] = field(default_factory=dict)
    payments: dict[str, Payment] = field(default_factory=dict)
    movements: list[CashMovement] = field(default_factory=list)
    rates: list[tuple[str, date, Decimal]] = field(default_factory=list)


class _MemoryRates:
    def __init__(self, state: _State):
        self._state = state

    def rate_on_or_before(self, currency: str, on: date) -> Decimal | None:
        with self._state.lock:
            table = RateTable.from_entries(self._state.rates)
        return table.rate_on_or_before(currency, on)


class _MemoryInvoices:
    def __init__(self, state: _State):
        self._state = state

    def get(self, invoice_id: str) -> Invoice | None:
        with self._state.lock:
            return self._state.invoices.get(invoice_id)

    def list_for_customer(self, customer_id: str) -> list[Invoice]:
        with self._state.lock:
            return [i for i in self._state.invoices.values() if i.customer_id == customer_id]


class _MemoryPayments:
    def __init__(self, state: _State):
        self._state = state

    def get(self, payment_id: str) -> Payment | None:
        with self._state.lock:
            return self._state.payments.get(payment_id)

    def list_for_customer(self, customer_id: str) -> list[Payment]:
        with self._state.lock:
            return [p for p in self._state.payments.values() if p.customer_id == customer_id]

    def list_with_references(self) -> list[Payment]:
        with self._state.lock:
            return [p for p in self._state.payments.values() if normalize_reference(p.reference)]


class _MemoryLedger:
    def __init__(self, state: _State):
        self._state = state

    def commit(
        self,
        plan: AllocationPlan,
        guard: CommitGuard,
        movements: Sequence[CashMovement] = (),
    ) -> None:
        state = self._state
        with state.lock:
            current = snapshot_fingerprint(
                [i for i in state.invoices.values() if i.customer_id == guard.customer_id],
                [p for p in state.payments.values() if p.customer_id == guard.customer_id],
            )
            if current != guard.snapshot:
                raise ConcurrentModificationError(guard.customer_id, "customer ledger changed")

            taken = reference_index(state.payments.values(), guard.include_pending)
            for ref in sorted(guard.references):
                if ref in taken:
                    raise DuplicateReferenceError(ref, taken[ref])

            clashes = [p.id for p in plan.payments if p.id in state.payments]
            if clashes:
                raise PersistenceFailureError(plan.batch_id, f"payment ids already exist: {clashes}")

            for payment in plan.payments:
                state.payments[payment.id] = payment
            state.movements.extend(movements)

        logger.debug("memory_batch_committed", extra={
            "batch_id": plan.batch_id,
            "payment_count": len(plan.payments),
            "movement_count": len(movements),
        })

    def record_status_change(
        self,
        updated: Sequence[Payment],
        expected: PaymentStatus,
        movements: Sequence[CashMovement] = (),
        reference: str | None = None,
    ) -> None:
        state = self._state
        with state.lock:
            for payment in updated:
                stored = state.payments.get(payment.id)
                if stored is None:
                    raise PersistenceFailureError(payment.batch_id, f"payment {payment.id} vanished")
                if stored.status is not expected:
                    raise InvalidStatusTransitionError(
                        payment.id, stored.status.value, payment.status.value,
                    )

            ref = normalize_reference(reference)
            if ref is not None:
                own_ids = {p.id for p in updated}
                others = [p for p in state.payments.values() if p.id not in own_ids]
                taken = reference_index(others)
                if ref in taken:
                    raise DuplicateReferenceError(ref, taken[ref])

            for payment in updated:
                state.payments[payment.id] = payment
            state.movements.extend(movements)

    def list_movements(self, account: SettlementAccount | None = None) -> list[CashMovement]:
        with self._state.lock:
            return [m for m in self._state.movements if account is None or m.account is account]


class InMemoryStore:
    """
    Dict-backed PaymentStore.

    Guarantees:
        - Reads return snapshots; callers cannot mutate stored state.
        - commit() and record_status_change() are atomic with respect to
          every other call on the same store.
    """

    def __init__(self):
        self._state = _State()
        self.rates = _MemoryRates(self._state)
        self.invoices = _MemoryInvoices(self._state)
        self.payments = _MemoryPayments(self._state)
        self.ledger = _MemoryLedger(self._state)

    # Seeding: invoices belong to sales, rates to the treasury desk.

    def add_invoice(self, invoice: Invoice) -> None:
        with self._state.lock:
            self._state.invoices[invoice.id] = invoice

    def add_payment(self, payment: Payment) -> None:
        """Seed a historical payment (imports, fixtures)."""
        with self._state.lock:
            self._state.payments[payment.id] = payment

    def add_exchange_rate(self, currency: str, effective: date, rate: Decimal) -> None:
        if rate <= 0:
            raise ValueError(f"Exchange rate must be positive: {rate}")
        with self._state.lock:
            self._state.rates.append((currency.upper(), effective, rate))

    def all_payments(self) -> list[Payment]:
        with self._state.lock:
            return list(self._state.payments.values())
