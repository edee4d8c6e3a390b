"""
Repository protocols consumed by the payment services.

Contract:
    The services never touch storage directly.  They read through
    ExchangeRateLookup, InvoiceRepository and PaymentRepository, and write
    only through LedgerWriter.  A PaymentStore bundles the four under the
    attributes ``rates``, ``invoices``, ``payments`` and ``ledger``.

Optimistic commit:
    Before allocating, the service hashes the customer's invoice and
    payment state (``snapshot_fingerprint``).  LedgerWriter.commit()
    recomputes the hash and re-checks the batch's references inside its
    own transaction, raising ConcurrentModificationError or
    DuplicateReferenceError instead of writing.

Architecture: bakery_services. No storage imports here.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Protocol, runtime_checkable

from bakery_kernel.domain.models import AllocationPlan, CashMovement, Invoice, Payment
from bakery_kernel.domain.payment_method import PaymentStatus, SettlementAccount
from bakery_kernel.utils.hashing import hash_snapshot


@runtime_checkable
class ExchangeRateLookup(Protocol):
    """Date-indexed rates, local units per settlement unit."""

    def rate_on_or_before(self, currency: str, on: date) -> Decimal | None:
        """Exact-date rate, else the most recent earlier one, else None."""
        ...


@runtime_checkable
class InvoiceRepository(Protocol):
    """Read-only view of invoices owned by the sales subsystem."""

    def get(self, invoice_id: str) -> Invoice | None: ...

    def list_for_customer(self, customer_id: str) -> list[Invoice]: ...


@runtime_checkable
class PaymentRepository(Protocol):
    """Read access to payment records."""

    def get(self, payment_id: str) -> Payment | None: ...

    def list_for_customer(self, customer_id: str) -> list[Payment]: ...

    def list_with_references(self) -> list[Payment]:
        """Every payment that carries a reference, for duplicate checks."""
        ...


@dataclass(frozen=True)
class CommitGuard:
    """What the ledger writer must re-check before writing a plan."""

    customer_id: str
    snapshot: str
    references: frozenset[str] = field(default_factory=frozenset)
    include_pending: bool = False


@runtime_checkable
class LedgerWriter(Protocol):
    """The only write path for payments and cash movements."""

    def commit(
        self,
        plan: AllocationPlan,
        guard: CommitGuard,
        movements: Sequence[CashMovement] = (),
    ) -> None:
        """
        Atomically write every payment of ``plan`` plus ``movements``.

        Raises:
            ConcurrentModificationError: snapshot no longer matches.
            DuplicateReferenceError: a reference was verified meanwhile.
            PersistenceFailureError: the store failed.
        """
        ...

    def record_status_change(
        self,
        updated: Sequence[Payment],
        expected: PaymentStatus,
        movements: Sequence[CashMovement] = (),
        reference: str | None = None,
    ) -> None:
        """
        Atomically replace the status of ``updated`` payments.

        Each stored payment must still be in ``expected`` status.  When
        ``reference`` is given, no verified transfer outside ``updated``
        may hold it.

        Raises:
            InvalidStatusTransitionError: a payment already left ``expected``.
            DuplicateReferenceError: ``reference`` is taken.
            PersistenceFailureError: the store failed.
        """
        ...

    def list_movements(self, account: SettlementAccount | None = None) -> list[CashMovement]: ...


class PaymentStore(Protocol):
    """A storage backend exposing all four repository roles."""

    rates: ExchangeRateLookup
    invoices: InvoiceRepository
    payments: PaymentRepository
    ledger: LedgerWriter


def snapshot_fingerprint(invoices: Iterable[Invoice], payments: Iterable[Payment]) -> str:
    """SHA-256 over invoice ids/totals and payment ids/statuses."""
    return hash_snapshot(
        [
            {"id": inv.id, "total": inv.total.minor_units, "currency": inv.total.currency.code}
            for inv in invoices
        ],
        [{"id": p.id, "status": p.status.value} for p in payments],
    )
