"""
SQLAlchemy-backed payment store (``bakery_services.sql_store``).

Responsibility
--------------
Implements the four repository roles over the ORM models in
``bakery_kernel.models``.  Each call runs in its own ``session_scope``;
``commit()`` locks the customer and reference guard rows, re-checks the
snapshot and references, and writes the whole plan inside ONE transaction,
so a failed check or a database error leaves nothing behind.  Two writers
for the same customer or reference are serialized on the guard rows; the
second one re-reads after the first commits and is refused.

Failure modes
-------------
* ``SQLAlchemyError`` of any kind is wrapped in ``PersistenceFailureError``.
* Domain errors raised inside the transaction (stale snapshot, duplicate
  reference, status already changed) roll it back and propagate unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal

from sqlalchemy import and_, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from bakery_engines.references import normalize_reference, reference_index
from bakery_kernel.db.engine import create_tables, enable_sqlite_write_locks, session_scope
from bakery_kernel.domain.models import AllocationPlan, CashMovement, Invoice, Payment
from bakery_kernel.domain.payment_method import PaymentMethod, PaymentStatus, SettlementAccount
from bakery_kernel.exceptions import (
    ConcurrentModificationError,
    DuplicateReferenceError,
    InvalidStatusTransitionError,
    PersistenceFailureError,
)
from bakery_kernel.logging_config import get_logger
from bakery_kernel.models import (
    CashMovementModel,
    ExchangeRateModel,
    InvoiceModel,
    LedgerGuardModel,
    PaymentModel,
)
from bakery_services.repositories import CommitGuard, snapshot_fingerprint

logger = get_logger("services.sql_store")

_TRANSFER_METHODS = (PaymentMethod.MOBILE_TRANSFER.value, PaymentMethod.WIRE_TRANSFER.value)


class _SqlBase:
    def __init__(self, factory: sessionmaker[Session]):
        self._factory = factory

    def _read(self, batch_id: str | None, fn):
        try:
            with session_scope(self._factory) as session:
                return fn(session)
        except SQLAlchemyError as exc:
            raise PersistenceFailureError(batch_id, str(exc)) from exc


class _SqlRates(_SqlBase):
    def __init__(self, factory: sessionmaker[Session], settlement_currency: str):
        super().__init__(factory)
        self._settlement = settlement_currency

    def rate_on_or_before(self, currency: str, on: date) -> Decimal | None:
        def query(session: Session) -> Decimal | None:
            row = session.execute(
                select(ExchangeRateModel.rate)
                .where(
                    ExchangeRateModel.settlement_currency == self._settlement,
                    ExchangeRateModel.local_currency == currency.upper(),
                    ExchangeRateModel.effective_date <= on,
                )
                .order_by(ExchangeRateModel.effective_date.desc())
                .limit(1)
            ).scalar_one_or_none()
            return row

        return self._read(None, query)


class _SqlInvoices(_SqlBase):
    def get(self, invoice_id: str) -> Invoice | None:
        def query(session: Session) -> Invoice | None:
            model = session.get(InvoiceModel, invoice_id)
            return model.to_dto() if model is not None else None

        return self._read(None, query)

    def list_for_customer(self, customer_id: str) -> list[Invoice]:
        return self._read(None, lambda s: _customer_invoices(s, customer_id))


class _SqlPayments(_SqlBase):
    def get(self, payment_id: str) -> Payment | None:
        def query(session: Session) -> Payment | None:
            model = session.get(PaymentModel, payment_id)
            return model.to_dto() if model is not None else None

        return self._read(None, query)

    def list_for_customer(self, customer_id: str) -> list[Payment]:
        return self._read(None, lambda s: _customer_payments(s, customer_id))

    def list_with_references(self) -> list[Payment]:
        return self._read(None, _referenced_payments)


class _SqlLedger(_SqlBase):
    def commit(
        self,
        plan: AllocationPlan,
        guard: CommitGuard,
        movements: Sequence[CashMovement] = (),
    ) -> None:
        def write(session: Session) -> None:
            _lock_guards(
                session,
                guard.customer_id,
                [LedgerGuardModel.customer_key(guard.customer_id)]
                + [LedgerGuardModel.reference_key(ref) for ref in guard.references],
            )
            current = snapshot_fingerprint(
                _customer_invoices(session, guard.customer_id),
                _customer_payments(session, guard.customer_id),
            )
            if current != guard.snapshot:
                raise ConcurrentModificationError(guard.customer_id, "customer ledger changed")

            if guard.references:
                taken = reference_index(
                    _referenced_payments(session, guard.references), guard.include_pending,
                )
                for ref in sorted(guard.references):
                    if ref in taken:
                        raise DuplicateReferenceError(ref, taken[ref])

            session.add_all(PaymentModel.from_dto(p) for p in plan.payments)
            session.add_all(CashMovementModel.from_dto(m) for m in movements)
            session.flush()

        self._read(plan.batch_id, write)
        logger.debug("sql_batch_committed", extra={
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
        batch_id = updated[0].batch_id if updated else None

        def write(session: Session) -> None:
            ref = normalize_reference(reference)
            customers = sorted({p.customer_id for p in updated})
            keys = [LedgerGuardModel.customer_key(c) for c in customers]
            if ref is not None:
                keys.append(LedgerGuardModel.reference_key(ref))
            _lock_guards(session, customers[0] if customers else "", keys)

            models: list[PaymentModel] = []
            for payment in updated:
                model = session.get(PaymentModel, payment.id)
                if model is None:
                    raise PersistenceFailureError(payment.batch_id, f"payment {payment.id} vanished")
                if model.status != expected.value:
                    raise InvalidStatusTransitionError(payment.id, model.status, payment.status.value)
                models.append(model)

            if ref is not None:
                own_ids = {p.id for p in updated}
                others = [p for p in _referenced_payments(session, {ref}) if p.id not in own_ids]
                taken = reference_index(others)
                if ref in taken:
                    raise DuplicateReferenceError(ref, taken[ref])

            for model, payment in zip(models, updated):
                model.status = payment.status.value
                model.status_changed_at = payment.status_changed_at
                model.status_changed_by = payment.status_changed_by
            session.add_all(CashMovementModel.from_dto(m) for m in movements)
            session.flush()

        self._read(batch_id, write)

    def list_movements(self, account: SettlementAccount | None = None) -> list[CashMovement]:
        def query(session: Session) -> list[CashMovement]:
            stmt = select(CashMovementModel).order_by(CashMovementModel.created_at, CashMovementModel.id)
            if account is not None:
                stmt = stmt.where(CashMovementModel.account == account.value)
            return [m.to_dto() for m in session.execute(stmt).scalars()]

        return self._read(None, query)


def _lock_guards(session: Session, customer_id: str, keys: Iterable[str]) -> None:
    """
    Lock the guard rows for ``keys``, creating them on first use.

    Keys are taken in sorted order so two writers never wait on each other
    in opposite orders.  A guard row created by a concurrent writer first
    surfaces as ConcurrentModificationError.
    """
    for key in sorted(set(keys)):
        row = session.execute(
            select(LedgerGuardModel).where(LedgerGuardModel.id == key).with_for_update()
        ).scalar_one_or_none()
        if row is not None:
            row.version += 1
            continue
        session.add(LedgerGuardModel(id=key, version=1))
        try:
            session.flush()
        except IntegrityError as exc:
            raise ConcurrentModificationError(customer_id, f"guard {key} taken concurrently") from exc
    session.flush()


def _customer_invoices(session: Session, customer_id: str) -> list[Invoice]:
    stmt = select(InvoiceModel).where(InvoiceModel.customer_id == customer_id).order_by(InvoiceModel.id)
    return [m.to_dto() for m in session.execute(stmt).scalars()]


def _customer_payments(session: Session, customer_id: str) -> list[Payment]:
    stmt = select(PaymentModel).where(PaymentModel.customer_id == customer_id).order_by(PaymentModel.id)
    return [m.to_dto() for m in session.execute(stmt).scalars()]


def _referenced_payments(session: Session, references=None) -> list[Payment]:
    stmt = select(PaymentModel).where(
        and_(PaymentModel.reference.is_not(None), PaymentModel.method.in_(_TRANSFER_METHODS))
    )
    if references is not None:
        wanted = sorted({ref for ref in map(normalize_reference, references) if ref is not None})
        stmt = stmt.where(func.trim(PaymentModel.reference).in_(wanted))
    stmt = stmt.order_by(PaymentModel.id)
    return [m.to_dto() for m in session.execute(stmt).scalars()]


class SqlPaymentStore:
    """
    PaymentStore over a SQLAlchemy engine.

    Usage:
        engine = init_engine_from_url("sqlite:///:memory:")
        store = SqlPaymentStore(engine)
        store.create_schema()
    """

    def __init__(self, engine: Engine, settlement_currency: str = "USD"):
        enable_sqlite_write_locks(engine)
        self._engine = engine
        self._factory = sessionmaker(bind=engine, expire_on_commit=False)
        self.rates = _SqlRates(self._factory, settlement_currency.upper())
        self.invoices = _SqlInvoices(self._factory)
        self.payments = _SqlPayments(self._factory)
        self.ledger = _SqlLedger(self._factory)
        self._settlement = settlement_currency.upper()

    def create_schema(self) -> None:
        create_tables(self._engine)

    def add_invoice(self, invoice: Invoice) -> None:
        try:
            with session_scope(self._factory) as session:
                session.add(InvoiceModel.from_dto(invoice))
        except SQLAlchemyError as exc:
            raise PersistenceFailureError(None, str(exc)) from exc

    def add_payment(self, payment: Payment) -> None:
        """Seed a historical payment (imports, fixtures)."""
        try:
            with session_scope(self._factory) as session:
                session.add(PaymentModel.from_dto(payment))
        except SQLAlchemyError as exc:
            raise PersistenceFailureError(payment.batch_id, str(exc)) from exc

    def add_exchange_rate(self, currency: str, effective: date, rate: Decimal, source: str = "manual") -> None:
        if rate <= 0:
            raise ValueError(f"Exchange rate must be positive: {rate}")
        try:
            with session_scope(self._factory) as session:
                session.add(ExchangeRateModel(
                    id=f"{self._settlement}-{currency.upper()}-{effective.isoformat()}",
                    settlement_currency=self._settlement,
                    local_currency=currency.upper(),
                    effective_date=effective,
                    rate=rate,
                    source=source,
                ))
        except SQLAlchemyError as exc:
            raise PersistenceFailureError(None, str(exc)) from exc
