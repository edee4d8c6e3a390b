"""
Module: bakery_engines.allocation
Responsibility:
    Turn a validated, normalized payment batch into the payment records
    that settle a customer's invoices: existing credit first, then cash in
    FIFO order, with any leftover cash kept as customer credit.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import bakery_kernel domain values, sibling engines and the
    tracer.  Dates, timestamps and the batch id are passed in.

Invariants enforced:
    - Conservation: cash applied to invoices + excess == total cash, to the
      minor unit.  Checked before the plan is returned.
    - Credit first: usable credit is consumed before any cash reaches an
      invoice, over the same target order.
    - FIFO: cascade targets are ordered by issue date, then id.
    - No dust: when an invoice's need and a payment's remainder are within
      tolerance, the fragment takes the whole remainder.
    - Fragment input amounts of one sub-payment sum exactly to its input.

Failure modes:
    - NothingToApplyError when cash plus credit is within tolerance of zero,
      or when no record would be produced.
    - InvoiceNotFoundOrForeignCustomerError for an unknown or foreign
      specific-invoice target.

Usage:
    engine = PaymentAllocationEngine()
    plan = engine.allocate(
        batch_id="PAY-P-20240301-0001",
        customer_id="cust-1",
        sub_payments=normalized,
        target=InvoiceTarget.cascade(),
        invoices=invoices,
        payments=payments,
        usable_credit=Money.of("20.00", "USD"),
        apply_credit=True,
        as_of=date(2024, 3, 1),
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from bakery_engines.invoice_status import invoice_balance
from bakery_engines.references import normalize_reference
from bakery_engines.tracer import traced_engine
from bakery_kernel.domain.models import (
    AllocationPlan,
    Invoice,
    InvoiceTarget,
    NormalizedSubPayment,
    Payment,
    PaymentSource,
    TargetKind,
)
from bakery_kernel.domain.payment_method import PaymentMethod, PaymentStatus
from bakery_kernel.domain.tolerance import DEFAULT_TOLERANCE, Tolerance
from bakery_kernel.domain.values import Money, sum_money
from bakery_kernel.exceptions import (
    InvoiceNotFoundOrForeignCustomerError,
    NothingToApplyError,
)
from bakery_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")

CREDIT_NOTE = "Customer credit applied"
EXCESS_NOTE = "Excess payment held as customer credit"


@dataclass(frozen=True)
class _Piece:
    """One slice of a sub-payment: to an invoice, or excess when invoice_id is None."""

    settlement: Money
    invoice_id: str | None


def _apportion_inputs(input_amount: Money, settlement: Money, pieces: Sequence[_Piece]) -> list[Money]:
    """
    Split ``input_amount`` across pieces in proportion to their settlement value.

    The last piece absorbs the rounding remainder so the parts sum exactly.
    """
    if input_amount.currency == settlement.currency:
        return [piece.settlement for piece in pieces]

    parts: list[Money] = []
    allocated = 0
    for i, piece in enumerate(pieces):
        if i == len(pieces) - 1:
            minor = input_amount.minor_units - allocated
        else:
            ratio = Decimal(piece.settlement.minor_units) / Decimal(settlement.minor_units)
            minor = int(
                (Decimal(input_amount.minor_units) * ratio).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            )
            allocated += minor
        parts.append(Money.from_minor(minor, input_amount.currency))
    return parts


class PaymentAllocationEngine:
    """
    Allocate a payment batch across a customer's outstanding invoices.

    Contract:
        Pure and deterministic: identical inputs produce identical plans,
        including record ids.
    Guarantees:
        - Every record carries the batch id; ids are ``<batch_id>-NNN``.
        - Credit fragments are ACCOUNT_CREDIT, VERIFIED, INVOICE_APPLICATION.
        - Cash fragments keep their sub-payment's method, reference, rate
          and initial status.
        - Leftover cash of each sub-payment becomes one BALANCE_ADJUSTMENT.
        - Unused credit is not recorded; it simply remains credit.
    Non-goals:
        - Does not validate references or convert currencies.
        - Does not persist the plan.
    """

    def __init__(self, tolerance: Tolerance = DEFAULT_TOLERANCE):
        self._tolerance = tolerance

    @traced_engine(
        "payment_allocation", "1.0",
        fingerprint_fields=("batch_id", "customer_id", "sub_payments", "target", "usable_credit", "apply_credit"),
    )
    def allocate(
        self,
        *,
        batch_id: str,
        customer_id: str,
        sub_payments: Sequence[NormalizedSubPayment],
        target: InvoiceTarget,
        invoices: Sequence[Invoice],
        payments: Sequence[Payment],
        usable_credit: Money,
        apply_credit: bool,
        as_of: date,
        created_at: datetime | None = None,
        notes: str = "",
    ) -> AllocationPlan:
        """
        Compute the allocation plan for one batch.

        Raises:
            NothingToApplyError: Nothing to apply, or nothing would be recorded.
            InvoiceNotFoundOrForeignCustomerError: Bad specific-invoice target.
        """
        tol = self._tolerance
        currency = usable_credit.currency

        cash_subs = [s for s in sub_payments if s.sub_payment.method is not PaymentMethod.ACCOUNT_CREDIT]
        total_cash = sum_money((s.settlement for s in cash_subs), currency)
        credit_to_apply = (
            usable_credit if apply_credit and tol.is_positive(usable_credit) else Money.zero(currency)
        )
        total = total_cash + credit_to_apply

        logger.info("allocation_started", extra={
            "batch_id": batch_id,
            "customer_id": customer_id,
            "target": target.kind.value,
            "sub_payment_count": len(cash_subs),
            "total_cash": str(total_cash.amount),
            "credit_to_apply": str(credit_to_apply.amount),
        })

        if not tol.is_positive(total):
            logger.warning("allocation_nothing_to_apply", extra={
                "batch_id": batch_id, "customer_id": customer_id,
            })
            raise NothingToApplyError(customer_id, str(total))

        settled_payments = [p for p in payments if p.customer_id == customer_id]
        targets = self._target_invoices(customer_id, target, invoices, settled_payments)
        needs: dict[str, Money] = {
            inv.id: invoice_balance(inv, settled_payments) for inv in targets
        }

        records: list[Payment] = []

        def next_id() -> str:
            return f"{batch_id}-{len(records) + 1:03d}"

        # Credit pass
        credit_left = credit_to_apply
        for inv in targets:
            if not tol.is_positive(credit_left):
                break
            need = needs[inv.id]
            if not tol.is_positive(need):
                continue
            take = credit_left if tol.compare(need, credit_left) >= 0 else need
            records.append(Payment(
                id=next_id(),
                customer_id=customer_id,
                payment_date=as_of,
                input_amount=take,
                settlement_amount=take,
                method=PaymentMethod.ACCOUNT_CREDIT,
                status=PaymentStatus.VERIFIED,
                invoice_id=inv.id,
                source=PaymentSource.INVOICE_APPLICATION,
                batch_id=batch_id,
                notes=self._join_notes(notes, CREDIT_NOTE),
                created_at=created_at,
            ))
            needs[inv.id] = need - take
            credit_left = credit_left - take
        credit_applied = credit_to_apply - credit_left

        # Cash pass
        cash_applied = Money.zero(currency)
        excess_total = Money.zero(currency)
        for normalized in cash_subs:
            pieces: list[_Piece] = []
            remaining = normalized.settlement
            for inv in targets:
                if not tol.is_positive(remaining):
                    break
                need = needs[inv.id]
                if not tol.is_positive(need):
                    continue
                take = remaining if tol.compare(need, remaining) >= 0 else need
                pieces.append(_Piece(take, inv.id))
                needs[inv.id] = need - take
                remaining = remaining - take
            if remaining.is_positive:
                pieces.append(_Piece(remaining, None))

            records.extend(self._cash_records(
                normalized, pieces, batch_id, customer_id, notes, created_at, next_index=len(records) + 1,
            ))
            for piece in pieces:
                if piece.invoice_id is None:
                    excess_total = excess_total + piece.settlement
                else:
                    cash_applied = cash_applied + piece.settlement

        # INVARIANT: conservation of cash
        assert cash_applied + excess_total == total_cash, (
            f"cash conservation violated: {cash_applied} + {excess_total} != {total_cash}"
        )

        if not records:
            logger.warning("allocation_produced_no_records", extra={
                "batch_id": batch_id, "customer_id": customer_id,
            })
            raise NothingToApplyError(customer_id, str(total))

        plan = AllocationPlan(
            batch_id=batch_id,
            customer_id=customer_id,
            payments=tuple(records),
            cash_total=total_cash,
            credit_applied=credit_applied,
            excess_total=excess_total,
            applied_total=credit_applied + cash_applied,
        )

        logger.info("allocation_completed", extra={
            "batch_id": batch_id,
            "customer_id": customer_id,
            "record_count": len(records),
            "credit_applied": str(credit_applied.amount),
            "cash_applied": str(cash_applied.amount),
            "excess_total": str(excess_total.amount),
            "invoices_touched": len(plan.invoice_ids()),
        })
        return plan

    def _target_invoices(
        self,
        customer_id: str,
        target: InvoiceTarget,
        invoices: Sequence[Invoice],
        payments: Sequence[Payment],
    ) -> list[Invoice]:
        """Invoices that may receive money, in application order."""
        tol = self._tolerance
        match target.kind:
            case TargetKind.DEBT_ADJUSTMENT:
                return []
            case TargetKind.INVOICE:
                invoice = next(
                    (i for i in invoices if i.id == target.invoice_id and i.customer_id == customer_id),
                    None,
                )
                if invoice is None:
                    raise InvoiceNotFoundOrForeignCustomerError(str(target.invoice_id), customer_id)
                if tol.is_positive(invoice_balance(invoice, payments)):
                    return [invoice]
                logger.info("allocation_target_settled", extra={"invoice_id": invoice.id})
                return []
            case TargetKind.CASCADE:
                open_invoices = [
                    i for i in invoices
                    if i.customer_id == customer_id
                    and tol.is_positive(invoice_balance(i, payments))
                ]
                return sorted(open_invoices, key=lambda i: (i.issue_date, i.id))
            case _:
                raise ValueError(f"Unknown invoice target: {target.kind}")

    def _cash_records(
        self,
        normalized: NormalizedSubPayment,
        pieces: Sequence[_Piece],
        batch_id: str,
        customer_id: str,
        notes: str,
        created_at: datetime | None,
        next_index: int,
    ) -> list[Payment]:
        sub = normalized.sub_payment
        inputs = _apportion_inputs(sub.amount, normalized.settlement, pieces)
        records: list[Payment] = []
        for offset, (piece, input_amount) in enumerate(zip(pieces, inputs)):
            is_excess = piece.invoice_id is None
            records.append(Payment(
                id=f"{batch_id}-{next_index + offset:03d}",
                customer_id=customer_id,
                payment_date=sub.payment_date,
                input_amount=input_amount,
                settlement_amount=piece.settlement,
                method=sub.method,
                status=sub.method.initial_status,
                exchange_rate=normalized.rate,
                reference=normalize_reference(sub.reference),
                invoice_id=piece.invoice_id,
                source=PaymentSource.BALANCE_ADJUSTMENT if is_excess else PaymentSource.INVOICE_APPLICATION,
                batch_id=batch_id,
                notes=self._join_notes(notes, sub.notes, EXCESS_NOTE if is_excess else ""),
                created_at=created_at,
            ))
        return records

    @staticmethod
    def _join_notes(*parts: str) -> str:
        return " ".join(p.strip() for p in parts if p and p.strip())


_default_engine = PaymentAllocationEngine()


def allocate(**kwargs) -> AllocationPlan:
    """Allocate with the default tolerance. See PaymentAllocationEngine.allocate."""
    return _default_engine.allocate(**kwargs)
