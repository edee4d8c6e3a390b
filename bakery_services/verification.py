"""
bakery_services.verification -- Pending transfer verification.

Responsibility:
    Moves payments created as PENDING_VERIFICATION to VERIFIED or
    REJECTED once the operator has checked the bank statement.  A transfer
    split across several invoices is one bank movement, so every fragment
    of the same batch with the same reference changes status together.

Architecture position:
    Services -- orchestration over the reference engine and the
    LedgerWriter.

Invariants enforced:
    - Only PENDING_VERIFICATION -> VERIFIED | REJECTED is allowed.
    - A reference is held by at most one verified transfer; verifying a
      second holder raises DuplicateReferenceError.
    - Status is the only payment field that changes.
    - Verification writes the cash movement in the same store call.

Failure modes:
    - PaymentNotFoundError for an unknown payment id.
    - InvalidStatusTransitionError if the payment is not pending (also
      raised by the writer when another operator got there first).
    - DuplicateReferenceError as above.
    - PersistenceFailureError from the store.
"""

from __future__ import annotations

from bakery_config.schema import PaymentEngineConfig
from bakery_engines.references import ReferenceValidator, normalize_reference
from bakery_kernel.domain.clock import Clock, SystemClock
from bakery_kernel.domain.models import Payment
from bakery_kernel.domain.payment_method import PaymentStatus
from bakery_kernel.exceptions import InvalidStatusTransitionError, PaymentNotFoundError
from bakery_kernel.logging_config import LogContext, get_logger
from bakery_services.movements import movements_for
from bakery_services.repositories import (
    ExchangeRateLookup,
    LedgerWriter,
    PaymentRepository,
    PaymentStore,
)

logger = get_logger("services.verification")


class PaymentVerificationService:
    """
    Confirm or refuse pending payments.

    Contract:
        verify_payment() and reject_payment() return the updated payment
        records, the requested one first, followed by its siblings.
    """

    def __init__(
        self,
        rates: ExchangeRateLookup,
        payments: PaymentRepository,
        ledger: LedgerWriter,
        clock: Clock | None = None,
        config: PaymentEngineConfig | None = None,
    ):
        self._rates = rates
        self._payments = payments
        self._ledger = ledger
        self._clock = clock or SystemClock()
        self._config = config or PaymentEngineConfig()
        self._validator = ReferenceValidator(self._config.reference_digits)

    @classmethod
    def from_store(cls, store: PaymentStore, **kwargs) -> PaymentVerificationService:
        return cls(store.rates, store.payments, store.ledger, **kwargs)

    def verify_payment(self, payment_id: str, actor: str | None = None) -> tuple[Payment, ...]:
        """
        Mark a pending payment (and its sibling fragments) VERIFIED.

        Raises:
            PaymentNotFoundError, InvalidStatusTransitionError,
            DuplicateReferenceError, PersistenceFailureError.
        """
        actor = actor or self._config.default_actor
        payment = self._pending(payment_id, PaymentStatus.VERIFIED)

        with LogContext.bind(batch_id=payment.batch_id, customer_id=payment.customer_id, actor_id=actor):
            group = self._siblings(payment)
            self._validator.check_reference_free(
                payment.reference,
                [p for p in self._payments.list_with_references() if p.id not in {g.id for g in group}],
            )

            now = self._clock.now()
            updated = tuple(p.with_status(PaymentStatus.VERIFIED, now, actor) for p in group)
            movements = movements_for(updated, self._rates, self._config.local_currency)
            self._ledger.record_status_change(
                updated,
                PaymentStatus.PENDING_VERIFICATION,
                movements,
                reference=payment.reference,
            )

            logger.info("payment_verified", extra={
                "payment_id": payment_id,
                "reference": payment.reference,
                "fragment_count": len(updated),
                "movement_count": len(movements),
            })
            return updated

    def reject_payment(
        self,
        payment_id: str,
        actor: str | None = None,
        reason: str = "",
    ) -> tuple[Payment, ...]:
        """
        Mark a pending payment (and its sibling fragments) REJECTED.

        A rejected payment no longer counts toward any balance, so the
        invoices it was applied to reopen.
        """
        actor = actor or self._config.default_actor
        payment = self._pending(payment_id, PaymentStatus.REJECTED)

        with LogContext.bind(batch_id=payment.batch_id, customer_id=payment.customer_id, actor_id=actor):
            now = self._clock.now()
            updated = tuple(
                p.with_status(PaymentStatus.REJECTED, now, actor) for p in self._siblings(payment)
            )
            self._ledger.record_status_change(updated, PaymentStatus.PENDING_VERIFICATION)

            logger.info("payment_rejected", extra={
                "payment_id": payment_id,
                "reference": payment.reference,
                "fragment_count": len(updated),
                "reason": reason,
            })
            return updated

    def pending_payments(self, customer_id: str) -> list[Payment]:
        """The customer's payments still awaiting verification, oldest first."""
        pending = [
            p for p in self._payments.list_for_customer(customer_id)
            if p.status is PaymentStatus.PENDING_VERIFICATION
        ]
        return sorted(pending, key=lambda p: (p.payment_date, p.id))

    def _pending(self, payment_id: str, to_status: PaymentStatus) -> Payment:
        payment = self._payments.get(payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        if payment.status is not PaymentStatus.PENDING_VERIFICATION:
            logger.warning("status_transition_refused", extra={
                "payment_id": payment_id,
                "from_status": payment.status.value,
                "to_status": to_status.value,
            })
            raise InvalidStatusTransitionError(payment_id, payment.status.value, to_status.value)
        return payment

    def _siblings(self, payment: Payment) -> tuple[Payment, ...]:
        """``payment`` plus pending fragments of the same transfer."""
        ref = normalize_reference(payment.reference)
        if payment.batch_id is None or ref is None:
            return (payment,)
        others = sorted(
            (
                p for p in self._payments.list_for_customer(payment.customer_id)
                if p.id != payment.id
                and p.batch_id == payment.batch_id
                and normalize_reference(p.reference) == ref
                and p.status is PaymentStatus.PENDING_VERIFICATION
            ),
            key=lambda p: p.id,
        )
        return (payment, *others)
