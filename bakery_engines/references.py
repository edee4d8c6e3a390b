"""
Module: bakery_engines.references
Responsibility:
    Gate an incoming payment batch before anything is converted or
    allocated: amounts must be positive, transfers must carry a well-formed
    bank reference, and no reference may be reused.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The caller supplies the payment history to check against.

Invariants enforced:
    - All-or-nothing: the first violation rejects the whole batch.
    - A reference held by a verified transfer can never be used again.
    - A reference may appear at most once within a batch.
    - Cash and account-credit lines are exempt from the format rule.
    - Cash lines are in the currency of the till they land in: CASH_USD in
      the settlement currency, CASH_LOCAL in the local currency.

Failure modes:
    - InvalidSubPaymentError: non-positive amount, an ACCOUNT_CREDIT line,
      or a cash line in the wrong currency.
    - InvalidReferenceFormatError: transfer reference is not N digits.
    - DuplicateReferenceError: reference already on a verified transfer.
    - DuplicateReferenceInBatchError: reference repeated in the batch.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import NoReturn

from bakery_engines.tracer import traced_engine
from bakery_kernel.domain.models import Payment, SubPayment
from bakery_kernel.domain.payment_method import PaymentMethod, PaymentStatus
from bakery_kernel.exceptions import (
    DuplicateReferenceError,
    DuplicateReferenceInBatchError,
    InvalidReferenceFormatError,
    InvalidSubPaymentError,
)
from bakery_kernel.logging_config import get_logger

logger = get_logger("engines.references")

DEFAULT_REFERENCE_DIGITS = 6


def normalize_reference(reference: str | None) -> str | None:
    """Strip surrounding whitespace; empty means absent."""
    if reference is None:
        return None
    stripped = reference.strip()
    return stripped or None


def is_well_formed(reference: str | None, digits: int = DEFAULT_REFERENCE_DIGITS) -> bool:
    ref = normalize_reference(reference)
    return ref is not None and re.fullmatch(rf"[0-9]{{{digits}}}", ref) is not None


def reference_index(
    payments: Iterable[Payment],
    include_pending: bool = False,
) -> dict[str, str]:
    """
    Map reference -> payment id over transfer payments that block reuse.

    Verified transfers always block. Pending transfers block only when
    ``include_pending`` is set. Rejected transfers never block.
    """
    blocking = {PaymentStatus.VERIFIED}
    if include_pending:
        blocking.add(PaymentStatus.PENDING_VERIFICATION)
    index: dict[str, str] = {}
    for payment in payments:
        ref = normalize_reference(payment.reference)
        if ref is None or not payment.method.is_transfer:
            continue
        if payment.status in blocking:
            index.setdefault(ref, payment.id)
    return index


class ReferenceValidator:
    """
    Validate a batch of sub-payments against format and duplicate rules.

    Contract:
        validate_batch() returns None when the batch is acceptable and
        raises a BatchRejectedError subclass naming the offending
        sub-payment index and rule otherwise.
    Non-goals:
        - Does not repair references (no padding, no digit extraction).
        - Does not look at exchange rates or invoices.
    """

    def __init__(
        self,
        reference_digits: int = DEFAULT_REFERENCE_DIGITS,
        reject_pending_duplicates: bool = False,
        settlement_currency: str = "USD",
        local_currency: str = "VES",
    ):
        if reference_digits <= 0:
            raise ValueError(f"reference_digits must be positive, got {reference_digits}")
        self._digits = reference_digits
        self._include_pending = reject_pending_duplicates
        self._cash_currency = {
            PaymentMethod.CASH_USD: settlement_currency.upper(),
            PaymentMethod.CASH_LOCAL: local_currency.upper(),
        }

    @property
    def reference_digits(self) -> int:
        return self._digits

    @traced_engine("reference_validator", "1.0", fingerprint_fields=("sub_payments",))
    def validate_batch(
        self,
        *,
        sub_payments: Sequence[SubPayment],
        existing_payments: Iterable[Payment],
    ) -> None:
        """
        Check every sub-payment in order.

        Raises:
            BatchRejectedError subclass on the first violation.
        """
        history = reference_index(existing_payments, self._include_pending)
        seen: dict[str, int] = {}

        for index, sub in enumerate(sub_payments):
            if not sub.amount.is_positive:
                self._reject(InvalidSubPaymentError(
                    index, f"amount must be positive, got {sub.amount}",
                ))

            if sub.method is PaymentMethod.ACCOUNT_CREDIT:
                self._reject(InvalidSubPaymentError(
                    index, "account credit is applied with apply_credit, not as a sub-payment",
                ))

            expected = self._cash_currency.get(sub.method)
            if expected is not None and sub.amount.currency.code != expected:
                self._reject(InvalidSubPaymentError(
                    index, f"{sub.method.value} must be paid in {expected}, got {sub.amount.currency.code}",
                ))

            ref = normalize_reference(sub.reference)

            if sub.method.requires_reference and not is_well_formed(ref, self._digits):
                self._reject(InvalidReferenceFormatError(index, sub.reference, self._digits))

            if ref is None:
                continue

            if ref in history:
                self._reject(DuplicateReferenceError(ref, history[ref], index))

            if ref in seen:
                self._reject(DuplicateReferenceInBatchError(ref, index, seen[ref]))
            seen[ref] = index

        logger.debug("reference_validation_passed", extra={
            "sub_payment_count": len(sub_payments),
            "reference_count": len(seen),
        })

    def check_reference_free(
        self,
        reference: str | None,
        existing_payments: Iterable[Payment],
        exclude_payment_id: str | None = None,
    ) -> None:
        """
        Raise DuplicateReferenceError if a verified transfer already holds ``reference``.

        Used when a pending transfer is verified later on.
        """
        ref = normalize_reference(reference)
        if ref is None:
            return
        for payment in existing_payments:
            if payment.id == exclude_payment_id:
                continue
            if (
                payment.method.is_transfer
                and payment.status is PaymentStatus.VERIFIED
                and normalize_reference(payment.reference) == ref
            ):
                self._reject(DuplicateReferenceError(ref, payment.id))

    @staticmethod
    def _reject(error: Exception) -> NoReturn:
        logger.warning("batch_rule_violated", extra={
            "code": getattr(error, "code", None),
            "rule": getattr(error, "rule", None),
            "sub_payment_index": getattr(error, "sub_payment_index", None),
        })
        raise error
