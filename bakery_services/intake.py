"""
Intake of payment candidates extracted from receipt images.

The image analyzer is an external service; its output is untrusted.  This
module only reshapes it into ``SubPayment`` lines.  References are
stripped but never repaired, so a malformed one is refused later by the
reference validator like any operator-typed reference.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from bakery_engines.references import normalize_reference
from bakery_kernel.domain.models import SubPayment
from bakery_kernel.domain.payment_method import PaymentMethod
from bakery_kernel.domain.values import Money
from bakery_kernel.logging_config import get_logger

logger = get_logger("services.intake")

_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y")


@dataclass(frozen=True)
class CandidatePayment:
    """One payment the analyzer believes it found in an image."""
    amount: Decimal | None
    payment_date: str | None = None
    reference: str | None = None
    notes: str = ""


def _parse_amount(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip().replace(",", ""))
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def candidate_from_analyzer_output(data: Mapping[str, Any]) -> CandidatePayment:
    """Build a candidate from the analyzer's JSON keys."""
    reference = data.get("referenceNumber")
    return CandidatePayment(
        amount=_parse_amount(data.get("amount")),
        payment_date=data.get("date") or None,
        reference=str(reference) if reference is not None else None,
        notes=str(data.get("analysisNotes") or ""),
    )


def parse_candidate_date(value: str | None, today: date) -> date:
    """Parse YYYY-MM-DD, DD/MM/YYYY or DD-MM-YYYY; anything else is ``today``."""
    if value:
        text = value.strip()
        for fmt in _DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue
        logger.info("candidate_date_unparsed", extra={"value": text, "fallback": today.isoformat()})
    return today


def sub_payments_from_candidates(
    candidates: Iterable[CandidatePayment],
    local_currency: str,
    today: date,
) -> list[SubPayment]:
    """
    Mobile-transfer sub-payments in local currency, in candidate order.

    Candidates without an amount are skipped.
    """
    sub_payments: list[SubPayment] = []
    for position, candidate in enumerate(candidates):
        if candidate.amount is None:
            logger.warning("candidate_skipped_no_amount", extra={
                "position": position,
                "reference": candidate.reference,
            })
            continue
        sub_payments.append(SubPayment(
            amount=Money.of(candidate.amount, local_currency),
            method=PaymentMethod.MOBILE_TRANSFER,
            payment_date=parse_candidate_date(candidate.payment_date, today),
            reference=normalize_reference(candidate.reference),
            notes=candidate.notes.strip(),
        ))
    logger.debug("candidates_converted", extra={"sub_payment_count": len(sub_payments)})
    return sub_payments
