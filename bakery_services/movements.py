"""
Cash movements for verified payments.

Both the batch service (cash lands at commit) and the verification
service (transfers land when confirmed) price movements here, so the two
paths agree on accounts and amounts.
"""

from __future__ import annotations

from collections.abc import Iterable

from bakery_engines.settlement import cash_movement_for, settlement_account_for
from bakery_kernel.domain.models import CashMovement, Payment
from bakery_kernel.domain.payment_method import SettlementAccount
from bakery_kernel.logging_config import get_logger
from bakery_services.repositories import ExchangeRateLookup

logger = get_logger("services.movements")


def movements_for(
    payments: Iterable[Payment],
    rates: ExchangeRateLookup,
    local_currency: str,
) -> list[CashMovement]:
    """
    One movement per verified, non-credit payment.

    A settlement-currency transfer landing in a local account is priced at
    the rate on or before its payment date.  Without such a rate the
    movement is skipped and logged; the payment itself still stands.
    """
    movements: list[CashMovement] = []
    for payment in payments:
        fallback = None
        account = settlement_account_for(payment.method)
        if (
            payment.is_verified
            and account is not None
            and account is not SettlementAccount.USD_CASH
            and payment.exchange_rate is None
            and payment.input_amount.currency.code != local_currency
        ):
            fallback = rates.rate_on_or_before(local_currency, payment.payment_date)
        try:
            movement = cash_movement_for(payment, local_currency, fallback_rate=fallback)
        except ValueError:
            logger.warning("cash_movement_unpriced", extra={
                "payment_id": payment.id,
                "account": account.value if account else None,
                "payment_date": payment.payment_date.isoformat(),
            })
            continue
        if movement is not None:
            movements.append(movement)
    return movements
