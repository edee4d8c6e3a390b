"""
Module: bakery_engines.currency
Responsibility:
    Convert incoming payment amounts into the settlement currency using a
    date-indexed exchange-rate table.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import bakery_kernel domain values and exceptions.

Invariants enforced:
    - Settlement-currency amounts pass through unchanged, with no rate.
    - A rate is never taken from after the payment date: the lookup picks
      the most recent rate effective on or before it.
    - A manually entered rate overrides the lookup and must be positive.
    - settlement = amount / rate, rounded half-up to the settlement
      currency's minor unit, so settlement * rate reproduces the input
      within one settlement minor unit.

Failure modes:
    - NoExchangeRateAvailableError when no rate exists on or before the date.
    - InvalidSubPaymentError for a non-positive manual rate or an amount in
      a currency that is neither settlement nor convertible.

Usage:
    from bakery_engines.currency import CurrencyNormalizer, RateTable

    rates = RateTable.from_entries([("VES", date(2024, 3, 1), Decimal("36.50"))])
    normalizer = CurrencyNormalizer(Currency("USD"), rates)
    normalizer.normalize(Money.of("365.00", "VES"), date(2024, 3, 4)).settlement
    # Money(Decimal('10.00'), Currency('USD'))
"""

from __future__ import annotations

import bisect
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Protocol

from bakery_engines.tracer import traced_engine
from bakery_kernel.domain.models import NormalizedSubPayment, SubPayment
from bakery_kernel.domain.values import Currency, ExchangeRate, Money
from bakery_kernel.exceptions import InvalidSubPaymentError, NoExchangeRateAvailableError
from bakery_kernel.logging_config import get_logger

logger = get_logger("engines.currency")


class RateSource(Protocol):
    """Anything that can answer "which rate applied on this day"."""

    def rate_on_or_before(self, currency: str, on: date) -> Decimal | None: ...


@dataclass(frozen=True)
class NormalizedAmount:
    """Settlement value of one amount, plus the rate used (None when unconverted)."""

    settlement: Money
    rate: Decimal | None = None


@dataclass(frozen=True)
class RateTable:
    """
    Immutable date-indexed rate table.

    Contract:
        Maps a local currency code to (effective_date, rate) pairs sorted by
        date. Rates are local units per settlement unit.
    Guarantees:
        - rate_on_or_before() returns the exact-date rate when present,
          otherwise the most recent earlier one, otherwise None.
        - Non-positive rates are rejected at construction.
    """

    _entries: dict[str, tuple[tuple[date, Decimal], ...]] = field(default_factory=dict)

    @classmethod
    def from_entries(cls, entries: Iterable[tuple[str, date, Decimal]]) -> RateTable:
        by_currency: dict[str, dict[date, Decimal]] = {}
        for currency, effective, rate in entries:
            rate = rate if isinstance(rate, Decimal) else Decimal(str(rate))
            if rate <= 0:
                raise ValueError(f"Exchange rate must be positive: {rate}")
            by_currency.setdefault(currency.upper(), {})[effective] = rate
        return cls({
            code: tuple(sorted(days.items()))
            for code, days in by_currency.items()
        })

    def rate_on_or_before(self, currency: str, on: date) -> Decimal | None:
        series = self._entries.get(currency.upper(), ())
        if not series:
            return None
        dates = [d for d, _ in series]
        pos = bisect.bisect_right(dates, on)
        if pos == 0:
            return None
        return series[pos - 1][1]


class CurrencyNormalizer:
    """
    Normalize payment amounts into the settlement currency.

    Contract:
        Pure function of (amount, currency, date, rate table).
    Non-goals:
        - Does not fetch rates; the rate source is supplied by the caller.
        - Does not triangulate between two non-settlement currencies.
    """

    def __init__(self, settlement_currency: Currency | str, rates: RateSource):
        if isinstance(settlement_currency, str):
            settlement_currency = Currency(settlement_currency)
        self._settlement = settlement_currency
        self._rates = rates

    @property
    def settlement_currency(self) -> Currency:
        return self._settlement

    def normalize(
        self,
        amount: Money,
        on_date: date,
        manual_rate: Decimal | None = None,
        sub_payment_index: int | None = None,
    ) -> NormalizedAmount:
        """
        Return the settlement value of ``amount`` on ``on_date``.

        Raises:
            NoExchangeRateAvailableError: No rate on or before ``on_date``.
            InvalidSubPaymentError: ``manual_rate`` is not positive.
        """
        if amount.currency == self._settlement:
            return NormalizedAmount(settlement=amount, rate=None)

        if manual_rate is not None:
            if manual_rate <= 0:
                raise InvalidSubPaymentError(
                    sub_payment_index if sub_payment_index is not None else 0,
                    f"manual exchange rate must be positive, got {manual_rate}",
                )
            rate = manual_rate
        else:
            rate = self._rates.rate_on_or_before(amount.currency.code, on_date)
            if rate is None or rate <= 0:
                logger.warning("exchange_rate_missing", extra={
                    "currency": amount.currency.code,
                    "on_date": on_date.isoformat(),
                    "sub_payment_index": sub_payment_index,
                })
                raise NoExchangeRateAvailableError(
                    amount.currency.code, on_date.isoformat(), sub_payment_index,
                )

        quote = ExchangeRate(self._settlement, amount.currency, rate)
        return NormalizedAmount(settlement=quote.to_settlement(amount), rate=rate)

    @traced_engine("currency_normalizer", "1.0", fingerprint_fields=("sub_payments",))
    def normalize_batch(
        self,
        *,
        sub_payments: Sequence[SubPayment],
    ) -> tuple[NormalizedSubPayment, ...]:
        """Normalize every sub-payment in batch order. Fails on the first refusal."""
        normalized: list[NormalizedSubPayment] = []
        for index, sub in enumerate(sub_payments):
            result = self.normalize(
                sub.amount, sub.payment_date, sub.exchange_rate, sub_payment_index=index,
            )
            normalized.append(NormalizedSubPayment(
                index=index,
                sub_payment=sub,
                settlement=result.settlement,
                rate=result.rate,
            ))
        return tuple(normalized)


def to_local(settlement: Money, rate: Decimal, local_currency: Currency | str) -> Money:
    """Express a settlement amount in local currency at ``rate``."""
    if isinstance(local_currency, str):
        local_currency = Currency(local_currency)
    return ExchangeRate(settlement.currency, local_currency, rate).to_local(settlement)
