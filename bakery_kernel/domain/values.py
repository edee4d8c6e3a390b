"""
Values -- Immutable, self-validating money value objects.

Responsibility:
    Provides the value types every payment computation uses: Currency,
    Money and ExchangeRate. Money is stored as an integer count of minor
    units so sums of fragments never drift.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module. No outward dependencies except
    bakery_kernel.domain.currency (CurrencyRegistry).

Invariants enforced:
    - Amounts are integers of minor units; conversion from Decimal/str
      quantizes half-up exactly once, at construction.
    - Currency codes are validated against CurrencyRegistry at construction.
    - Arithmetic and comparison never mix currencies.
    - Exchange rates are strictly positive Decimals.

Failure modes:
    - ValueError on construction with invalid amounts, currencies, or rates
    - ValueError when arithmetic mixes different currencies
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from bakery_kernel.domain.currency import CurrencyRegistry


@dataclass(frozen=True, slots=True)
class Currency:
    """
    ISO 4217 currency code value object.

    Contract:
        Wraps a three-letter code. Validated and normalized (uppercased)
        on construction. Unknown codes are rejected immediately.

    Guarantees:
        - Immutable and hashable
        - code is always uppercase and registered in CurrencyRegistry
    """

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if self.code else ""
        if not CurrencyRegistry.is_valid(normalized):
            raise ValueError(f"Invalid ISO 4217 currency code: {self.code}")
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


def _to_minor(amount: Decimal, decimal_places: int) -> int:
    scaled = amount.scaleb(decimal_places).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(scaled)


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Contract:
        Pairs an integer count of minor units with its Currency. This is the
        canonical representation of monetary values throughout the system.

    Guarantees:
        - Immutable and hashable
        - minor_units is always an int (never float, never Decimal)
        - Arithmetic enforces the same-currency constraint
        - Scaling by a Decimal rounds half-up back to minor units

    Non-goals:
        - Does NOT perform currency conversion (use ExchangeRate)
    """

    minor_units: int
    currency: Currency

    def __post_init__(self) -> None:
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")
        if isinstance(self.minor_units, bool) or not isinstance(self.minor_units, int):
            raise ValueError(f"minor_units must be int, got {self.minor_units!r}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        """
        Build Money from a major-unit amount.

        ``Money.of("12.345", "USD")`` is 1235 cents: the amount is
        quantized half-up to the currency's minor unit.

        Raises:
            ValueError: If amount is not numeric or currency is unknown.
        """
        if isinstance(currency, str):
            currency = Currency(currency)
        if isinstance(amount, float):
            raise ValueError("Money amounts must not be floats")
        try:
            value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Invalid amount: {amount}") from e
        if not value.is_finite():
            raise ValueError(f"Invalid amount: {amount}")
        return cls(minor_units=_to_minor(value, currency.decimal_places), currency=currency)

    @classmethod
    def from_minor(cls, minor_units: int, currency: str | Currency) -> Money:
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(minor_units=minor_units, currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        """Create a zero amount in the given currency."""
        return cls.from_minor(0, currency)

    @property
    def amount(self) -> Decimal:
        """Major-unit Decimal view, e.g. Decimal('12.35')."""
        return Decimal(self.minor_units).scaleb(-self.currency.decimal_places)

    @property
    def is_zero(self) -> bool:
        return self.minor_units == 0

    @property
    def is_positive(self) -> bool:
        return self.minor_units > 0

    @property
    def is_negative(self) -> bool:
        return self.minor_units < 0

    def _check_same(self, other: Money, op: str) -> None:
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot {op} Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_same(other, "add")
        return Money(self.minor_units + other.minor_units, self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_same(other, "subtract")
        return Money(self.minor_units - other.minor_units, self.currency)

    def __neg__(self) -> Money:
        return Money(-self.minor_units, self.currency)

    def __abs__(self) -> Money:
        return Money(abs(self.minor_units), self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        """Scale by a factor, rounding half-up to minor units."""
        if isinstance(factor, int) and not isinstance(factor, bool):
            return Money(self.minor_units * factor, self.currency)
        if isinstance(factor, str):
            factor = Decimal(factor)
        if not isinstance(factor, Decimal):
            return NotImplemented
        scaled = (Decimal(self.minor_units) * factor).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return Money(int(scaled), self.currency)

    def __rmul__(self, factor: Decimal | int | str) -> Money:
        return self.__mul__(factor)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_same(other, "compare")
        return self.minor_units < other.minor_units

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_same(other, "compare")
        return self.minor_units <= other.minor_units

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_same(other, "compare")
        return self.minor_units > other.minor_units

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_same(other, "compare")
        return self.minor_units >= other.minor_units

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"


def sum_money(values, currency: str | Currency) -> Money:
    """Sum an iterable of Money, starting from zero in ``currency``."""
    total = Money.zero(currency)
    for value in values:
        total = total + value
    return total


@dataclass(frozen=True, slots=True)
class ExchangeRate:
    """
    Exchange rate quoted as local units per one settlement unit.

    Contract:
        ``ExchangeRate("USD", "VES", Decimal("36.50"))`` means 1 USD buys
        36.50 VES. to_settlement() divides, to_local() multiplies; both
        round half-up to the target currency's minor unit.

    Guarantees:
        - Immutable and hashable
        - rate is always a positive Decimal
        - settlement and local currencies are validated Currency objects
    """

    settlement_currency: Currency
    local_currency: Currency
    rate: Decimal

    def __post_init__(self) -> None:
        if isinstance(self.settlement_currency, str):
            object.__setattr__(self, "settlement_currency", Currency(self.settlement_currency))
        if isinstance(self.local_currency, str):
            object.__setattr__(self, "local_currency", Currency(self.local_currency))

        if isinstance(self.rate, float):
            raise ValueError("Exchange rates must not be floats")
        if not isinstance(self.rate, Decimal):
            try:
                object.__setattr__(self, "rate", Decimal(str(self.rate)))
            except (InvalidOperation, ValueError) as e:
                raise ValueError(f"Invalid exchange rate: {self.rate}") from e

        if not self.rate.is_finite() or self.rate <= Decimal("0"):
            raise ValueError(f"Exchange rate must be positive: {self.rate}")

    @classmethod
    def of(
        cls,
        settlement_currency: str | Currency,
        local_currency: str | Currency,
        rate: Decimal | str | int,
    ) -> ExchangeRate:
        return cls(
            settlement_currency=settlement_currency,
            local_currency=local_currency,
            rate=rate if isinstance(rate, Decimal) else Decimal(str(rate)),
        )

    def to_settlement(self, money: Money) -> Money:
        """
        Convert a local-currency amount into the settlement currency.

        Raises:
            ValueError: If money is not in the local currency.
        """
        if money.currency != self.local_currency:
            raise ValueError(
                f"Money currency {money.currency} doesn't match "
                f"rate local currency {self.local_currency}"
            )
        return Money.of(money.amount / self.rate, self.settlement_currency)

    def to_local(self, money: Money) -> Money:
        """
        Convert a settlement-currency amount into the local currency.

        Raises:
            ValueError: If money is not in the settlement currency.
        """
        if money.currency != self.settlement_currency:
            raise ValueError(
                f"Money currency {money.currency} doesn't match "
                f"rate settlement currency {self.settlement_currency}"
            )
        return Money.of(money.amount * self.rate, self.local_currency)

    @property
    def pair(self) -> tuple[str, str]:
        return (self.settlement_currency.code, self.local_currency.code)

    def __str__(self) -> str:
        return f"{self.settlement_currency}/{self.local_currency} = {self.rate}"
