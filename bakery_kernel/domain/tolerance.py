"""
Tolerance -- the single epsilon used by every money comparison.

Balances, needs and remainders are compared against this object and
never against a literal. The default is one minor unit (0.01 USD).
"""

from dataclasses import dataclass

from bakery_kernel.domain.values import Money


@dataclass(frozen=True, slots=True)
class Tolerance:
    """
    Money comparison within ``minor_units`` of slack.

    Guarantees:
        - is_zero(m) is true iff |m| <= tolerance
        - is_positive(m) is true iff m > tolerance
        - is_settled(m) is true iff m <= tolerance (overpaid counts as settled)
        - compare() returns 0 for values within tolerance of each other
    """

    minor_units: int = 1

    def __post_init__(self) -> None:
        if self.minor_units < 0:
            raise ValueError(f"Tolerance must be non-negative: {self.minor_units}")

    def is_zero(self, value: Money) -> bool:
        return abs(value.minor_units) <= self.minor_units

    def is_positive(self, value: Money) -> bool:
        return value.minor_units > self.minor_units

    def is_negative(self, value: Money) -> bool:
        return value.minor_units < -self.minor_units

    def is_settled(self, balance: Money) -> bool:
        return balance.minor_units <= self.minor_units

    def compare(self, a: Money, b: Money) -> int:
        """Three-way compare: -1, 0 or 1, treating near-equal values as equal."""
        diff = (a - b).minor_units
        if abs(diff) <= self.minor_units:
            return 0
        return 1 if diff > 0 else -1

    def approx_equal(self, a: Money, b: Money) -> bool:
        return self.compare(a, b) == 0


DEFAULT_TOLERANCE = Tolerance()
