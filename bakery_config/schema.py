"""
Payment engine configuration schema.

Frozen dataclasses that the YAML loader produces.  Validation happens in
``__post_init__`` so an invalid configuration can never be constructed,
whether it came from a file or from code.
"""

from __future__ import annotations

from dataclasses import dataclass

from bakery_kernel.domain.currency import CurrencyRegistry
from bakery_kernel.domain.tolerance import Tolerance


@dataclass(frozen=True)
class PaymentEngineConfig:
    """Settings for the payment allocation engine."""

    settlement_currency: str = "USD"
    local_currency: str = "VES"
    tolerance_minor_units: int = 1
    reference_digits: int = 6
    reject_pending_duplicates: bool = False
    batch_id_prefix: str = "PAY-P"
    default_actor: str = "back-office"
    config_id: str = "inline"
    version: int = 1
    checksum: str = ""

    def __post_init__(self):
        CurrencyRegistry.validate(self.settlement_currency)
        CurrencyRegistry.validate(self.local_currency)
        object.__setattr__(self, "settlement_currency", self.settlement_currency.upper().strip())
        object.__setattr__(self, "local_currency", self.local_currency.upper().strip())
        if self.settlement_currency == self.local_currency:
            raise ValueError("settlement_currency and local_currency must differ")
        if self.tolerance_minor_units < 0:
            raise ValueError("tolerance_minor_units cannot be negative")
        if self.reference_digits <= 0:
            raise ValueError("reference_digits must be positive")
        if not self.batch_id_prefix:
            raise ValueError("batch_id_prefix cannot be empty")

    @property
    def tolerance(self) -> Tolerance:
        return Tolerance(self.tolerance_minor_units)

    @classmethod
    def with_defaults(cls) -> PaymentEngineConfig:
        """Return a config with the bakery's standard settings."""
        return cls()
