"""Currency -- registry of the currencies the bakery trades in, with minor-unit precision."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def minor_unit(self) -> Decimal:
        """Value of one minor unit (0.01 for two-decimal currencies)."""
        return Decimal(1).scaleb(-self.decimal_places)


class CurrencyRegistry:
    """Registry of supported ISO 4217 currencies and their decimal places."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "VES": CurrencyInfo("VES", 2, "Venezuelan Bolivar Soberano"),
        "VED": CurrencyInfo("VED", 2, "Venezuelan Bolivar Digital"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "COP": CurrencyInfo("COP", 2, "Colombian Peso"),
        "ARS": CurrencyInfo("ARS", 2, "Argentine Peso"),
        "BRL": CurrencyInfo("BRL", 2, "Brazilian Real"),
        "MXN": CurrencyInfo("MXN", 2, "Mexican Peso"),
        "PEN": CurrencyInfo("PEN", 2, "Peruvian Sol"),
        "CLP": CurrencyInfo("CLP", 0, "Chilean Peso"),
        "PYG": CurrencyInfo("PYG", 0, "Paraguayan Guarani"),
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
        "KWD": CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
    }

    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check if a currency code is registered."""
        if not code or not isinstance(code, str):
            return False
        return code.upper().strip() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        """Get currency information by code."""
        if not code or not isinstance(code, str):
            return None
        return cls._CURRENCIES.get(code.upper().strip())

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        """Get decimal places for a currency."""
        info = cls.get_info(code)
        return info.decimal_places if info else cls.DEFAULT_DECIMAL_PLACES

    @classmethod
    def validate(cls, code: str) -> str:
        """Validate and normalize a currency code."""
        if not code or not isinstance(code, str):
            raise ValueError(f"Invalid currency code: {code!r}")

        normalized = code.upper().strip()

        if len(normalized) != 3:
            raise ValueError(f"Currency code must be 3 characters: {code!r}")

        if normalized not in cls._CURRENCIES:
            raise ValueError(f"Unsupported ISO 4217 currency code: {code!r}")

        return normalized

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        """Get all supported currency codes."""
        return frozenset(cls._CURRENCIES.keys())
