"""Currency -- ISO 4217 registry and precision-derived rounding."""

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
    def rounding_tolerance(self) -> Decimal:
        """One minor unit: the largest difference rounding may introduce."""
        return Decimal(1).scaleb(-self.decimal_places)

    @property
    def quantum(self) -> Decimal:
        """Exponent for Decimal.quantize() at this currency's precision."""
        return Decimal(1).scaleb(-self.decimal_places)


class CurrencyRegistry:
    """Registry of the ISO 4217 currencies the engine prices and invoices in."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        # Operating currencies of the regional offerings
        "INR": CurrencyInfo("INR", 2, "Indian Rupee"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling"),
        "AED": CurrencyInfo("AED", 2, "UAE Dirham"),
        "SGD": CurrencyInfo("SGD", 2, "Singapore Dollar"),
        "MYR": CurrencyInfo("MYR", 2, "Malaysian Ringgit"),
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        # Other invoicing currencies
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "AUD": CurrencyInfo("AUD", 2, "Australian Dollar"),
        "CAD": CurrencyInfo("CAD", 2, "Canadian Dollar"),
        "CHF": CurrencyInfo("CHF", 2, "Swiss Franc"),
        "CNY": CurrencyInfo("CNY", 2, "Chinese Yuan"),
        "SAR": CurrencyInfo("SAR", 2, "Saudi Riyal"),
        "QAR": CurrencyInfo("QAR", 2, "Qatari Riyal"),
        "ZAR": CurrencyInfo("ZAR", 2, "South African Rand"),
        "NGN": CurrencyInfo("NGN", 2, "Nigerian Naira"),
        "BRL": CurrencyInfo("BRL", 2, "Brazilian Real"),
        "NZD": CurrencyInfo("NZD", 2, "New Zealand Dollar"),
        "HKD": CurrencyInfo("HKD", 2, "Hong Kong Dollar"),
        "PKR": CurrencyInfo("PKR", 2, "Pakistani Rupee"),
        "LKR": CurrencyInfo("LKR", 2, "Sri Lankan Rupee"),
        "BDT": CurrencyInfo("BDT", 2, "Bangladeshi Taka"),
        "IDR": CurrencyInfo("IDR", 2, "Indonesian Rupiah"),
        "THB": CurrencyInfo("THB", 2, "Thai Baht"),
        "PHP": CurrencyInfo("PHP", 2, "Philippine Peso"),
        # Zero decimal currencies
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
        "KRW": CurrencyInfo("KRW", 0, "South Korean Won"),
        "VND": CurrencyInfo("VND", 0, "Vietnamese Dong"),
        # Three decimal currencies
        "BHD": CurrencyInfo("BHD", 3, "Bahraini Dinar"),
        "KWD": CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
        "OMR": CurrencyInfo("OMR", 3, "Omani Rial"),
        "JOD": CurrencyInfo("JOD", 3, "Jordanian Dinar"),
    }

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check if a currency code is registered."""
        if not code or not isinstance(code, str):
            return False
        return code.upper().strip() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        if not code or not isinstance(code, str):
            return None
        return cls._CURRENCIES.get(code.upper().strip())

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        info = cls.get_info(code)
        return info.decimal_places if info else cls.DEFAULT_DECIMAL_PLACES

    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    @classmethod
    def get_rounding_tolerance(cls, code: str) -> Decimal:
        return Decimal(1).scaleb(-cls.get_decimal_places(code))

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)
