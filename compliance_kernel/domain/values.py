"""
Values -- Immutable, self-validating money value objects.

Responsibility:
    Currency, Money and ExchangeRate: the only types that carry monetary
    amounts through the tax, invoice and pricing engines.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every engine. No outward dependencies except
    compliance_kernel.domain.currency (CurrencyRegistry) and the kernel
    exception hierarchy.

Invariants enforced:
    - Amounts are Decimal. Floats are refused at construction; string and
      int inputs are converted exactly.
    - Currency codes are validated against CurrencyRegistry at construction.
    - Arithmetic and comparison never mix currencies.
    - Rounding precision derives from the currency's minor unit.

Failure modes:
    - TypeError when a float (or other non-decimal type) is supplied.
    - InvalidCurrencyError for unknown currency codes.
    - CurrencyMismatchError when arithmetic mixes currencies.
    - ValueError for unparseable amounts and non-positive exchange rates.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal, InvalidOperation

from compliance_kernel.domain.currency import CurrencyRegistry
from compliance_kernel.exceptions import CurrencyMismatchError, InvalidCurrencyError

BANKERS_ROUNDING = ROUND_HALF_EVEN


def to_decimal(value: Decimal | str | int, field: str = "amount") -> Decimal:
    """Convert an exact input to Decimal, refusing floats."""
    if isinstance(value, bool):
        raise TypeError(f"{field} must be Decimal, str or int, got bool")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise TypeError(
            f"{field} must not be a float ({value!r}); pass a Decimal or string"
        )
    if isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"Invalid {field}: {value!r}") from e
        if not result.is_finite():
            raise ValueError(f"Invalid {field}: {value!r}")
        return result
    raise TypeError(f"{field} must be Decimal, str or int, got {type(value).__name__}")


@dataclass(frozen=True, slots=True)
class Currency:
    """
    ISO 4217 currency code value object.

    Normalized (uppercased, stripped) and validated on construction.
    """

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if isinstance(self.code, str) else ""
        if not CurrencyRegistry.is_valid(normalized):
            raise InvalidCurrencyError(str(self.code))
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def rounding_tolerance(self) -> Decimal:
        """One minor unit of this currency."""
        return CurrencyRegistry.get_rounding_tolerance(self.code)

    @property
    def quantum(self) -> Decimal:
        return Decimal(1).scaleb(-self.decimal_places)

    @property
    def name(self) -> str:
        info = CurrencyRegistry.get_info(self.code)
        return info.name if info else self.code

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


def _coerce_currency(currency: str | Currency) -> Currency:
    if isinstance(currency, Currency):
        return currency
    if isinstance(currency, str):
        return Currency(currency)
    raise TypeError(f"currency must be Currency or str, got {type(currency).__name__}")


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Contract:
        Pairs a Decimal amount with its Currency. They are never separated.

    Guarantees:
        - amount is always a Decimal (floats are rejected with TypeError)
        - currency is always a registered Currency
        - +, -, and comparisons require the same currency

    Non-goals:
        - Does NOT convert currencies (use ExchangeRate.convert)
        - Does NOT auto-round; callers call .round() at the documented points
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        object.__setattr__(self, "currency", _coerce_currency(self.currency))

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        """Factory: ``Money.of("19.99", "GBP")``."""
        return cls(amount=to_decimal(amount), currency=_coerce_currency(currency))

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        return cls(amount=Decimal("0"), currency=_coerce_currency(currency))

    @classmethod
    def sum(cls, values: Iterable[Money], currency: str | Currency) -> Money:
        """Exact sum of same-currency amounts; an empty iterable sums to zero."""
        total = cls.zero(currency)
        for value in values:
            total = total + value
        return total

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """Quantize to the currency's minor unit (half-up unless told otherwise)."""
        rounded = self.amount.quantize(self.currency.quantum, rounding=rounding)
        return Money(amount=rounded, currency=self.currency)

    def _check_currency(self, other: Money, operation: str) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(
                self.currency.code, other.currency.code, operation
            )

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "addition")
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "subtraction")
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount, currency=self.currency)

    def __abs__(self) -> Money:
        return Money(amount=abs(self.amount), currency=self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        if isinstance(factor, Money):
            return NotImplemented
        return Money(amount=self.amount * to_decimal(factor, "factor"), currency=self.currency)

    def __rmul__(self, factor: Decimal | int | str) -> Money:
        return self.__mul__(factor)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "comparison")
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "comparison")
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "comparison")
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "comparison")
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"


@dataclass(frozen=True, slots=True)
class ExchangeRate:
    """
    Exchange rate: 1 unit of from_currency = rate units of to_currency.

    Supplied by the caller. The engine never fetches rates.
    """

    from_currency: Currency
    to_currency: Currency
    rate: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "from_currency", _coerce_currency(self.from_currency))
        object.__setattr__(self, "to_currency", _coerce_currency(self.to_currency))
        rate = to_decimal(self.rate, "exchange rate")
        if rate <= 0:
            raise ValueError(f"Exchange rate must be positive: {rate}")
        object.__setattr__(self, "rate", rate)

    @classmethod
    def of(
        cls,
        from_currency: str | Currency,
        to_currency: str | Currency,
        rate: Decimal | str | int,
    ) -> ExchangeRate:
        return cls(from_currency=from_currency, to_currency=to_currency, rate=rate)

    def convert(self, money: Money) -> Money:
        """Convert ``money`` once, rounding to the target currency's minor unit."""
        if money.currency != self.from_currency:
            raise CurrencyMismatchError(
                self.from_currency.code, money.currency.code, "conversion"
            )
        return Money(amount=money.amount * self.rate, currency=self.to_currency).round()

    def inverse(self) -> ExchangeRate:
        return ExchangeRate(
            from_currency=self.to_currency,
            to_currency=self.from_currency,
            rate=Decimal("1") / self.rate,
        )

    @property
    def pair(self) -> tuple[str, str]:
        return (self.from_currency.code, self.to_currency.code)

    def __str__(self) -> str:
        return f"{self.from_currency}/{self.to_currency} = {self.rate}"
