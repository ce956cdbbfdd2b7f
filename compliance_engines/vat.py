"""
VAT Engine - per-line value-added tax with an ordered decision table.

Pure functions with no I/O. Rate schedules are supplied by the caller
(normally from ``compliance_config.get_active_config().vat_schedules``).

Decision table (first match wins):

    #  condition                      tax   rate_type
    1  flags.is_reverse_charge        0     reverse_charge
    2  flags.is_ec_supply             0     ec_supply
    3  rate_class == "exempt"         0     exempt
    4  otherwise                      net * rate / 100, rounded half-up
                                            to the currency minor unit;
                                            rate_type = rate_class

An unknown rate class is a configuration gap: the schedule's standard rate
is applied (never zero) and the result is flagged.

Call once per line item. Summing per-line results is the only supported
way to tax an invoice; taxing a pre-summed net changes rounding.

Usage:
    from compliance_engines.vat import VatRateSchedule, calculate_vat
    from compliance_kernel.domain.values import Money

    schedule = VatRateSchedule.of("GB", "GBP", standard="20", reduced="5",
                                  zero="0", exempt="0")
    result = calculate_vat(Money.of("100", "GBP"), "standard", schedule)
    print(result.vat_amount)    # 20.00 GBP
    print(result.total_amount)  # 120.00 GBP
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType

from compliance_engines.tracer import traced_engine
from compliance_kernel.domain.values import Money, to_decimal
from compliance_kernel.exceptions import RateScheduleNotFoundError
from compliance_kernel.logging_config import get_logger

logger = get_logger("engines.vat")

STANDARD = "standard"
REDUCED = "reduced"
ZERO = "zero"
EXEMPT = "exempt"
REVERSE_CHARGE = "reverse_charge"
EC_SUPPLY = "ec_supply"

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class VatRateSchedule:
    """
    Named rate classes for one jurisdiction, as percentages.

    ``standard`` is mandatory: it is the rate applied when a line names a
    class the schedule does not know.
    """

    jurisdiction: str
    currency: str
    rates: Mapping[str, Decimal]

    def __post_init__(self) -> None:
        converted = {}
        for rate_class, rate in self.rates.items():
            value = to_decimal(rate, f"rate {rate_class!r}")
            if value < 0:
                raise ValueError(f"VAT rate {rate_class!r} cannot be negative: {value}")
            converted[str(rate_class)] = value
        if STANDARD not in converted:
            raise ValueError(
                f"VAT schedule for {self.jurisdiction} must define a standard rate"
            )
        object.__setattr__(self, "jurisdiction", self.jurisdiction.upper())
        object.__setattr__(self, "rates", MappingProxyType(converted))

    @classmethod
    def of(cls, jurisdiction: str, currency: str, **rates: Decimal | str | int) -> VatRateSchedule:
        return cls(jurisdiction=jurisdiction, currency=currency, rates=rates)

    @property
    def standard_rate(self) -> Decimal:
        return self.rates[STANDARD]

    def rate_for(self, rate_class: str) -> Decimal | None:
        return self.rates.get(rate_class)


@dataclass(frozen=True)
class VatFlags:
    """Supply-level switches that force zero tax."""

    is_reverse_charge: bool = False
    is_ec_supply: bool = False


@dataclass(frozen=True)
class VatCalculation:
    """VAT for one line."""

    net_amount: Money
    vat_amount: Money
    total_amount: Money
    vat_rate: Decimal
    rate_type: str
    configuration_gap: bool = False

    @property
    def is_zero_tax(self) -> bool:
        return self.vat_amount.is_zero


@dataclass(frozen=True)
class ZeroTaxRule:
    """One row of the zero-tax part of the decision table."""

    rate_type: str
    applies: Callable[[str, VatFlags], bool]


ZERO_TAX_RULES: tuple[ZeroTaxRule, ...] = (
    ZeroTaxRule(REVERSE_CHARGE, lambda rate_class, flags: flags.is_reverse_charge),
    ZeroTaxRule(EC_SUPPLY, lambda rate_class, flags: flags.is_ec_supply),
    ZeroTaxRule(EXEMPT, lambda rate_class, flags: rate_class == EXEMPT),
)


@dataclass(frozen=True)
class ScheduleResolution:
    schedule: VatRateSchedule
    is_fallback: bool


def resolve_schedule(
    jurisdiction: str,
    schedules: Mapping[str, VatRateSchedule],
    fallback_jurisdiction: str | None = None,
) -> ScheduleResolution:
    """Find the schedule for ``jurisdiction``, degrading to the fallback.

    Raises:
        RateScheduleNotFoundError: neither schedule exists.
    """
    key = jurisdiction.upper()
    if key in schedules:
        return ScheduleResolution(schedule=schedules[key], is_fallback=False)
    if fallback_jurisdiction and fallback_jurisdiction.upper() in schedules:
        logger.warning("vat_schedule_fallback", extra={
            "jurisdiction": key,
            "fallback_jurisdiction": fallback_jurisdiction.upper(),
        })
        return ScheduleResolution(
            schedule=schedules[fallback_jurisdiction.upper()],
            is_fallback=True,
        )
    logger.error("vat_schedule_missing", extra={"jurisdiction": key})
    raise RateScheduleNotFoundError(key)


@traced_engine("vat", "1.0", fingerprint_fields=("net_amount", "rate_class", "flags"))
def calculate_vat(
    net_amount: Money,
    rate_class: str,
    schedule: VatRateSchedule,
    flags: VatFlags | None = None,
    rounding: str = ROUND_HALF_UP,
) -> VatCalculation:
    """
    Calculate VAT for one line's net amount.

    Raises:
        TypeError: net_amount is not Money.
        ValueError: net_amount is negative.
    """
    if not isinstance(net_amount, Money):
        raise TypeError(f"net_amount must be Money, got {type(net_amount).__name__}")
    if net_amount.is_negative:
        raise ValueError(f"net_amount cannot be negative: {net_amount}")
    flags = flags or VatFlags()

    for rule in ZERO_TAX_RULES:
        if rule.applies(rate_class, flags):
            logger.debug("vat_zero_tax_rule_matched", extra={
                "rate_type": rule.rate_type,
                "rate_class": rate_class,
            })
            return VatCalculation(
                net_amount=net_amount,
                vat_amount=Money.zero(net_amount.currency),
                total_amount=net_amount,
                vat_rate=Decimal("0"),
                rate_type=rule.rate_type,
            )

    rate = schedule.rate_for(rate_class)
    configuration_gap = rate is None
    if configuration_gap:
        logger.warning("vat_rate_class_unknown", extra={
            "rate_class": rate_class,
            "jurisdiction": schedule.jurisdiction,
            "applied_rate": str(schedule.standard_rate),
        })
        rate = schedule.standard_rate

    vat_amount = Money(
        amount=net_amount.amount * rate / _HUNDRED,
        currency=net_amount.currency,
    ).round(rounding)

    return VatCalculation(
        net_amount=net_amount,
        vat_amount=vat_amount,
        total_amount=net_amount + vat_amount,
        vat_rate=rate,
        rate_type=STANDARD if configuration_gap else rate_class,
        configuration_gap=configuration_gap,
    )
