"""
Regional Tax Engine - component taxes that VAT schedules do not model.

    India GST       intra-state supply  -> CGST + SGST
                    inter-state supply  -> IGST
    Malaysia SST    sales_tax | service_tax | exempt
    US sales tax    state + county + city + special district, stacked
                    on the same base

Each component is computed on the full base and rounded independently
(half-up, currency minor unit); the total tax is the sum of the rounded
components. Rates are percentages supplied by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from compliance_engines.tracer import traced_engine
from compliance_kernel.domain.values import Money, to_decimal
from compliance_kernel.logging_config import get_logger

logger = get_logger("engines.regional_tax")

_HUNDRED = Decimal("100")


class SupplyType(str, Enum):
    INTRA_STATE = "intra_state"
    INTER_STATE = "inter_state"


class SstCategory(str, Enum):
    SALES_TAX = "sales_tax"
    SERVICE_TAX = "service_tax"
    EXEMPT = "exempt"


def _percent(value: Decimal | str | int, name: str) -> Decimal:
    rate = to_decimal(value, name)
    if rate < 0:
        raise ValueError(f"{name} cannot be negative: {rate}")
    return rate


@dataclass(frozen=True)
class GstRates:
    cgst: Decimal = Decimal("9")
    sgst: Decimal = Decimal("9")
    igst: Decimal = Decimal("18")

    def __post_init__(self) -> None:
        for name in ("cgst", "sgst", "igst"):
            object.__setattr__(self, name, _percent(getattr(self, name), name))


@dataclass(frozen=True)
class SstRates:
    sales_tax: Decimal = Decimal("10")
    service_tax: Decimal = Decimal("6")

    def __post_init__(self) -> None:
        for name in ("sales_tax", "service_tax"):
            object.__setattr__(self, name, _percent(getattr(self, name), name))


@dataclass(frozen=True)
class UsSalesTaxRates:
    """Stacked rates for one ship-to location. Zero components are skipped."""

    state: Decimal = Decimal("0")
    county: Decimal = Decimal("0")
    city: Decimal = Decimal("0")
    special_district: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        for name in ("state", "county", "city", "special_district"):
            object.__setattr__(self, name, _percent(getattr(self, name), name))

    @property
    def combined_rate(self) -> Decimal:
        return self.state + self.county + self.city + self.special_district


@dataclass(frozen=True)
class TaxComponent:
    """One named tax line within a breakdown."""

    tax_type: str
    tax_name: str
    rate: Decimal
    base_amount: Money
    tax_amount: Money


@dataclass(frozen=True)
class TaxBreakdown:
    country: str
    tax_regime: str
    net_amount: Money
    components: tuple[TaxComponent, ...]

    @property
    def total_tax(self) -> Money:
        return Money.sum((c.tax_amount for c in self.components), self.net_amount.currency)

    @property
    def gross_amount(self) -> Money:
        return self.net_amount + self.total_tax

    def component(self, tax_type: str) -> TaxComponent | None:
        for c in self.components:
            if c.tax_type == tax_type:
                return c
        return None


def _component(tax_type: str, tax_name: str, rate: Decimal, base: Money) -> TaxComponent:
    tax = Money(amount=base.amount * rate / _HUNDRED, currency=base.currency).round(ROUND_HALF_UP)
    return TaxComponent(
        tax_type=tax_type,
        tax_name=tax_name,
        rate=rate,
        base_amount=base,
        tax_amount=tax,
    )


def _check_base(net_amount: Money) -> None:
    if not isinstance(net_amount, Money):
        raise TypeError(f"net_amount must be Money, got {type(net_amount).__name__}")
    if net_amount.is_negative:
        raise ValueError(f"net_amount cannot be negative: {net_amount}")


def supply_type_for(seller_state_code: str, buyer_state_code: str) -> SupplyType:
    """Place-of-supply rule: same state code means intra-state."""
    if seller_state_code.strip() == buyer_state_code.strip():
        return SupplyType.INTRA_STATE
    return SupplyType.INTER_STATE


@traced_engine("gst", "1.0", fingerprint_fields=("net_amount", "supply_type"))
def calculate_gst(
    net_amount: Money,
    supply_type: SupplyType | str,
    rates: GstRates | None = None,
) -> TaxBreakdown:
    _check_base(net_amount)
    supply_type = SupplyType(supply_type)
    rates = rates or GstRates()

    if supply_type is SupplyType.INTRA_STATE:
        components = (
            _component("cgst", "CGST", rates.cgst, net_amount),
            _component("sgst", "SGST", rates.sgst, net_amount),
        )
    else:
        components = (_component("igst", "IGST", rates.igst, net_amount),)

    breakdown = TaxBreakdown(
        country="IN",
        tax_regime="gst",
        net_amount=net_amount,
        components=components,
    )
    logger.info("gst_calculated", extra={
        "supply_type": supply_type.value,
        "net_amount": str(net_amount.amount),
        "total_tax": str(breakdown.total_tax.amount),
    })
    return breakdown


@traced_engine("sst", "1.0", fingerprint_fields=("net_amount", "category"))
def calculate_sst(
    net_amount: Money,
    category: SstCategory | str,
    rates: SstRates | None = None,
) -> TaxBreakdown:
    _check_base(net_amount)
    category = SstCategory(category)
    rates = rates or SstRates()

    if category is SstCategory.SALES_TAX:
        components = (_component("sales_tax", "Sales Tax", rates.sales_tax, net_amount),)
    elif category is SstCategory.SERVICE_TAX:
        components = (_component("service_tax", "Service Tax", rates.service_tax, net_amount),)
    else:
        components = ()

    return TaxBreakdown(
        country="MY",
        tax_regime="sst",
        net_amount=net_amount,
        components=components,
    )


@traced_engine("us_sales_tax", "1.0", fingerprint_fields=("net_amount", "rates", "is_exempt"))
def calculate_us_sales_tax(
    net_amount: Money,
    rates: UsSalesTaxRates,
    is_exempt: bool = False,
) -> TaxBreakdown:
    """Stack the location's rates; exempt sales carry no components."""
    _check_base(net_amount)
    components: list[TaxComponent] = []
    if not is_exempt:
        for tax_type, tax_name, rate in (
            ("state_tax", "State Tax", rates.state),
            ("county_tax", "County Tax", rates.county),
            ("city_tax", "City Tax", rates.city),
            ("special_district_tax", "Special District Tax", rates.special_district),
        ):
            if rate > 0:
                components.append(_component(tax_type, tax_name, rate, net_amount))

    return TaxBreakdown(
        country="US",
        tax_regime="sales_tax",
        net_amount=net_amount,
        components=tuple(components),
    )
