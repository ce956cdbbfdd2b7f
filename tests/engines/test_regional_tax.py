"""
Tests for GST (India), SST (Malaysia) and US sales tax.
"""

from decimal import Decimal

import pytest

from compliance_engines.regional_tax import (
    GstRates,
    SstCategory,
    SstRates,
    SupplyType,
    UsSalesTaxRates,
    calculate_gst,
    calculate_sst,
    calculate_us_sales_tax,
    supply_type_for,
)
from compliance_kernel.domain.values import Money


def inr(amount: str) -> Money:
    return Money.of(amount, "INR")


class TestGst:

    def test_intra_state_splits_cgst_sgst(self):
        breakdown = calculate_gst(inr("1000.00"), SupplyType.INTRA_STATE)
        assert breakdown.component("cgst").tax_amount == inr("90.00")
        assert breakdown.component("sgst").tax_amount == inr("90.00")
        assert breakdown.component("igst") is None
        assert breakdown.total_tax == inr("180.00")
        assert breakdown.gross_amount == inr("1180.00")

    def test_inter_state_uses_igst(self):
        breakdown = calculate_gst(inr("1000.00"), "inter_state")
        assert [c.tax_type for c in breakdown.components] == ["igst"]
        assert breakdown.total_tax == inr("180.00")

    def test_configured_rates(self):
        rates = GstRates(cgst=Decimal("6"), sgst=Decimal("6"), igst=Decimal("12"))
        assert calculate_gst(inr("100"), SupplyType.INTER_STATE, rates).total_tax == inr("12.00")

    def test_each_component_rounds_half_up(self):
        breakdown = calculate_gst(inr("0.05"), SupplyType.INTRA_STATE)
        # 0.05 * 9% = 0.0045 -> 0.00
        assert breakdown.total_tax == inr("0.00")

    def test_unknown_supply_type_rejected(self):
        with pytest.raises(ValueError):
            calculate_gst(inr("100"), "export")

    def test_negative_base_rejected(self):
        with pytest.raises(ValueError):
            calculate_gst(inr("-1"), SupplyType.INTRA_STATE)

    def test_supply_type_from_state_codes(self):
        assert supply_type_for("27", "27") is SupplyType.INTRA_STATE
        assert supply_type_for("27", "29") is SupplyType.INTER_STATE


class TestSst:

    def test_sales_tax(self):
        breakdown = calculate_sst(Money.of("100", "MYR"), SstCategory.SALES_TAX)
        assert breakdown.total_tax == Money.of("10.00", "MYR")
        assert breakdown.tax_regime == "sst"

    def test_service_tax(self):
        breakdown = calculate_sst(Money.of("100", "MYR"), "service_tax", SstRates(service_tax=Decimal("8")))
        assert breakdown.component("service_tax").tax_amount == Money.of("8.00", "MYR")

    def test_exempt_has_no_components(self):
        breakdown = calculate_sst(Money.of("100", "MYR"), SstCategory.EXEMPT)
        assert breakdown.components == ()
        assert breakdown.total_tax.is_zero


class TestUsSalesTax:

    RATES = UsSalesTaxRates(
        state=Decimal("6.25"), county=Decimal("1"), city=Decimal("1.5"),
    )

    def test_stacks_non_zero_rates(self):
        breakdown = calculate_us_sales_tax(Money.of("100.00", "USD"), self.RATES)
        assert [c.tax_type for c in breakdown.components] == ["state_tax", "county_tax", "city_tax"]
        assert breakdown.total_tax == Money.of("8.75", "USD")
        assert self.RATES.combined_rate == Decimal("8.75")

    def test_exempt_sale(self):
        breakdown = calculate_us_sales_tax(Money.of("100.00", "USD"), self.RATES, is_exempt=True)
        assert breakdown.total_tax.is_zero

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError):
            UsSalesTaxRates(state=Decimal("-1"))
