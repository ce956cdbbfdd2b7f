"""
Tests for the VAT calculator.

Covers:
- Standard, reduced, zero and exempt rate classes
- Reverse charge and EC supply flags
- Unknown rate classes (configuration gap)
- Schedule resolution and fallback
- Engine trace emission
"""

from decimal import ROUND_HALF_EVEN, Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from compliance_engines.vat import (
    EC_SUPPLY,
    EXEMPT,
    REVERSE_CHARGE,
    STANDARD,
    VatFlags,
    VatRateSchedule,
    calculate_vat,
    resolve_schedule,
)
from compliance_kernel.domain.values import Money
from compliance_kernel.exceptions import RateScheduleNotFoundError

GB = VatRateSchedule.of("GB", "GBP", standard="20", reduced="5", zero="0", exempt="0")
AE = VatRateSchedule.of("AE", "AED", standard="5", zero="0", exempt="0")


def gbp(amount: str) -> Money:
    return Money.of(amount, "GBP")


class TestRateSchedule:

    def test_standard_rate_is_mandatory(self):
        with pytest.raises(ValueError):
            VatRateSchedule.of("XX", "GBP", reduced="5")

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError):
            VatRateSchedule.of("XX", "GBP", standard="-1")

    def test_float_rate_rejected(self):
        with pytest.raises(TypeError):
            VatRateSchedule.of("XX", "GBP", standard=20.0)

    def test_jurisdiction_uppercased(self):
        assert VatRateSchedule.of("gb", "GBP", standard="20").jurisdiction == "GB"


class TestCalculateVat:

    def test_standard_rate(self):
        result = calculate_vat(gbp("100.00"), STANDARD, GB)
        assert result.vat_amount == gbp("20.00")
        assert result.total_amount == gbp("120.00")
        assert result.vat_rate == Decimal("20")
        assert result.rate_type == STANDARD

    def test_reduced_rate(self):
        result = calculate_vat(gbp("100.00"), "reduced", GB)
        assert result.vat_amount == gbp("5.00")
        assert result.rate_type == "reduced"

    def test_zero_rate(self):
        result = calculate_vat(gbp("100.00"), "zero", GB)
        assert result.is_zero_tax
        assert result.rate_type == "zero"

    def test_exempt(self):
        result = calculate_vat(gbp("100.00"), EXEMPT, GB)
        assert result.is_zero_tax
        assert result.rate_type == EXEMPT

    def test_reverse_charge_zeroes_tax(self):
        result = calculate_vat(gbp("100.00"), STANDARD, GB, VatFlags(is_reverse_charge=True))
        assert result.vat_amount == gbp("0")
        assert result.total_amount == gbp("100.00")
        assert result.vat_rate == Decimal("0")
        assert result.rate_type == REVERSE_CHARGE

    def test_ec_supply_zeroes_tax(self):
        result = calculate_vat(gbp("100.00"), STANDARD, GB, VatFlags(is_ec_supply=True))
        assert result.is_zero_tax
        assert result.rate_type == EC_SUPPLY

    def test_reverse_charge_wins_over_ec_supply(self):
        flags = VatFlags(is_reverse_charge=True, is_ec_supply=True)
        assert calculate_vat(gbp("100.00"), STANDARD, GB, flags).rate_type == REVERSE_CHARGE

    def test_unknown_rate_class_uses_standard_and_flags_gap(self, captured_logs):
        result = calculate_vat(gbp("100.00"), "luxury", GB)
        assert result.vat_amount == gbp("20.00")
        assert result.configuration_gap
        assert result.rate_type == STANDARD
        assert any(r["message"] == "vat_rate_class_unknown" for r in captured_logs())

    def test_half_up_rounding(self):
        # 0.125 at 20% is 0.025 -> 0.03 half-up
        assert calculate_vat(gbp("0.125"), STANDARD, GB).vat_amount == gbp("0.03")

    def test_bankers_rounding_option(self):
        result = calculate_vat(gbp("0.125"), STANDARD, GB, rounding=ROUND_HALF_EVEN)
        assert result.vat_amount == gbp("0.02")

    def test_uae_rate(self):
        result = calculate_vat(Money.of("200", "AED"), STANDARD, AE)
        assert result.vat_amount == Money.of("10.00", "AED")

    def test_negative_net_rejected(self):
        with pytest.raises(ValueError):
            calculate_vat(gbp("-1"), STANDARD, GB)

    def test_non_money_rejected(self):
        with pytest.raises(TypeError):
            calculate_vat(Decimal("100"), STANDARD, GB)

    def test_emits_engine_trace(self, captured_logs):
        calculate_vat(gbp("100.00"), STANDARD, GB)
        traces = [r for r in captured_logs() if r["message"] == "COMPLIANCE_ENGINE_TRACE"]
        assert traces[-1]["engine_name"] == "vat"
        assert len(traces[-1]["input_fingerprint"]) == 16

    @given(st.decimals(min_value=0, max_value=10_000_000, places=2))
    def test_total_is_net_plus_vat(self, amount):
        net = gbp(str(amount))
        result = calculate_vat(net, STANDARD, GB)
        assert result.total_amount == net + result.vat_amount
        assert result.vat_amount.amount == result.vat_amount.amount.quantize(Decimal("0.01"))


class TestResolveSchedule:

    SCHEDULES = {"GB": GB, "AE": AE}

    def test_exact_match(self):
        resolution = resolve_schedule("ae", self.SCHEDULES)
        assert resolution.schedule is AE
        assert not resolution.is_fallback

    def test_fallback(self):
        resolution = resolve_schedule("DE", self.SCHEDULES, fallback_jurisdiction="GB")
        assert resolution.schedule is GB
        assert resolution.is_fallback

    def test_missing_without_fallback_raises(self):
        with pytest.raises(RateScheduleNotFoundError):
            resolve_schedule("DE", self.SCHEDULES)
