"""
Tests for invoice reconciliation.

Covers:
- Line and header totals
- Validation failures
- Multi-currency (exchange rate applied only on conversion)
- Payments, overpayment and refundable amounts
- Property-based total invariants
"""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from compliance_engines.invoice import (
    InvoiceHeader,
    InvoiceLineItem,
    apply_payment,
    reconcile_invoice,
    try_reconcile_invoice,
    validate_invoice,
)
from compliance_engines.vat import REVERSE_CHARGE, VatFlags, VatRateSchedule
from compliance_kernel.domain.values import Money

GB = VatRateSchedule.of("GB", "GBP", standard="20", reduced="5", zero="0", exempt="0")


def gbp(amount: str) -> Money:
    return Money.of(amount, "GBP")


def header(**overrides) -> InvoiceHeader:
    fields = {"invoice_number": "INV-001", "currency": "GBP"}
    fields.update(overrides)
    return InvoiceHeader(**fields)


class TestReconcileInvoice:

    def test_single_standard_line(self):
        invoice = reconcile_invoice(
            header(),
            [InvoiceLineItem("Consulting", 2, gbp("50.00"))],
            GB,
        )
        assert invoice.subtotal == gbp("100.00")
        assert invoice.tax_amount == gbp("20.00")
        assert invoice.total_amount == gbp("120.00")
        assert invoice.balance_amount == gbp("120.00")

    def test_mixed_rate_lines(self):
        invoice = reconcile_invoice(
            header(),
            [
                InvoiceLineItem("Service", 1, gbp("100.00")),
                InvoiceLineItem("Books", 1, gbp("100.00"), rate_class="zero"),
                InvoiceLineItem("Energy", 1, gbp("100.00"), rate_class="reduced"),
            ],
            GB,
        )
        assert invoice.tax_amount == gbp("25.00")
        summary = invoice.vat_summary()
        assert summary["standard"] == (gbp("100.00"), gbp("20.00"))
        assert summary["zero"][1].is_zero

    def test_line_discount_reduces_net(self):
        invoice = reconcile_invoice(
            header(),
            [InvoiceLineItem("Widget", 4, gbp("25.00"), discount=gbp("10.00"))],
            GB,
        )
        assert invoice.lines[0].net_amount == gbp("90.00")
        assert invoice.tax_amount == gbp("18.00")

    def test_header_charges_and_discount(self):
        invoice = reconcile_invoice(
            header(
                discount_amount=gbp("10.00"),
                delivery_charges=gbp("5.00"),
                installation_charges=gbp("15.00"),
            ),
            [InvoiceLineItem("Unit", 1, gbp("100.00"))],
            GB,
        )
        # 100 - 10 + 5 + 15 + 20
        assert invoice.total_amount == gbp("130.00")

    def test_reverse_charge_invoice(self):
        invoice = reconcile_invoice(
            header(flags=VatFlags(is_reverse_charge=True)),
            [InvoiceLineItem("Service", 1, gbp("100.00"))],
            GB,
        )
        assert invoice.tax_amount.is_zero
        assert invoice.lines[0].vat.rate_type == REVERSE_CHARGE

    def test_configuration_gap_is_surfaced(self):
        invoice = reconcile_invoice(
            header(),
            [InvoiceLineItem("Mystery", 1, gbp("10.00"), rate_class="luxury")],
            GB,
        )
        assert invoice.has_configuration_gap

    def test_invalid_input_raises(self):
        with pytest.raises(ValueError):
            reconcile_invoice(header(), [InvoiceLineItem("Bad", 0, gbp("1.00"))], GB)

    def test_invalid_input_is_rejected_not_raised(self):
        lines = [InvoiceLineItem("Bad", 0, gbp("1.00"))]
        outcome = try_reconcile_invoice(header(), lines, GB)
        assert not outcome
        assert outcome.value is None
        assert outcome.codes == validate_invoice(header(), lines).codes

    def test_valid_input_is_reconciled(self):
        outcome = try_reconcile_invoice(header(), [InvoiceLineItem("Consulting", 2, gbp("50.00"))], GB)
        assert outcome
        assert outcome.value.total_amount == gbp("120.00")


class TestValidateInvoice:

    def test_collects_all_issues(self):
        outcome = validate_invoice(
            header(exchange_rate=Decimal("0"), delivery_charges=gbp("-1")),
            [
                InvoiceLineItem("a", -1, gbp("1")),
                InvoiceLineItem("b", 1, Money.of("1", "USD")),
                InvoiceLineItem("c", 1, gbp("5"), discount=gbp("6")),
            ],
        )
        assert set(outcome.codes) == {
            "INVALID_EXCHANGE_RATE",
            "NEGATIVE_AMOUNT",
            "INVALID_QUANTITY",
            "CURRENCY_MISMATCH",
            "DISCOUNT_EXCEEDS_GROSS",
        }

    def test_fractional_quantity_rejected(self):
        outcome = validate_invoice(header(), [InvoiceLineItem("a", Decimal("1.5"), gbp("1"))])
        assert outcome.codes == ("INVALID_QUANTITY",)

    def test_valid_invoice(self):
        assert validate_invoice(header(), [InvoiceLineItem("a", 1, gbp("1"))])


class TestMultiCurrency:

    def test_amounts_stay_in_invoice_currency(self):
        invoice = reconcile_invoice(
            header(base_currency="INR", exchange_rate=Decimal("105")),
            [InvoiceLineItem("Service", 1, gbp("100.00"))],
            GB,
        )
        assert invoice.total_amount == gbp("120.00")
        assert invoice.to_base_currency(invoice.total_amount) == Money.of("12600.00", "INR")

    def test_conversion_applied_once(self):
        invoice = reconcile_invoice(
            header(base_currency="INR", exchange_rate=Decimal("2")),
            [InvoiceLineItem("Service", 1, gbp("10.00"))],
            GB,
        )
        converted = invoice.to_base_currency(invoice.subtotal)
        assert converted == Money.of("20.00", "INR")
        assert invoice.subtotal == gbp("10.00")

    def test_missing_rate_for_foreign_base(self):
        invoice = reconcile_invoice(
            header(base_currency="INR"),
            [InvoiceLineItem("Service", 1, gbp("10.00"))],
            GB,
        )
        with pytest.raises(ValueError):
            invoice.to_base_currency(invoice.total_amount)

    def test_same_base_currency_needs_no_rate(self):
        invoice = reconcile_invoice(
            header(base_currency="GBP"),
            [InvoiceLineItem("Service", 1, gbp("10.00"))],
            GB,
        )
        assert invoice.to_base_currency(invoice.total_amount) == invoice.total_amount


class TestPayments:

    def _invoice(self):
        return reconcile_invoice(
            header(issue_date=date(2024, 1, 1), due_date=date(2024, 1, 31)),
            [InvoiceLineItem("Service", 1, gbp("100.00"))],
            GB,
        )

    def test_partial_payment(self):
        updated = apply_payment(self._invoice(), gbp("20.00"))
        assert updated.paid_amount == gbp("20.00")
        assert updated.balance_amount == gbp("100.00")
        assert not updated.is_settled

    def test_payment_keeps_lines(self):
        invoice = self._invoice()
        assert apply_payment(invoice, gbp("1.00")).lines == invoice.lines

    def test_overpayment_goes_negative(self):
        updated = apply_payment(self._invoice(), gbp("150.00"))
        assert updated.balance_amount == gbp("-30.00")
        assert updated.is_overpaid
        assert updated.refundable_amount == gbp("30.00")
        assert updated.display_balance.is_zero

    def test_payment_in_other_currency_rejected(self):
        with pytest.raises(ValueError):
            apply_payment(self._invoice(), Money.of("1", "USD"))

    def test_zero_payment_rejected(self):
        with pytest.raises(ValueError):
            apply_payment(self._invoice(), gbp("0"))


line_items = st.lists(
    st.builds(
        lambda qty, price, rate_class: InvoiceLineItem(
            "line", qty, gbp(str(price)), rate_class=rate_class,
        ),
        st.integers(min_value=1, max_value=50),
        st.decimals(min_value=0, max_value=10_000, places=2),
        st.sampled_from(["standard", "reduced", "zero", "exempt"]),
    ),
    min_size=1,
    max_size=10,
)


class TestInvoiceInvariants:

    @settings(max_examples=75)
    @given(line_items, st.decimals(min_value=0, max_value=500, places=2))
    def test_totals_reconcile(self, lines, paid):
        invoice = reconcile_invoice(header(paid_amount=gbp(str(paid))), lines, GB)

        assert invoice.subtotal == Money.sum((rl.net_amount for rl in invoice.lines), "GBP")
        assert invoice.tax_amount == Money.sum((rl.tax_amount for rl in invoice.lines), "GBP")
        assert invoice.total_amount == invoice.subtotal + invoice.tax_amount
        assert invoice.balance_amount == invoice.total_amount - invoice.paid_amount

    @settings(max_examples=50)
    @given(line_items)
    def test_line_totals_are_net_plus_tax(self, lines):
        invoice = reconcile_invoice(header(), lines, GB)
        for rl in invoice.lines:
            assert rl.total_amount == rl.net_amount + rl.tax_amount
            assert rl.tax_amount.amount >= 0
