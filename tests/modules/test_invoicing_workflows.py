"""
Tests for the invoice lifecycle workflow.
"""

from datetime import date

import pytest

from compliance_engines.invoice import InvoiceHeader, InvoiceLineItem, reconcile_invoice
from compliance_engines.vat import VatRateSchedule
from compliance_kernel.domain.values import Money
from compliance_kernel.exceptions import InvalidTransitionError, TerminalStateError
from compliance_modules.invoicing import (
    INVOICE_WORKFLOW,
    InvoiceDocument,
    InvoiceStatus,
    effective_status,
    record_payment,
    transition,
)

GB = VatRateSchedule.of("GB", "GBP", standard="20", reduced="5", zero="0", exempt="0")


def gbp(amount: str) -> Money:
    return Money.of(amount, "GBP")


@pytest.fixture
def draft() -> InvoiceDocument:
    invoice = reconcile_invoice(
        InvoiceHeader(
            invoice_number="INV-100",
            currency="GBP",
            issue_date=date(2024, 5, 1),
            due_date=date(2024, 5, 31),
        ),
        [InvoiceLineItem("Subscription", 1, gbp("100.00"))],
        GB,
    )
    return InvoiceDocument(tenant_id="tenant-1", invoice=invoice)


class TestInvoiceDocument:

    def test_defaults_to_draft(self, draft):
        assert draft.status is InvoiceStatus.DRAFT
        assert draft.invoice_number == "INV-100"
        assert draft.tenant_id == "tenant-1"

    def test_overdue_cannot_be_stored(self, draft):
        with pytest.raises(ValueError):
            InvoiceDocument(tenant_id="tenant-1", invoice=draft.invoice, status=InvoiceStatus.OVERDUE)

    def test_status_coerced_from_string(self, draft):
        doc = InvoiceDocument(tenant_id="tenant-1", invoice=draft.invoice, status="issued")
        assert doc.status is InvoiceStatus.ISSUED


class TestTransitions:

    def test_issue(self, draft):
        issued = transition(draft, "issue")
        assert issued.status is InvoiceStatus.ISSUED
        assert draft.status is InvoiceStatus.DRAFT

    def test_partial_then_full_payment(self, draft):
        issued = transition(draft, "issue")
        part = record_payment(issued, gbp("50.00"))
        assert part.status is InvoiceStatus.PARTIALLY_PAID
        assert part.invoice.balance_amount == gbp("70.00")

        paid = record_payment(part, gbp("70.00"))
        assert paid.status is InvoiceStatus.PAID
        assert paid.invoice.balance_amount.is_zero

    def test_overpayment_settles(self, draft):
        paid = record_payment(transition(draft, "issue"), gbp("200.00"))
        assert paid.status is InvoiceStatus.PAID
        assert paid.invoice.is_overpaid

    def test_payment_on_draft_rejected(self, draft):
        with pytest.raises(InvalidTransitionError):
            record_payment(draft, gbp("10.00"))

    def test_cancel_is_terminal(self, draft):
        cancelled = transition(transition(draft, "issue"), "cancel")
        assert cancelled.status is InvoiceStatus.CANCELLED
        with pytest.raises(TerminalStateError):
            transition(cancelled, "issue")
        with pytest.raises(TerminalStateError):
            record_payment(cancelled, gbp("1.00"))

    def test_refund_from_paid(self, draft):
        paid = record_payment(transition(draft, "issue"), gbp("120.00"))
        refunded = transition(paid, "refund")
        assert refunded.status is InvoiceStatus.REFUNDED
        assert INVOICE_WORKFLOW.allowed_actions("refunded") == ()

    def test_cannot_cancel_draft(self, draft):
        with pytest.raises(InvalidTransitionError):
            transition(draft, "cancel")

    def test_transition_is_logged(self, draft, captured_logs):
        transition(draft, "issue")
        record = [r for r in captured_logs() if r["message"] == "invoice_status_changed"][-1]
        assert record["to_status"] == "issued"


class TestEffectiveStatus:

    def test_open_and_past_due_is_overdue(self, draft):
        issued = transition(draft, "issue")
        assert effective_status(issued, date(2024, 6, 1)) is InvoiceStatus.OVERDUE
        assert issued.status is InvoiceStatus.ISSUED

    def test_on_due_date_is_not_overdue(self, draft):
        issued = transition(draft, "issue")
        assert effective_status(issued, date(2024, 5, 31)) is InvoiceStatus.ISSUED

    def test_draft_never_overdue(self, draft):
        assert effective_status(draft, date(2025, 1, 1)) is InvoiceStatus.DRAFT

    def test_paid_never_overdue(self, draft):
        paid = record_payment(transition(draft, "issue"), gbp("120.00"))
        assert effective_status(paid, date(2025, 1, 1)) is InvoiceStatus.PAID

    def test_partially_paid_past_due(self, draft):
        part = record_payment(transition(draft, "issue"), gbp("20.00"))
        assert effective_status(part, date(2024, 7, 1)) is InvoiceStatus.OVERDUE

    def test_overdue_invoice_can_still_be_paid(self, draft):
        issued = transition(draft, "issue")
        assert effective_status(issued, date(2024, 7, 1)) is InvoiceStatus.OVERDUE
        assert record_payment(issued, gbp("120.00")).status is InvoiceStatus.PAID
