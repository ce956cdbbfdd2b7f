"""Invoice Workflows.

State machine for the invoice lifecycle. ``overdue`` is not a state here:
an issued or part-paid invoice past its due date is reported as overdue
by ``effective_status`` and still follows the issued/part-paid transitions.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date

from compliance_engines.invoice import apply_payment
from compliance_kernel.domain.values import Money
from compliance_kernel.domain.workflow import Guard, Transition, Workflow
from compliance_kernel.logging_config import get_logger
from compliance_modules.invoicing.models import OPEN_STATUSES, InvoiceDocument, InvoiceStatus

logger = get_logger("modules.invoicing.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

BALANCE_SETTLED = Guard(
    name="balance_settled",
    description="Balance due is zero or negative after the payment",
)

BALANCE_OUTSTANDING = Guard(
    name="balance_outstanding",
    description="Balance due remains positive after the payment",
)


# -----------------------------------------------------------------------------
# Invoice Workflow
# -----------------------------------------------------------------------------

INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Invoice lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "issued",
        "partially_paid",
        "paid",
        "cancelled",
        "refunded",
    ),
    transitions=(
        Transition("draft", "issued", action="issue"),
        Transition("issued", "partially_paid", action="part_pay", guard=BALANCE_OUTSTANDING),
        Transition("issued", "paid", action="pay", guard=BALANCE_SETTLED),
        Transition("partially_paid", "partially_paid", action="part_pay", guard=BALANCE_OUTSTANDING),
        Transition("partially_paid", "paid", action="pay", guard=BALANCE_SETTLED),
        Transition("issued", "cancelled", action="cancel"),
        Transition("partially_paid", "cancelled", action="cancel"),
        Transition("partially_paid", "refunded", action="refund"),
        Transition("paid", "refunded", action="refund"),
    ),
    terminal_states=("cancelled", "refunded"),
)


def effective_status(document: InvoiceDocument, as_of: date) -> InvoiceStatus:
    """Stored status, or OVERDUE when an open invoice is past due."""
    return document.effective_status(as_of)


def transition(document: InvoiceDocument, action: str) -> InvoiceDocument:
    """
    Apply a lifecycle action.

    Raises:
        TerminalStateError: the invoice is cancelled or refunded.
        InvalidTransitionError: ``action`` is not allowed from the status.
    """
    target = INVOICE_WORKFLOW.apply(document.status.value, action)
    logger.info("invoice_status_changed", extra={
        "invoice_number": document.invoice_number,
        "tenant_id": document.tenant_id,
        "from_status": document.status.value,
        "to_status": target,
        "action": action,
    })
    return replace(document, status=InvoiceStatus(target))


def record_payment(document: InvoiceDocument, amount: Money) -> InvoiceDocument:
    """
    Apply a payment and move to ``paid`` or ``partially_paid``.

    Raises:
        InvalidTransitionError / TerminalStateError: the invoice is not open.
        ValueError: the amount is not positive or in another currency.
    """
    if document.status not in OPEN_STATUSES:
        # raises the matching workflow error
        INVOICE_WORKFLOW.apply(document.status.value, "pay")

    updated = apply_payment(document.invoice, amount)
    action = "pay" if updated.is_settled else "part_pay"
    return transition(replace(document, invoice=updated), action)
