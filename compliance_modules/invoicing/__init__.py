"""Invoicing: invoice lifecycle over reconciled invoices."""

from compliance_modules.invoicing.models import InvoiceDocument, InvoiceStatus
from compliance_modules.invoicing.workflows import (
    INVOICE_WORKFLOW,
    effective_status,
    record_payment,
    transition,
)

__all__ = [
    "INVOICE_WORKFLOW",
    "InvoiceDocument",
    "InvoiceStatus",
    "effective_status",
    "record_payment",
    "transition",
]
