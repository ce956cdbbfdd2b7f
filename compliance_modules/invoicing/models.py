"""
Invoicing Domain Models.

Invariants:
    - ``InvoiceDocument`` is frozen; every change produces a new document.
    - ``status`` holds only stored states. OVERDUE is never stored: it is
      derived from the due date by ``effective_status``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

from compliance_engines.invoice import ReconciledInvoice


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    ISSUED = "issued"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"  # derived only
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


OPEN_STATUSES = frozenset({InvoiceStatus.ISSUED, InvoiceStatus.PARTIALLY_PAID})


@dataclass(frozen=True)
class InvoiceDocument:
    """A reconciled invoice plus its stored lifecycle status."""

    tenant_id: str
    invoice: ReconciledInvoice
    status: InvoiceStatus = InvoiceStatus.DRAFT

    def __post_init__(self) -> None:
        status = InvoiceStatus(self.status)
        if status is InvoiceStatus.OVERDUE:
            raise ValueError("overdue is derived from the due date and cannot be stored")
        object.__setattr__(self, "status", status)

    @property
    def invoice_number(self) -> str:
        return self.invoice.header.invoice_number

    @property
    def due_date(self) -> date | None:
        return self.invoice.header.due_date

    def effective_status(self, as_of: date) -> InvoiceStatus:
        if (
            self.status in OPEN_STATUSES
            and self.due_date is not None
            and as_of > self.due_date
            and self.invoice.balance_amount.is_positive
        ):
            return InvoiceStatus.OVERDUE
        return self.status
