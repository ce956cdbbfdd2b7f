"""
Invoice Reconciliation Engine - roll line items up into balanced totals.

Responsibility:
    Given an invoice header and its ordered line items, compute each line's
    gross, net and VAT independently, then derive the header totals:

        subtotal       = sum(line net)
        tax_amount     = sum(line VAT)
        total_amount   = subtotal - discount + delivery + installation + tax
        balance_amount = total_amount - paid_amount

Architecture position:
    Engines -- pure, zero I/O. Uses compliance_engines.vat per line.

Invariants enforced:
    - Line net is rounded to the currency minor unit before VAT is applied,
      and VAT is rounded per line, so every stored figure is already at
      minor-unit precision and both header equations hold exactly.
    - All arithmetic happens in the invoice currency. The exchange rate is
      informational: it is applied once, only by ``to_base_currency``.
    - balance_amount is never clamped. Overpayment is reported as a
      negative balance (``is_overpaid`` / ``refundable_amount``);
      ``display_balance`` is the clamped presentation value.
    - Line order is preserved for display; totals do not depend on it.

Failure modes:
    - ``validate_invoice`` and ``try_reconcile_invoice`` return a rejected
      RuleOutcome listing every malformed field; this is the path for user
      input. ``reconcile_invoice`` raises ValueError for the same input and
      is meant for callers that have already validated.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal

from compliance_engines.tracer import traced_engine
from compliance_engines.vat import STANDARD, VatCalculation, VatFlags, VatRateSchedule, calculate_vat
from compliance_kernel.domain.validation import RuleOutcome, ValidationIssue
from compliance_kernel.domain.values import Currency, ExchangeRate, Money, to_decimal
from compliance_kernel.logging_config import get_logger

logger = get_logger("engines.invoice")


@dataclass(frozen=True)
class InvoiceLineItem:
    """One priced line. Owned by exactly one invoice."""

    description: str
    quantity: int
    unit_price: Money
    rate_class: str = STANDARD
    discount: Money | None = None

    @property
    def gross_amount(self) -> Money:
        return self.unit_price * self.quantity

    @property
    def discount_amount(self) -> Money:
        return self.discount if self.discount is not None else Money.zero(self.unit_price.currency)


@dataclass(frozen=True)
class InvoiceHeader:
    """
    Header-level inputs. Optional amounts default to zero in the invoice
    currency.
    """

    invoice_number: str
    currency: Currency
    base_currency: Currency | None = None
    exchange_rate: Decimal | None = None
    discount_amount: Money | None = None
    delivery_charges: Money | None = None
    installation_charges: Money | None = None
    paid_amount: Money | None = None
    issue_date: date | None = None
    due_date: date | None = None
    flags: VatFlags = field(default_factory=VatFlags)

    def __post_init__(self) -> None:
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        if isinstance(self.base_currency, str):
            object.__setattr__(self, "base_currency", Currency(self.base_currency))
        if self.exchange_rate is not None:
            object.__setattr__(self, "exchange_rate", to_decimal(self.exchange_rate, "exchange_rate"))
        for name in ("discount_amount", "delivery_charges", "installation_charges", "paid_amount"):
            if getattr(self, name) is None:
                object.__setattr__(self, name, Money.zero(self.currency))

    @property
    def conversion(self) -> ExchangeRate | None:
        if self.base_currency is None or self.exchange_rate is None:
            return None
        return ExchangeRate(
            from_currency=self.currency,
            to_currency=self.base_currency,
            rate=self.exchange_rate,
        )


@dataclass(frozen=True)
class ReconciledLine:
    line: InvoiceLineItem
    gross_amount: Money
    net_amount: Money
    vat: VatCalculation

    @property
    def tax_amount(self) -> Money:
        return self.vat.vat_amount

    @property
    def total_amount(self) -> Money:
        return self.vat.total_amount


@dataclass(frozen=True)
class ReconciledInvoice:
    """Header plus computed aggregates. Every field is re-derived, never edited."""

    header: InvoiceHeader
    lines: tuple[ReconciledLine, ...]
    subtotal: Money
    discount_amount: Money
    delivery_charges: Money
    installation_charges: Money
    tax_amount: Money
    total_amount: Money
    paid_amount: Money
    balance_amount: Money

    @property
    def currency(self) -> Currency:
        return self.header.currency

    @property
    def line_items(self) -> tuple[InvoiceLineItem, ...]:
        return tuple(rl.line for rl in self.lines)

    @property
    def is_overpaid(self) -> bool:
        return self.balance_amount.is_negative

    @property
    def is_settled(self) -> bool:
        return not self.balance_amount.is_positive

    @property
    def refundable_amount(self) -> Money:
        if self.is_overpaid:
            return -self.balance_amount
        return Money.zero(self.currency)

    @property
    def display_balance(self) -> Money:
        if self.is_overpaid:
            return Money.zero(self.currency)
        return self.balance_amount

    @property
    def has_configuration_gap(self) -> bool:
        return any(rl.vat.configuration_gap for rl in self.lines)

    def vat_summary(self) -> dict[str, tuple[Money, Money]]:
        """Net and VAT per rate type, in first-seen order."""
        summary: dict[str, tuple[Money, Money]] = {}
        zero = Money.zero(self.currency)
        for rl in self.lines:
            net, tax = summary.get(rl.vat.rate_type, (zero, zero))
            summary[rl.vat.rate_type] = (net + rl.net_amount, tax + rl.tax_amount)
        return summary

    def to_base_currency(self, amount: Money) -> Money:
        """Convert one invoice-currency amount to the tenant base currency.

        Stored amounts stay authoritative in the invoice currency; this is
        the only place the exchange rate is applied.
        """
        conversion = self.header.conversion
        if conversion is None:
            if self.header.base_currency in (None, self.currency):
                return amount
            raise ValueError(
                f"Invoice {self.header.invoice_number} has no exchange rate to "
                f"{self.header.base_currency}"
            )
        return conversion.convert(amount)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _money_issues(value: Money | None, currency: Currency, field_name: str) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    if value is None:
        return issues
    if value.currency != currency:
        issues.append(ValidationIssue(
            code="CURRENCY_MISMATCH",
            message=f"{field_name} is in {value.currency}, invoice is in {currency}",
            field=field_name,
        ))
    elif value.is_negative:
        issues.append(ValidationIssue(
            code="NEGATIVE_AMOUNT",
            message=f"{field_name} cannot be negative",
            field=field_name,
        ))
    return issues


def validate_invoice(
    header: InvoiceHeader,
    line_items: Sequence[InvoiceLineItem],
) -> RuleOutcome[None]:
    """Check every input constraint; return all issues at once."""
    issues: list[ValidationIssue] = []
    currency = header.currency

    if header.exchange_rate is not None and header.exchange_rate <= 0:
        issues.append(ValidationIssue(
            code="INVALID_EXCHANGE_RATE",
            message="exchange_rate must be positive",
            field="exchange_rate",
        ))
    for name in ("discount_amount", "delivery_charges", "installation_charges", "paid_amount"):
        issues.extend(_money_issues(getattr(header, name), currency, name))

    for index, line in enumerate(line_items):
        prefix = f"line_items[{index}]"
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity <= 0:
            issues.append(ValidationIssue(
                code="INVALID_QUANTITY",
                message="quantity must be a positive integer",
                field=f"{prefix}.quantity",
                details={"quantity": line.quantity},
            ))
            continue
        price_issues = _money_issues(line.unit_price, currency, f"{prefix}.unit_price")
        discount_issues = _money_issues(line.discount, currency, f"{prefix}.discount")
        issues.extend(price_issues)
        issues.extend(discount_issues)
        if not price_issues and not discount_issues and line.discount_amount > line.gross_amount:
            issues.append(ValidationIssue(
                code="DISCOUNT_EXCEEDS_GROSS",
                message="line discount cannot exceed quantity x unit price",
                field=f"{prefix}.discount",
            ))

    if issues:
        return RuleOutcome.rejected(*issues)
    return RuleOutcome.ok()


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


def _reconcile_line(
    line: InvoiceLineItem,
    schedule: VatRateSchedule,
    flags: VatFlags,
) -> ReconciledLine:
    gross = line.gross_amount
    net = (gross - line.discount_amount).round()
    vat = calculate_vat(net, line.rate_class, schedule, flags)
    return ReconciledLine(line=line, gross_amount=gross, net_amount=net, vat=vat)


def _derive_totals(
    header: InvoiceHeader,
    lines: tuple[ReconciledLine, ...],
) -> ReconciledInvoice:
    currency = header.currency
    subtotal = Money.sum((rl.net_amount for rl in lines), currency)
    tax_amount = Money.sum((rl.tax_amount for rl in lines), currency)
    total_amount = (
        subtotal
        - header.discount_amount
        + header.delivery_charges
        + header.installation_charges
        + tax_amount
    )
    balance_amount = total_amount - header.paid_amount
    return ReconciledInvoice(
        header=header,
        lines=lines,
        subtotal=subtotal,
        discount_amount=header.discount_amount,
        delivery_charges=header.delivery_charges,
        installation_charges=header.installation_charges,
        tax_amount=tax_amount,
        total_amount=total_amount,
        paid_amount=header.paid_amount,
        balance_amount=balance_amount,
    )


@traced_engine("invoice_reconciliation", "1.0", fingerprint_fields=("header", "line_items"))
def reconcile_invoice(
    header: InvoiceHeader,
    line_items: Sequence[InvoiceLineItem],
    schedule: VatRateSchedule,
) -> ReconciledInvoice:
    """
    Compute per-line VAT and header totals.

    Raises:
        ValueError: the input fails ``validate_invoice``. Use
            ``try_reconcile_invoice`` for unvalidated input.
    """
    outcome = validate_invoice(header, line_items)
    if not outcome:
        logger.warning("invoice_validation_failed", extra={
            "invoice_number": header.invoice_number,
            "issue_codes": list(outcome.codes),
        })
        raise ValueError(
            f"Invoice {header.invoice_number} is invalid: "
            + "; ".join(f"{i.field}: {i.message}" for i in outcome.issues)
        )

    lines = tuple(_reconcile_line(line, schedule, header.flags) for line in line_items)
    invoice = _derive_totals(header, lines)

    logger.info("invoice_reconciled", extra={
        "invoice_number": header.invoice_number,
        "currency": header.currency.code,
        "line_count": len(lines),
        "subtotal": str(invoice.subtotal.amount),
        "tax_amount": str(invoice.tax_amount.amount),
        "total_amount": str(invoice.total_amount.amount),
        "balance_amount": str(invoice.balance_amount.amount),
        "configuration_gap": invoice.has_configuration_gap,
    })
    if invoice.is_overpaid:
        logger.warning("invoice_overpaid", extra={
            "invoice_number": header.invoice_number,
            "refundable_amount": str(invoice.refundable_amount.amount),
        })
    return invoice


def try_reconcile_invoice(
    header: InvoiceHeader,
    line_items: Sequence[InvoiceLineItem],
    schedule: VatRateSchedule,
) -> RuleOutcome[ReconciledInvoice]:
    """Validate then reconcile; malformed input comes back as a rejection."""
    outcome = validate_invoice(header, line_items)
    if not outcome:
        logger.info("invoice_rejected", extra={
            "invoice_number": header.invoice_number,
            "issue_codes": list(outcome.codes),
        })
        return RuleOutcome.rejected(*outcome.issues)
    return RuleOutcome.ok(reconcile_invoice(header, line_items, schedule))


def apply_payment(invoice: ReconciledInvoice, amount: Money) -> ReconciledInvoice:
    """Record a payment: paid and balance are re-derived, lines untouched.

    Raises:
        ValueError: amount is not positive or not in the invoice currency.
    """
    if amount.currency != invoice.currency:
        raise ValueError(
            f"Payment in {amount.currency} cannot settle a {invoice.currency} invoice"
        )
    if not amount.is_positive:
        raise ValueError(f"Payment amount must be positive: {amount}")

    header = replace(invoice.header, paid_amount=invoice.paid_amount + amount)
    updated = _derive_totals(header, invoice.lines)
    logger.info("invoice_payment_applied", extra={
        "invoice_number": header.invoice_number,
        "amount": str(amount.amount),
        "paid_amount": str(updated.paid_amount.amount),
        "balance_amount": str(updated.balance_amount.amount),
    })
    return updated
