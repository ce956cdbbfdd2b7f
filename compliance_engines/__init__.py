"""
Module: compliance_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure rule
    engines. This is the import surface for compliance_modules and callers.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import compliance_kernel (and sibling engine modules).
    MUST NOT import compliance_modules.

Invariants enforced:
    - Purity: engines never read the system clock. Time arrives through an
      injected ``Clock`` or an explicit datetime.
    - Decimal-only arithmetic through ``Money``; floats are rejected.
    - Determinism: identical inputs always produce identical outputs
      (reference numbers excepted, which callers may pass in).

Audit relevance:
    Calculators are wrapped with ``@traced_engine`` and emit
    COMPLIANCE_ENGINE_TRACE records (engine name, version, input
    fingerprint, duration).

Usage:
    from compliance_engines import calculate_vat, reconcile_invoice
    from compliance_engines import check_record_limit, assess_breach_severity
"""

from compliance_kernel.logging_config import get_logger

logger = get_logger("engines")

from compliance_engines.breach import (
    BreachAssessment,
    BreachFacts,
    BreachRules,
    DataBreach,
    RiskToRights,
    Severity,
    assess,
    assess_breach_severity,
    report_breach,
)
from compliance_engines.gdpr import (
    ConsentRecord,
    DsarRequest,
    GdprRules,
    RetentionAction,
    RetentionLog,
    RetentionLogEntry,
    RetentionPolicy,
    RetentionPolicyTemplate,
    advance_dsar_request,
    create_dsar_request,
    create_retention_policy,
    default_retention_policies,
    generate_reference_number,
    log_retention_action,
    mark_policy_reviewed,
    record_consent,
    update_retention_policy,
    update_dsar_request,
    withdraw_consent,
)
from compliance_engines.invoice import (
    InvoiceHeader,
    InvoiceLineItem,
    ReconciledInvoice,
    ReconciledLine,
    apply_payment,
    reconcile_invoice,
    try_reconcile_invoice,
    validate_invoice,
)
from compliance_engines.plan_codes import (
    PlanDefinition,
    PlanNamespace,
    PlanNamespaceRules,
    apply_legacy_cleanup,
    check_namespace_isolation,
    namespace_for,
    normalize_plan_code,
    plan_legacy_cleanup,
    validate_plan,
    validate_plan_code_currency,
    validate_plan_update,
)
from compliance_engines.regional_tax import (
    GstRates,
    SstCategory,
    SstRates,
    SupplyType,
    TaxBreakdown,
    TaxComponent,
    UsSalesTaxRates,
    calculate_gst,
    calculate_sst,
    calculate_us_sales_tax,
    supply_type_for,
)
from compliance_engines.tax_identifier import (
    TaxIdentifier,
    TaxIdentifierRegistry,
    TaxIdentifierResult,
    validate_tax_identifier,
)
from compliance_engines.tier_limits import (
    LimitCheck,
    LimitedResource,
    TierCatalog,
    TierDefinition,
    TierLimits,
    check_customer_limit,
    check_record_limit,
    check_user_limit,
    has_feature,
    minimum_tier_for,
    resolve_tier,
    tier_at_least,
)
from compliance_engines.tracer import traced_engine
from compliance_engines.vat import (
    VatCalculation,
    VatFlags,
    VatRateSchedule,
    calculate_vat,
    resolve_schedule,
)

__all__ = [
    # Tax identifiers
    "TaxIdentifier",
    "TaxIdentifierRegistry",
    "TaxIdentifierResult",
    "validate_tax_identifier",
    # VAT
    "VatCalculation",
    "VatFlags",
    "VatRateSchedule",
    "calculate_vat",
    "resolve_schedule",
    # Regional taxes
    "GstRates",
    "SstCategory",
    "SstRates",
    "SupplyType",
    "TaxBreakdown",
    "TaxComponent",
    "UsSalesTaxRates",
    "calculate_gst",
    "calculate_sst",
    "calculate_us_sales_tax",
    "supply_type_for",
    # Invoices
    "InvoiceHeader",
    "InvoiceLineItem",
    "ReconciledInvoice",
    "ReconciledLine",
    "apply_payment",
    "reconcile_invoice",
    "try_reconcile_invoice",
    "validate_invoice",
    # Tiers
    "LimitCheck",
    "LimitedResource",
    "TierCatalog",
    "TierDefinition",
    "TierLimits",
    "check_customer_limit",
    "check_record_limit",
    "check_user_limit",
    "has_feature",
    "minimum_tier_for",
    "resolve_tier",
    "tier_at_least",
    # Plan codes
    "PlanDefinition",
    "PlanNamespace",
    "PlanNamespaceRules",
    "apply_legacy_cleanup",
    "check_namespace_isolation",
    "namespace_for",
    "normalize_plan_code",
    "plan_legacy_cleanup",
    "validate_plan",
    "validate_plan_code_currency",
    "validate_plan_update",
    # GDPR
    "ConsentRecord",
    "DsarRequest",
    "GdprRules",
    "RetentionAction",
    "RetentionLog",
    "RetentionLogEntry",
    "RetentionPolicy",
    "RetentionPolicyTemplate",
    "advance_dsar_request",
    "create_dsar_request",
    "create_retention_policy",
    "default_retention_policies",
    "generate_reference_number",
    "log_retention_action",
    "mark_policy_reviewed",
    "record_consent",
    "update_dsar_request",
    "update_retention_policy",
    "withdraw_consent",
    # Breach
    "BreachAssessment",
    "BreachFacts",
    "BreachRules",
    "DataBreach",
    "RiskToRights",
    "Severity",
    "assess",
    "assess_breach_severity",
    "report_breach",
    # Tracing
    "traced_engine",
]

logger.debug("engines_package_loaded", extra={
    "modules": [
        "tax_identifier", "vat", "regional_tax", "invoice",
        "tier_limits", "plan_codes", "gdpr", "breach",
    ],
})
