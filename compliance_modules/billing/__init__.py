"""Billing: pricing plan catalog and tier-limited usage counters."""

from compliance_modules.billing.models import PricingPlan, TenantUsage
from compliance_modules.billing.service import PlanCatalogService, UsageService

__all__ = [
    "PlanCatalogService",
    "PricingPlan",
    "TenantUsage",
    "UsageService",
]
