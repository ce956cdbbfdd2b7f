"""
Billing Domain Models.

Frozen DTOs for priced plans and per-tenant resource usage. Prices are
``Decimal``; the plan's guarded fields are exposed as a
``PlanDefinition`` for the namespace guard.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from compliance_engines.plan_codes import PlanDefinition
from compliance_engines.tier_limits import LimitedResource


@dataclass(frozen=True)
class PricingPlan:
    id: UUID
    code: str
    name: str
    tier: str
    currency: str
    base_price: Decimal = Decimal("0")
    country: str | None = None
    is_active: bool = True
    sort_order: int = 0

    @property
    def definition(self) -> PlanDefinition:
        return PlanDefinition(
            code=self.code,
            currency=self.currency,
            country=self.country,
            tier=self.tier,
            is_active=self.is_active,
        )


@dataclass(frozen=True)
class TenantUsage:
    tenant_id: str
    tier: str
    user_count: int = 0
    record_count: int = 0
    customer_count: int = 0

    def count_for(self, resource: LimitedResource) -> int:
        return {
            LimitedResource.USERS: self.user_count,
            LimitedResource.RECORDS: self.record_count,
            LimitedResource.CUSTOMERS: self.customer_count,
        }[LimitedResource(resource)]
