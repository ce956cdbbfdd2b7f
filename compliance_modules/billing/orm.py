"""
Billing ORM Persistence Models (``compliance_modules.billing.orm``).

Responsibility:
    SQLAlchemy companions for ``PricingPlan`` and ``TenantUsage`` with
    ``to_dto()`` / ``from_dto()`` conversion.

Invariants enforced:
    - ``pricing_plans.code`` is unique. Normalized collisions between
      active codes are rejected earlier by the namespace guard.
    - ``base_price`` is Decimal (exact string storage) -- NEVER float.
    - One usage row per tenant; counters are changed only through
      ``UsageService``'s conditional UPDATEs.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from compliance_kernel.db.base import TrackedBase


class PricingPlanModel(TrackedBase):
    """ORM model for ``PricingPlan``."""

    __tablename__ = "pricing_plans"

    code: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    tier: Mapped[str] = mapped_column(String(50), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    country: Mapped[str | None] = mapped_column(String(2), nullable=True)
    base_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("code", name="uq_pricing_plan_code"),
        Index("idx_pricing_plan_active", "is_active"),
        Index("idx_pricing_plan_country", "country"),
    )

    def to_dto(self):
        from compliance_modules.billing.models import PricingPlan
        return PricingPlan(
            id=self.id,
            code=self.code,
            name=self.name,
            tier=self.tier,
            currency=self.currency,
            base_price=self.base_price,
            country=self.country,
            is_active=self.is_active,
            sort_order=self.sort_order,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID | None = None) -> "PricingPlanModel":
        return cls(
            id=dto.id,
            code=dto.code,
            name=dto.name,
            tier=dto.tier,
            currency=dto.currency.upper(),
            base_price=dto.base_price,
            country=dto.country,
            is_active=dto.is_active,
            sort_order=dto.sort_order,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<PricingPlanModel {self.code} ({self.currency}, active={self.is_active})>"


class TenantUsageModel(TrackedBase):
    """ORM model for ``TenantUsage``."""

    __tablename__ = "tenant_usage"

    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    tier: Mapped[str] = mapped_column(String(50), nullable=False)
    user_count: Mapped[int] = mapped_column(default=0, nullable=False)
    record_count: Mapped[int] = mapped_column(default=0, nullable=False)
    customer_count: Mapped[int] = mapped_column(default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", name="uq_tenant_usage_tenant"),
        CheckConstraint("user_count >= 0", name="ck_tenant_usage_users"),
        CheckConstraint("record_count >= 0", name="ck_tenant_usage_records"),
        CheckConstraint("customer_count >= 0", name="ck_tenant_usage_customers"),
    )

    def to_dto(self):
        from compliance_modules.billing.models import TenantUsage
        return TenantUsage(
            tenant_id=self.tenant_id,
            tier=self.tier,
            user_count=self.user_count,
            record_count=self.record_count,
            customer_count=self.customer_count,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID | None = None) -> "TenantUsageModel":
        return cls(
            tenant_id=dto.tenant_id,
            tier=dto.tier,
            user_count=dto.user_count,
            record_count=dto.record_count,
            customer_count=dto.customer_count,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<TenantUsageModel {self.tenant_id} ({self.tier})>"
