"""
Billing Services -- plan catalog writes and tier-limited resource usage.

Responsibility:
    Thin glue between the namespace guard / tier engine and the database.
    Every write is checked by the pure engine first; nothing is flushed
    for a rejected plan.

Architecture:
    compliance_modules -- thin glue (this layer).
    1. ``PlanCatalogService`` consults ``compliance_engines.plan_codes``
       before every insert and update, and runs the legacy cleanup.
    2. ``UsageService`` pairs ``compliance_engines.tier_limits`` with an
       atomic increment-or-reject UPDATE, closing the race the
       read-then-decide check leaves open.

Invariants:
    - Each service owns the transaction boundary: commit on success,
      rollback on failure.
    - A usage counter never exceeds its tier limit, even under concurrent
      callers: the limit is part of the UPDATE's WHERE clause.
    - Legacy cleanup is one UPDATE over the engine-selected codes, so it is
      idempotent and never touches a protected prefix.

Failure modes:
    - ``PlanCurrencyMismatchError``, ``ProtectedPrefixError``,
      ``PlanCodeCollisionError``, ``InvalidCurrencyError``: the guard
      rejected the plan; the session is untouched.
    - ``LimitExceededError``: the conditional UPDATE matched no row.
    - ``RecordNotFoundError``: unknown plan id or tenant.

Usage:
    catalog = PlanCatalogService(session, get_active_config())
    catalog.create_plan(plan)
    catalog.cleanup_legacy_plans()

    usage = UsageService(session, get_active_config())
    usage.ensure_tenant("t-1", "free")
    usage.consume("t-1", "records")
"""

from __future__ import annotations

from dataclasses import fields, replace
from typing import Any, NoReturn
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from compliance_config.schema import RuleRegistry
from compliance_engines.plan_codes import (
    PlanDefinition,
    plan_legacy_cleanup,
    validate_plan,
    validate_plan_update,
)
from compliance_engines.tier_limits import LimitCheck, LimitedResource, check_limit, resolve_tier
from compliance_kernel.domain.validation import RuleOutcome
from compliance_kernel.exceptions import (
    InvalidCurrencyError,
    LimitExceededError,
    PlanCodeCollisionError,
    PlanCurrencyMismatchError,
    ProtectedPrefixError,
    RecordNotFoundError,
)
from compliance_kernel.logging_config import get_logger
from compliance_modules.billing.models import PricingPlan, TenantUsage
from compliance_modules.billing.orm import PricingPlanModel, TenantUsageModel

logger = get_logger("modules.billing.service")

_GUARDED_FIELDS = frozenset(f.name for f in fields(PlanDefinition))
_PLAIN_FIELDS = frozenset({"name", "base_price", "sort_order"})


def _raise_for_rejection(outcome: RuleOutcome, plan: PlanDefinition) -> NoReturn:
    """Translate the guard's first blocking issue into its exception."""
    for issue in outcome.issues:
        details = issue.details or {}
        if issue.code == "CURRENCY_MISMATCH":
            raise PlanCurrencyMismatchError(
                plan.code, details["country"], details["expected"], details["received"]
            )
        if issue.code == "UNKNOWN_CURRENCY":
            raise InvalidCurrencyError(plan.currency)
        if issue.code in ("PREFIX_COUNTRY_MISMATCH", "MISSING_COUNTRY_PREFIX"):
            raise ProtectedPrefixError(plan.code, issue.message)
        if issue.code == "CODE_COLLISION":
            raise PlanCodeCollisionError(plan.code, details["existing_code"])
    raise ValueError(outcome.reason)


class PlanCatalogService:
    """
    Guarded writes to the pricing plan catalog.

    Contract:
        Callers supply a ``Session`` and the active ``RuleRegistry``.
        Every write runs the namespace guard first and commits only when
        it accepts.
    """

    def __init__(self, session: Session, config: RuleRegistry):
        self._session = session
        self._rules = config.plan_namespaces

    def _active_codes(self) -> list[str]:
        stmt = select(PricingPlanModel.code).where(PricingPlanModel.is_active.is_(True))
        return list(self._session.scalars(stmt))

    def _get_model(self, plan_id: UUID) -> PricingPlanModel:
        model = self._session.get(PricingPlanModel, plan_id)
        if model is None:
            raise RecordNotFoundError("PricingPlan", str(plan_id))
        return model

    def get_plan(self, plan_id: UUID) -> PricingPlan:
        return self._get_model(plan_id).to_dto()

    def list_plans(self, active_only: bool = True) -> list[PricingPlan]:
        stmt = select(PricingPlanModel).order_by(PricingPlanModel.sort_order, PricingPlanModel.code)
        if active_only:
            stmt = stmt.where(PricingPlanModel.is_active.is_(True))
        return [m.to_dto() for m in self._session.scalars(stmt)]

    def create_plan(self, plan: PricingPlan, actor_id: UUID | None = None) -> PricingPlan:
        active = self._active_codes() if plan.is_active else []
        outcome = validate_plan(plan.definition, active, self._rules)
        if not outcome:
            _raise_for_rejection(outcome, plan.definition)

        try:
            self._session.add(PricingPlanModel.from_dto(plan, created_by_id=actor_id))
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("pricing_plan_created", extra={
            "plan_code": plan.code,
            "country": plan.country,
            "currency": plan.currency,
        })
        return plan

    def update_plan(
        self,
        plan_id: UUID,
        actor_id: UUID | None = None,
        **changes: Any,
    ) -> PricingPlan:
        """
        Update a plan. Guarded fields are re-validated as a whole, so a
        currency-only change on a protected country is still rejected.

        Raises:
            ValueError: ``changes`` names an unknown field.
        """
        unknown = set(changes) - _GUARDED_FIELDS - _PLAIN_FIELDS
        if unknown:
            raise ValueError(f"Unknown plan fields: {sorted(unknown)}")

        model = self._get_model(plan_id)
        current = model.to_dto().definition
        guarded = {k: v for k, v in changes.items() if k in _GUARDED_FIELDS}
        if guarded:
            active = self._active_codes()
            outcome = validate_plan_update(current, guarded, active, self._rules)
            if not outcome:
                _raise_for_rejection(outcome, replace(current, **guarded))

        try:
            for name, value in changes.items():
                setattr(model, name, value.upper() if name == "currency" else value)
            model.updated_by_id = actor_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("pricing_plan_updated", extra={
            "plan_code": model.code,
            "changed_fields": sorted(changes),
        })
        return model.to_dto()

    def cleanup_legacy_plans(self, actor_id: UUID | None = None) -> int:
        """
        Deactivate active legacy plans. Safe to run any number of times;
        returns how many plans this run deactivated.
        """
        active = [
            m.to_dto().definition
            for m in self._session.scalars(
                select(PricingPlanModel).where(PricingPlanModel.is_active.is_(True))
            )
        ]
        targets = plan_legacy_cleanup(active, self._rules)
        if not targets:
            logger.info("legacy_plan_cleanup_noop")
            return 0

        stmt = (
            update(PricingPlanModel)
            .where(PricingPlanModel.is_active.is_(True))
            .where(PricingPlanModel.code.in_(sorted(targets)))
            .values(is_active=False, updated_by_id=actor_id)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self._session.execute(stmt)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        self._session.expire_all()

        logger.info("legacy_plans_deactivated", extra={
            "count": result.rowcount,
            "codes": sorted(targets),
        })
        return result.rowcount


_COUNTERS = {
    LimitedResource.USERS: TenantUsageModel.user_count,
    LimitedResource.RECORDS: TenantUsageModel.record_count,
    LimitedResource.CUSTOMERS: TenantUsageModel.customer_count,
}


class UsageService:
    """
    Per-tenant resource counters with atomic increment-or-reject.

    Contract:
        ``check`` is the engine's advisory read-then-decide answer.
        ``consume`` is authoritative: it increments only while the new
        count stays within the tier limit, in a single UPDATE.
    """

    def __init__(self, session: Session, config: RuleRegistry):
        self._session = session
        self._catalog = config.tier_catalog

    def _get_row(self, tenant_id: str) -> TenantUsageModel:
        row = self._session.scalars(
            select(TenantUsageModel).where(TenantUsageModel.tenant_id == tenant_id)
        ).first()
        if row is None:
            raise RecordNotFoundError("TenantUsage", tenant_id)
        return row

    def get_usage(self, tenant_id: str) -> TenantUsage:
        return self._get_row(tenant_id).to_dto()

    def ensure_tenant(self, tenant_id: str, tier: str) -> TenantUsage:
        """Create the usage row, or move an existing tenant to ``tier``."""
        row = self._session.scalars(
            select(TenantUsageModel).where(TenantUsageModel.tenant_id == tenant_id)
        ).first()
        try:
            if row is None:
                row = TenantUsageModel(tenant_id=tenant_id, tier=tier)
                self._session.add(row)
            else:
                row.tier = tier
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return row.to_dto()

    def check(self, tenant_id: str, resource: LimitedResource | str) -> LimitCheck:
        usage = self.get_usage(tenant_id)
        return check_limit(resource, usage.tier, usage.count_for(LimitedResource(resource)), self._catalog)

    def consume(
        self,
        tenant_id: str,
        resource: LimitedResource | str,
        amount: int = 1,
    ) -> TenantUsage:
        """
        Raises:
            LimitExceededError: the increment would pass the tier limit.
            RecordNotFoundError: the tenant has no usage row.
        """
        resource = LimitedResource(resource)
        if amount <= 0:
            raise ValueError(f"amount must be positive, got {amount}")
        row = self._get_row(tenant_id)
        limit = resolve_tier(row.tier, self._catalog).tier.limits.for_resource(resource)
        column = _COUNTERS[resource]

        stmt = (
            update(TenantUsageModel)
            .where(TenantUsageModel.tenant_id == tenant_id)
            .values({column.key: column + amount})
            .execution_options(synchronize_session=False)
        )
        if limit is not None:
            stmt = stmt.where(column + amount <= limit)

        try:
            result = self._session.execute(stmt)
            if result.rowcount == 1:
                self._session.commit()
            else:
                self._session.rollback()
        except Exception:
            self._session.rollback()
            raise

        self._session.expire(row)
        if result.rowcount != 1:
            current = getattr(row, column.key)
            logger.warning("usage_limit_rejected", extra={
                "tenant_id": tenant_id,
                "resource": resource.value,
                "limit": limit,
                "current": current,
                "requested": amount,
            })
            raise LimitExceededError(tenant_id, resource.value, limit, current)

        logger.info("usage_consumed", extra={
            "tenant_id": tenant_id,
            "resource": resource.value,
            "amount": amount,
        })
        return row.to_dto()

    def release(
        self,
        tenant_id: str,
        resource: LimitedResource | str,
        amount: int = 1,
    ) -> TenantUsage:
        """Give back ``amount`` units; counters never go below zero."""
        resource = LimitedResource(resource)
        if amount <= 0:
            raise ValueError(f"amount must be positive, got {amount}")
        row = self._get_row(tenant_id)
        column = _COUNTERS[resource]
        stmt = (
            update(TenantUsageModel)
            .where(TenantUsageModel.tenant_id == tenant_id)
            .where(column >= amount)
            .values({column.key: column - amount})
            .execution_options(synchronize_session=False)
        )
        try:
            result = self._session.execute(stmt)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        self._session.expire(row)
        if result.rowcount != 1:
            raise ValueError(f"Cannot release {amount} {resource.value} for tenant {tenant_id}")
        return row.to_dto()

