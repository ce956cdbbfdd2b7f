"""
Tier Limit Engine - resource ceilings and feature flags per subscription tier.

Responsibility:
    Looks up a tenant tier in the configured catalog and answers
    "may one more user/record/customer be created?" and "is this feature
    enabled?".

Architecture position:
    Engines -- pure, zero I/O. The catalog comes from configuration; the
    current counts come from the caller.

Invariants enforced:
    - Unlimited is ``None``. An unlimited limit always allows, with
      ``remaining=None``.
    - Otherwise ``allowed = count < limit`` and
      ``remaining = max(0, limit - count)``.
    - Unknown tier names fail closed: the lowest-rank tier's limits and
      features apply and the resolution is flagged ``is_fallback``.
    - Unknown features are disabled.

Concurrency:
    A check is read-then-decide. Two concurrent creations can both pass;
    the persistence layer must increment-or-reject atomically
    (see compliance_modules.billing.service.UsageService).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from compliance_kernel.logging_config import get_logger

logger = get_logger("engines.tier_limits")

UNLIMITED = None


class LimitedResource(str, Enum):
    USERS = "users"
    RECORDS = "records"
    CUSTOMERS = "customers"


@dataclass(frozen=True)
class TierLimits:
    """Per-resource ceilings. ``None`` means unlimited."""

    max_users: int | None
    max_records: int | None
    max_customers: int | None

    def __post_init__(self) -> None:
        for name in ("max_users", "max_records", "max_customers"):
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer or unlimited, got {value!r}")

    def for_resource(self, resource: LimitedResource) -> int | None:
        return getattr(self, f"max_{resource.value}")


@dataclass(frozen=True)
class TierDefinition:
    name: str
    rank: int
    limits: TierLimits
    features: frozenset[str] = field(default_factory=frozenset)
    aliases: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", self.name.lower())
        object.__setattr__(self, "features", frozenset(self.features))
        object.__setattr__(self, "aliases", tuple(a.lower() for a in self.aliases))


@dataclass(frozen=True)
class TierCatalog:
    """Ordered set of tiers. Shared read-only across tenants."""

    tiers: tuple[TierDefinition, ...]

    def __post_init__(self) -> None:
        if not self.tiers:
            raise ValueError("Tier catalog must define at least one tier")
        object.__setattr__(self, "tiers", tuple(sorted(self.tiers, key=lambda t: t.rank)))

    @classmethod
    def of(cls, tiers: Iterable[TierDefinition]) -> TierCatalog:
        return cls(tiers=tuple(tiers))

    @property
    def lowest(self) -> TierDefinition:
        return self.tiers[0]

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(t.name for t in self.tiers)

    def get(self, name: str) -> TierDefinition | None:
        key = (name or "").strip().lower()
        for tier in self.tiers:
            if key == tier.name or key in tier.aliases:
                return tier
        return None


@dataclass(frozen=True)
class TierResolution:
    requested: str
    tier: TierDefinition
    is_fallback: bool


@dataclass(frozen=True)
class LimitCheck:
    allowed: bool
    remaining: int | None
    limit: int | None
    current: int
    resource: LimitedResource
    tier: str
    is_fallback: bool = False

    @property
    def is_unlimited(self) -> bool:
        return self.limit is None


def resolve_tier(tier_name: str, catalog: TierCatalog) -> TierResolution:
    tier = catalog.get(tier_name)
    if tier is not None:
        return TierResolution(requested=tier_name, tier=tier, is_fallback=False)
    logger.warning("tier_unknown_fallback", extra={
        "requested_tier": tier_name,
        "fallback_tier": catalog.lowest.name,
    })
    return TierResolution(requested=tier_name, tier=catalog.lowest, is_fallback=True)


def check_limit(
    resource: LimitedResource | str,
    tier_name: str,
    current_count: int,
    catalog: TierCatalog,
) -> LimitCheck:
    """
    Decide whether one more ``resource`` may be created.

    Raises:
        ValueError: current_count is negative.
    """
    resource = LimitedResource(resource)
    if isinstance(current_count, bool) or not isinstance(current_count, int) or current_count < 0:
        raise ValueError(f"current_count must be a non-negative integer, got {current_count!r}")

    resolution = resolve_tier(tier_name, catalog)
    limit = resolution.tier.limits.for_resource(resource)

    if limit is None:
        allowed, remaining = True, None
    else:
        allowed = current_count < limit
        remaining = max(0, limit - current_count)

    if not allowed:
        logger.info("tier_limit_reached", extra={
            "tier": resolution.tier.name,
            "resource": resource.value,
            "limit": limit,
            "current": current_count,
        })

    return LimitCheck(
        allowed=allowed,
        remaining=remaining,
        limit=limit,
        current=current_count,
        resource=resource,
        tier=resolution.tier.name,
        is_fallback=resolution.is_fallback,
    )


def check_record_limit(tier_name: str, current_count: int, catalog: TierCatalog) -> LimitCheck:
    return check_limit(LimitedResource.RECORDS, tier_name, current_count, catalog)


def check_user_limit(tier_name: str, current_count: int, catalog: TierCatalog) -> LimitCheck:
    return check_limit(LimitedResource.USERS, tier_name, current_count, catalog)


def check_customer_limit(tier_name: str, current_count: int, catalog: TierCatalog) -> LimitCheck:
    return check_limit(LimitedResource.CUSTOMERS, tier_name, current_count, catalog)


def has_feature(tier_name: str, feature: str, catalog: TierCatalog) -> bool:
    """Flag lookup; unknown features and unknown tiers fail closed.

    An unknown tier is limited like the lowest tier but enables no features.
    """
    resolution = resolve_tier(tier_name, catalog)
    if resolution.is_fallback:
        return False
    return feature in resolution.tier.features


def minimum_tier_for(feature: str, catalog: TierCatalog) -> str | None:
    """Lowest-rank tier that enables ``feature`` (upgrade hint)."""
    for tier in catalog.tiers:
        if feature in tier.features:
            return tier.name
    return None


def tier_at_least(tier_name: str, minimum: str, catalog: TierCatalog) -> bool:
    """True when ``tier_name`` ranks at or above ``minimum``.

    Raises:
        ValueError: ``minimum`` is not a catalog tier.
    """
    floor = catalog.get(minimum)
    if floor is None:
        raise ValueError(f"Unknown minimum tier: {minimum!r}")
    return resolve_tier(tier_name, catalog).tier.rank >= floor.rank
