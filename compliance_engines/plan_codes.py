"""
Plan-Code Namespace Guard - country-prefixed plan codes and pinned currencies.

Responsibility:
    Decides, before any write, whether a pricing plan may be created or
    updated, and which legacy codes a cleanup run may deactivate.

Architecture position:
    Engines -- pure, zero I/O. The caller persists; this module only says
    yes or no (RuleOutcome) and the caller raises before writing.

Namespace model:
    Every managed country owns one prefix (``india_``, ``uk_``, ``ae_`` ...)
    and one mandated currency. A code's namespace is derived from its
    normalized prefix. A code with no recognized prefix is legacy. Every
    namespace prefix is protected: legacy handling never touches it.

Invariants enforced:
    - A plan for a managed country uses that country's currency, on create
      and on every update, even when only the currency changes.
    - A prefixed code belongs to the prefix's country and no other.
    - No two active codes collide once normalized (lowercase, trimmed,
      ``-`` -> ``_``).
    - No legacy code carries a protected prefix; prefixes are disjoint.
    - Legacy cleanup is idempotent and never selects a protected code.

Issue codes:
    EMPTY_PLAN_CODE, UNKNOWN_CURRENCY, CURRENCY_MISMATCH,
    PREFIX_COUNTRY_MISMATCH, MISSING_COUNTRY_PREFIX, CODE_COLLISION,
    LEGACY_CODE_PROTECTED, OVERLAPPING_PREFIXES, DUPLICATE_COUNTRY
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any

from compliance_kernel.domain.currency import CurrencyRegistry
from compliance_kernel.domain.validation import RuleOutcome, ValidationIssue
from compliance_kernel.logging_config import get_logger

logger = get_logger("engines.plan_codes")


def normalize_plan_code(code: str) -> str:
    return (code or "").strip().lower().replace("-", "_")


@dataclass(frozen=True)
class PlanNamespace:
    country: str
    prefix: str
    currency: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "country", self.country.upper())
        object.__setattr__(self, "prefix", normalize_plan_code(self.prefix))
        object.__setattr__(self, "currency", self.currency.upper())

    def owns(self, code: str) -> bool:
        return normalize_plan_code(code).startswith(self.prefix)


@dataclass(frozen=True)
class PlanNamespaceRules:
    """Protected namespaces, the legacy code set and country-code aliases."""

    namespaces: tuple[PlanNamespace, ...]
    legacy_codes: frozenset[str] = field(default_factory=frozenset)
    country_aliases: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "namespaces", tuple(self.namespaces))
        object.__setattr__(self, "legacy_codes", frozenset(self.legacy_codes))
        object.__setattr__(self, "country_aliases", MappingProxyType(
            {k.upper(): v.upper() for k, v in self.country_aliases.items()}
        ))

    @property
    def protected_prefixes(self) -> tuple[str, ...]:
        return tuple(ns.prefix for ns in self.namespaces)

    @property
    def normalized_legacy_codes(self) -> frozenset[str]:
        return frozenset(normalize_plan_code(c) for c in self.legacy_codes)

    def resolve_country(self, country: str | None) -> str | None:
        if not country:
            return None
        code = country.strip().upper()
        return self.country_aliases.get(code, code)

    def for_country(self, country: str | None) -> PlanNamespace | None:
        code = self.resolve_country(country)
        for ns in self.namespaces:
            if ns.country == code:
                return ns
        return None

    def namespace_for(self, code: str) -> PlanNamespace | None:
        for ns in self.namespaces:
            if ns.owns(code):
                return ns
        return None


@dataclass(frozen=True)
class PlanDefinition:
    """The guarded fields of a pricing plan."""

    code: str
    currency: str
    country: str | None = None
    tier: str | None = None
    is_active: bool = True

    @property
    def normalized_code(self) -> str:
        return normalize_plan_code(self.code)


def namespace_for(code: str, rules: PlanNamespaceRules) -> PlanNamespace | None:
    """Country namespace of ``code``, or None for a legacy code."""
    return rules.namespace_for(code)


def is_legacy_code(code: str, rules: PlanNamespaceRules) -> bool:
    return rules.namespace_for(code) is None


def validate_plan_code_currency(
    country: str | None,
    currency: str,
    rules: PlanNamespaceRules,
) -> RuleOutcome[None]:
    """ok, or rejected when a managed country is priced in another currency."""
    currency_code = (currency or "").strip().upper()
    if not CurrencyRegistry.is_valid(currency_code):
        return RuleOutcome.reject(
            "UNKNOWN_CURRENCY",
            f"Unknown currency code: {currency!r}",
            field="currency",
            currency=currency,
        )
    ns = rules.for_country(country)
    if ns is not None and ns.currency != currency_code:
        return RuleOutcome.reject(
            "CURRENCY_MISMATCH",
            f"Plans for {ns.country} must be priced in {ns.currency}, not {currency_code}",
            field="currency",
            country=ns.country,
            expected=ns.currency,
            received=currency_code,
        )
    return RuleOutcome.ok()


def _collision(code: str, active_codes: Iterable[str], ignore: str | None = None) -> str | None:
    normalized = normalize_plan_code(code)
    ignored = normalize_plan_code(ignore) if ignore is not None else None
    for existing in active_codes:
        existing_normalized = normalize_plan_code(existing)
        if existing_normalized == ignored:
            continue
        if existing_normalized == normalized:
            return existing
    return None


def _plan_issues(
    plan: PlanDefinition,
    active_codes: Iterable[str],
    rules: PlanNamespaceRules,
    ignore_code: str | None = None,
) -> list[ValidationIssue]:
    if not plan.normalized_code:
        return [ValidationIssue("EMPTY_PLAN_CODE", "Plan code cannot be empty", field="code")]

    issues: list[ValidationIssue] = list(
        validate_plan_code_currency(plan.country, plan.currency, rules).issues
    )
    country = rules.resolve_country(plan.country)
    owner = rules.namespace_for(plan.code)
    country_ns = rules.for_country(country)

    if owner is not None and owner.country != country:
        issues.append(ValidationIssue(
            code="PREFIX_COUNTRY_MISMATCH",
            message=f"Code {plan.code!r} is in the {owner.country} namespace, plan country is {country}",
            field="code",
            details={"prefix": owner.prefix, "namespace_country": owner.country, "country": country},
        ))
    elif owner is None and country_ns is not None:
        issues.append(ValidationIssue(
            code="MISSING_COUNTRY_PREFIX",
            message=f"Plans for {country_ns.country} must use the {country_ns.prefix!r} prefix",
            field="code",
            details={"expected_prefix": country_ns.prefix},
        ))

    existing = _collision(plan.code, active_codes, ignore=ignore_code)
    if existing is not None:
        issues.append(ValidationIssue(
            code="CODE_COLLISION",
            message=f"Code {plan.code!r} collides with active code {existing!r}",
            field="code",
            details={"existing_code": existing},
        ))
    return issues


def validate_plan(
    plan: PlanDefinition,
    active_codes: Iterable[str],
    rules: PlanNamespaceRules,
) -> RuleOutcome[PlanDefinition]:
    """Guard a plan creation. Consult before the insert, never after."""
    issues = _plan_issues(plan, active_codes, rules)
    if issues:
        logger.info("plan_rejected", extra={
            "plan_code": plan.code,
            "issue_codes": [i.code for i in issues],
        })
        return RuleOutcome.rejected(*issues)
    return RuleOutcome.ok(plan)


_UPDATABLE = frozenset(f.name for f in fields(PlanDefinition))


def validate_plan_update(
    current: PlanDefinition,
    changes: Mapping[str, Any],
    active_codes: Iterable[str],
    rules: PlanNamespaceRules,
) -> RuleOutcome[PlanDefinition]:
    """
    Guard a plan update: merge ``changes`` into ``current`` and re-validate
    the whole result. A currency-only change is checked like any other.

    Raises:
        ValueError: ``changes`` names a field PlanDefinition does not have.
    """
    unknown = set(changes) - _UPDATABLE
    if unknown:
        raise ValueError(f"Unknown plan fields: {sorted(unknown)}")
    merged = replace(current, **changes)
    issues = _plan_issues(merged, active_codes, rules, ignore_code=current.code)
    if issues:
        logger.info("plan_update_rejected", extra={
            "plan_code": current.code,
            "changed_fields": sorted(changes),
            "issue_codes": [i.code for i in issues],
        })
        return RuleOutcome.rejected(*issues)
    return RuleOutcome.ok(merged)


def check_namespace_isolation(rules: PlanNamespaceRules) -> RuleOutcome[None]:
    """
    Structural checks over the rule set itself:

    - no legacy code starts with a protected prefix
    - no prefix is a prefix of another
    - one namespace per country
    """
    issues: list[ValidationIssue] = []
    for legacy in sorted(rules.normalized_legacy_codes):
        ns = rules.namespace_for(legacy)
        if ns is not None:
            issues.append(ValidationIssue(
                code="LEGACY_CODE_PROTECTED",
                message=f"Legacy code {legacy!r} carries the protected prefix {ns.prefix!r}",
                details={"code": legacy, "prefix": ns.prefix},
            ))

    prefixes = rules.protected_prefixes
    for i, a in enumerate(prefixes):
        for b in prefixes[i + 1:]:
            if a.startswith(b) or b.startswith(a):
                issues.append(ValidationIssue(
                    code="OVERLAPPING_PREFIXES",
                    message=f"Prefixes {a!r} and {b!r} overlap",
                    details={"prefixes": [a, b]},
                ))

    seen: set[str] = set()
    for ns in rules.namespaces:
        if ns.country in seen:
            issues.append(ValidationIssue(
                code="DUPLICATE_COUNTRY",
                message=f"Country {ns.country} has more than one namespace",
                details={"country": ns.country},
            ))
        seen.add(ns.country)

    if issues:
        return RuleOutcome.rejected(*issues)
    return RuleOutcome.ok()


def plan_legacy_cleanup(
    plans: Iterable[PlanDefinition],
    rules: PlanNamespaceRules,
) -> frozenset[str]:
    """
    Codes a cleanup run must deactivate: active, in the legacy set, and
    outside every protected namespace. Deactivated plans are never selected
    again, so repeated runs select nothing new.
    """
    legacy = rules.normalized_legacy_codes
    return frozenset(
        plan.code
        for plan in plans
        if plan.is_active
        and plan.normalized_code in legacy
        and rules.namespace_for(plan.code) is None
    )


def apply_legacy_cleanup(
    plans: Iterable[PlanDefinition],
    rules: PlanNamespaceRules,
) -> tuple[PlanDefinition, ...]:
    """In-memory counterpart of the cleanup UPDATE."""
    plans = tuple(plans)
    targets = plan_legacy_cleanup(plans, rules)
    return tuple(replace(p, is_active=False) if p.code in targets else p for p in plans)
