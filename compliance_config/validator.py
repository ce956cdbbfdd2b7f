"""
Configuration Validator (``compliance_config.validator``).

Responsibility
--------------
Checks a parsed ``RuleRegistry`` for cross-table consistency before it is
handed to any engine. Per-value checks (non-negative rates, positive
limits) already happened in the engine types during parsing.

Invariants enforced
-------------------
* Every schedule and namespace currency is a registered ISO 4217 code.
* The VAT fallback jurisdiction, when set, has a schedule.
* Tier ranks are unique; tier names and aliases do not clash.
* Plan namespaces are isolated (``check_namespace_isolation``).
* Default retention policies use a configured lawful basis.

Failure modes
-------------
* Errors (``ConfigValidationResult.errors``) -> the registry MUST NOT be
  used; ``get_active_config`` raises ``ConfigValidationError``.
* Warnings -> usable, but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from compliance_config.schema import RuleRegistry
from compliance_engines.plan_codes import check_namespace_isolation
from compliance_kernel.domain.currency import CurrencyRegistry


@dataclass
class ConfigValidationResult:
    """``is_valid`` only when ``errors`` is empty."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_registry(registry: RuleRegistry) -> ConfigValidationResult:
    result = ConfigValidationResult()
    _validate_vat(registry, result)
    _validate_tiers(registry, result)
    _validate_plan_codes(registry, result)
    _validate_gdpr(registry, result)
    return result


def _validate_vat(registry: RuleRegistry, result: ConfigValidationResult) -> None:
    if not registry.vat_schedules:
        result.add_warning("No VAT schedules configured")
    for jurisdiction, schedule in registry.vat_schedules.items():
        if not CurrencyRegistry.is_valid(schedule.currency):
            result.add_error(f"VAT schedule {jurisdiction}: unknown currency {schedule.currency!r}")
    fallback = registry.fallback_vat_jurisdiction
    if fallback and fallback.upper() not in registry.vat_schedules:
        result.add_error(f"VAT fallback jurisdiction {fallback!r} has no schedule")


def _validate_tiers(registry: RuleRegistry, result: ConfigValidationResult) -> None:
    ranks: dict[int, str] = {}
    names: dict[str, str] = {}
    for tier in registry.tier_catalog.tiers:
        if tier.rank in ranks:
            result.add_error(f"Tiers {ranks[tier.rank]!r} and {tier.name!r} share rank {tier.rank}")
        ranks[tier.rank] = tier.name
        for key in (tier.name, *tier.aliases):
            if key in names:
                result.add_error(f"Tier name or alias {key!r} used by both {names[key]!r} and {tier.name!r}")
            names[key] = tier.name
        if not tier.features:
            result.add_warning(f"Tier {tier.name!r} enables no features")


def _validate_plan_codes(registry: RuleRegistry, result: ConfigValidationResult) -> None:
    for ns in registry.plan_namespaces.namespaces:
        if not CurrencyRegistry.is_valid(ns.currency):
            result.add_error(f"Plan namespace {ns.country}: unknown currency {ns.currency!r}")
    isolation = check_namespace_isolation(registry.plan_namespaces)
    for issue in isolation.issues:
        result.add_error(f"Plan codes: {issue.message}")


def _validate_gdpr(registry: RuleRegistry, result: ConfigValidationResult) -> None:
    gdpr = registry.gdpr
    if gdpr.dsar_response_days <= 0:
        result.add_error("dsar_response_days must be positive")
    if gdpr.retention_review_days <= 0:
        result.add_error("retention_review_days must be positive")
    for template in gdpr.default_retention_policies:
        if template.lawful_basis not in gdpr.lawful_bases:
            result.add_error(
                f"Default retention policy {template.category!r}: "
                f"unknown lawful basis {template.lawful_basis!r}"
            )
        if template.retention_days <= 0:
            result.add_error(f"Default retention policy {template.category!r}: retention_days must be positive")
