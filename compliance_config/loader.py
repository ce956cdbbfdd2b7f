"""
Configuration Loader (``compliance_config.loader``).

Responsibility
--------------
Loads a YAML rule set and parses it into the typed engine rule objects
gathered in ``compliance_config.schema.RuleRegistry``. Runtime callers use
``compliance_config.get_active_config()``; this module is its machinery.

Invariants enforced
-------------------
* Rates and amounts never pass through ``float``: a YAML number that
  arrives as float is converted through ``str`` before ``Decimal``.
* Limits are positive integers or the literal ``unlimited``.
* Missing required keys raise ``KeyError``; no silent defaults for them.
* ``compute_checksum`` is deterministic over the raw document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Bad values  -> ``ValueError`` from the parsers or the engine types.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from compliance_config.schema import RuleRegistry
from compliance_engines.breach import BreachRules
from compliance_engines.gdpr import GdprRules, RetentionPolicyTemplate
from compliance_engines.plan_codes import PlanNamespace, PlanNamespaceRules
from compliance_engines.regional_tax import GstRates, SstRates
from compliance_engines.tax_identifier import DEFAULT_REGISTRY
from compliance_engines.tier_limits import TierCatalog, TierDefinition, TierLimits
from compliance_engines.vat import VatRateSchedule

UNLIMITED_LITERAL = "unlimited"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any) -> Decimal:
    """Exact decimal from a YAML scalar; floats go through their repr."""
    if isinstance(value, bool):
        raise ValueError(f"Cannot parse decimal from {value!r}")
    if isinstance(value, float):
        value = str(value)
    return Decimal(str(value))


def parse_limit(value: Any) -> int | None:
    if value is None or (isinstance(value, str) and value.strip().lower() == UNLIMITED_LITERAL):
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Limit must be a positive integer or {UNLIMITED_LITERAL!r}, got {value!r}")
    return value


def parse_vat_schedules(data: dict[str, Any]) -> dict[str, VatRateSchedule]:
    schedules = {}
    for jurisdiction, body in (data.get("schedules") or {}).items():
        schedule = VatRateSchedule(
            jurisdiction=jurisdiction,
            currency=body["currency"],
            rates={k: parse_decimal(v) for k, v in body["rates"].items()},
        )
        schedules[schedule.jurisdiction] = schedule
    return schedules


def parse_gst_rates(data: dict[str, Any]) -> GstRates:
    return GstRates(**{k: parse_decimal(v) for k, v in data.items()})


def parse_sst_rates(data: dict[str, Any]) -> SstRates:
    return SstRates(**{k: parse_decimal(v) for k, v in data.items()})


def parse_tier(data: dict[str, Any]) -> TierDefinition:
    limits = data.get("limits") or {}
    return TierDefinition(
        name=data["name"],
        rank=data["rank"],
        limits=TierLimits(
            max_users=parse_limit(limits.get("max_users")),
            max_records=parse_limit(limits.get("max_records")),
            max_customers=parse_limit(limits.get("max_customers")),
        ),
        features=frozenset(data.get("features", ())),
        aliases=tuple(data.get("aliases", ())),
    )


def parse_tier_catalog(data: list[dict[str, Any]]) -> TierCatalog:
    return TierCatalog.of(parse_tier(t) for t in data)


def parse_plan_namespaces(data: dict[str, Any]) -> PlanNamespaceRules:
    return PlanNamespaceRules(
        namespaces=tuple(
            PlanNamespace(country=ns["country"], prefix=ns["prefix"], currency=ns["currency"])
            for ns in data["namespaces"]
        ),
        legacy_codes=frozenset(str(c) for c in data.get("legacy_codes", ())),
        country_aliases=data.get("country_aliases") or {},
    )


def parse_gdpr_rules(data: dict[str, Any]) -> GdprRules:
    return GdprRules(
        lawful_bases=frozenset(data["lawful_bases"]),
        dsar_types=frozenset(data["dsar_types"]),
        dsar_response_days=data.get("dsar_response_days", 30),
        retention_review_days=data.get("retention_review_days", 365),
        default_retention_policies=tuple(
            RetentionPolicyTemplate(
                name=p["name"],
                category=p["category"],
                retention_days=p["retention_days"],
                lawful_basis=p["lawful_basis"],
                reference=p.get("reference", ""),
            )
            for p in data.get("default_retention_policies", ())
        ),
    )


def parse_breach_rules(data: dict[str, Any]) -> BreachRules:
    defaults = BreachRules()
    return BreachRules(
        sensitive_data_types=frozenset(data.get("sensitive_data_types", defaults.sensitive_data_types)),
        breach_types=frozenset(data.get("breach_types", defaults.breach_types)),
        high_subject_threshold=data.get("high_subject_threshold", defaults.high_subject_threshold),
        medium_subject_threshold=data.get("medium_subject_threshold", defaults.medium_subject_threshold),
        notification_hours=data.get("notification_hours", defaults.notification_hours),
    )


def build_registry(data: dict[str, Any]) -> RuleRegistry:
    """Parse a whole rule-set document."""
    vat = data.get("vat") or {}
    regional = data.get("regional_tax") or {}
    identifiers = data.get("tax_identifiers") or {}
    return RuleRegistry(
        config_id=data["config_id"],
        version=int(data["version"]),
        effective_from=parse_date(data["effective_from"]),
        checksum=compute_checksum(data),
        vat_schedules=parse_vat_schedules(vat),
        fallback_vat_jurisdiction=vat.get("fallback_jurisdiction"),
        gst_rates=parse_gst_rates(regional.get("gst") or {}),
        sst_rates=parse_sst_rates(regional.get("sst") or {}),
        tier_catalog=parse_tier_catalog(data["tiers"]),
        plan_namespaces=parse_plan_namespaces(data["plan_codes"]),
        gdpr=parse_gdpr_rules(data["gdpr"]),
        breach=parse_breach_rules(data.get("breach") or {}),
        tax_identifiers=DEFAULT_REGISTRY.with_aliases(identifiers.get("aliases") or {}),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
