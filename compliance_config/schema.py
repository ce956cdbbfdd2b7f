"""
RuleRegistry schema.

The runtime artifact of the configuration layer: one frozen object holding
every jurisdiction table the engines consume, keyed by jurisdiction or
country code. Built by the loader from a versioned YAML set and checked by
the validator before it is handed out.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date

from compliance_engines.breach import BreachRules
from compliance_engines.gdpr import GdprRules
from compliance_engines.plan_codes import PlanNamespaceRules
from compliance_engines.regional_tax import GstRates, SstRates
from compliance_engines.tax_identifier import DEFAULT_REGISTRY, TaxIdentifierRegistry
from compliance_engines.tier_limits import TierCatalog
from compliance_engines.vat import ScheduleResolution, VatRateSchedule, resolve_schedule


@dataclass(frozen=True)
class RuleRegistry:
    """Immutable, versioned rule set. Shared read-only across tenants."""

    config_id: str
    version: int
    effective_from: date
    checksum: str
    vat_schedules: Mapping[str, VatRateSchedule]
    tier_catalog: TierCatalog
    plan_namespaces: PlanNamespaceRules
    gdpr: GdprRules
    breach: BreachRules = field(default_factory=BreachRules)
    gst_rates: GstRates = field(default_factory=GstRates)
    sst_rates: SstRates = field(default_factory=SstRates)
    fallback_vat_jurisdiction: str | None = None
    tax_identifiers: TaxIdentifierRegistry = DEFAULT_REGISTRY

    def vat_schedule(self, jurisdiction: str) -> ScheduleResolution:
        """Schedule for ``jurisdiction``, degrading to the fallback schedule."""
        return resolve_schedule(jurisdiction, self.vat_schedules, self.fallback_vat_jurisdiction)

    @property
    def jurisdictions(self) -> tuple[str, ...]:
        return tuple(sorted(self.vat_schedules))
