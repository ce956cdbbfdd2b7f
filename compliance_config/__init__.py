"""
compliance_config -- single public entrypoint for rule configuration.

Responsibility:
    Provides the way to obtain the jurisdiction tables at runtime through
    ``get_active_config()``: VAT schedules, GST/SST rates, the tier
    catalog, plan namespaces, GDPR enumerations and breach thresholds.
    Engines receive these as plain arguments; they never read files.

Architecture position:
    Configuration -- YAML-driven, validated at load. Sits above
    ``compliance_kernel`` and ``compliance_engines`` (whose rule types it
    builds) and below ``compliance_modules``.

Invariants enforced:
    - Single entrypoint: runtime config flows through ``get_active_config()``.
    - Load-time validation: a registry that fails ``validate_registry`` is
      never returned.
    - Deterministic identity: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the rule set file does not exist.
    - ``ConfigValidationError`` -- cross-table validation failed.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``COMPLIANCE_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying each decision back to the rule set that governed it.
"""

from __future__ import annotations

from pathlib import Path

from compliance_config.loader import build_registry, compute_checksum, load_yaml_file
from compliance_config.schema import RuleRegistry
from compliance_config.validator import ConfigValidationResult, validate_registry
from compliance_kernel.exceptions import ConfigValidationError
from compliance_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | None = None) -> RuleRegistry:
    """Load, validate and return the active rule registry.

    Not cached; callers hold the returned registry for as long as they
    need a consistent view.

    Raises:
        FileNotFoundError: ``path`` does not exist.
        ConfigValidationError: the rule set is internally inconsistent.
    """
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    registry = build_registry(load_yaml_file(source))

    validation = validate_registry(registry)
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"source": str(source), "warning": warning})
    if not validation.is_valid:
        raise ConfigValidationError(str(source), validation.errors)

    _logger.info(
        "COMPLIANCE_CONFIG_TRACE",
        extra={
            "trace_type": "COMPLIANCE_CONFIG_TRACE",
            "config_id": registry.config_id,
            "config_version": registry.version,
            "checksum": registry.checksum,
            "effective_from": registry.effective_from.isoformat(),
            "vat_jurisdictions": list(registry.jurisdictions),
            "tier_count": len(registry.tier_catalog.tiers),
            "namespace_count": len(registry.plan_namespaces.namespaces),
        },
    )
    return registry


__all__ = [
    "ConfigValidationResult",
    "RuleRegistry",
    "compute_checksum",
    "get_active_config",
    "validate_registry",
]
