"""
Breach Assessment Engine - severity, risk and regulator-notification duty.

Decision table (rules 1-3 first match wins, else rule 5; rule 4 is checked
last and overrides whatever matched):

    #  condition                                          severity  risk      notify
    1  subjects > 1000 or any sensitive data type         high      likely    yes
    2  subjects > 100                                     medium    possible  yes
    3  breach_type == confidentiality and subjects > 0    medium    possible  no
    4  no data types and zero subjects (terminal floor)   low       unlikely  no
    5  otherwise                                          low       unlikely  no

Sensitive data types and both thresholds come from ``BreachRules``.

An operator may override severity, risk or the notification flag when the
breach is reported; the derived assessment is then only the default and is
kept alongside for audit.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID, uuid4

from compliance_engines.gdpr import generate_reference_number
from compliance_engines.tracer import traced_engine
from compliance_kernel.domain.clock import Clock
from compliance_kernel.domain.validation import RuleOutcome, ValidationIssue
from compliance_kernel.logging_config import get_logger

logger = get_logger("engines.breach")


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskToRights(str, Enum):
    UNLIKELY = "unlikely"
    POSSIBLE = "possible"
    LIKELY = "likely"


CONFIDENTIALITY = "confidentiality"


@dataclass(frozen=True)
class BreachRules:
    sensitive_data_types: frozenset[str] = frozenset(
        {"financial", "health", "criminal", "biometric", "genetic"}
    )
    breach_types: frozenset[str] = frozenset({"confidentiality", "integrity", "availability"})
    high_subject_threshold: int = 1000
    medium_subject_threshold: int = 100
    notification_hours: int = 72

    def __post_init__(self) -> None:
        object.__setattr__(self, "sensitive_data_types", frozenset(self.sensitive_data_types))
        object.__setattr__(self, "breach_types", frozenset(self.breach_types))
        if self.medium_subject_threshold >= self.high_subject_threshold:
            raise ValueError("medium_subject_threshold must be below high_subject_threshold")


@dataclass(frozen=True)
class BreachFacts:
    data_types_affected: frozenset[str]
    data_subjects_affected: int
    breach_type: str

    def __post_init__(self) -> None:
        if isinstance(self.data_types_affected, str):
            raise TypeError("data_types_affected must be a collection of type names, not a str")
        object.__setattr__(
            self,
            "data_types_affected",
            frozenset(t.strip().lower() for t in self.data_types_affected),
        )
        count = self.data_subjects_affected
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ValueError(f"data_subjects_affected must be a non-negative integer, got {count!r}")


@dataclass(frozen=True)
class BreachAssessment:
    severity: Severity
    risk_to_rights: RiskToRights
    notification_required: bool
    rule: str


@dataclass(frozen=True)
class SeverityRule:
    name: str
    applies: Callable[[BreachFacts, BreachRules], bool]
    severity: Severity
    risk_to_rights: RiskToRights
    notification_required: bool

    def assessment(self) -> BreachAssessment:
        return BreachAssessment(
            severity=self.severity,
            risk_to_rights=self.risk_to_rights,
            notification_required=self.notification_required,
            rule=self.name,
        )


SEVERITY_RULES: tuple[SeverityRule, ...] = (
    SeverityRule(
        "mass_or_sensitive",
        lambda f, r: (
            f.data_subjects_affected > r.high_subject_threshold
            or bool(f.data_types_affected & r.sensitive_data_types)
        ),
        Severity.HIGH, RiskToRights.LIKELY, True,
    ),
    SeverityRule(
        "many_subjects",
        lambda f, r: f.data_subjects_affected > r.medium_subject_threshold,
        Severity.MEDIUM, RiskToRights.POSSIBLE, True,
    ),
    SeverityRule(
        "confidentiality_exposure",
        lambda f, r: f.breach_type == CONFIDENTIALITY and f.data_subjects_affected > 0,
        Severity.MEDIUM, RiskToRights.POSSIBLE, False,
    ),
)

NOTHING_AFFECTED_RULE = SeverityRule(
    "nothing_affected",
    lambda f, r: not f.data_types_affected and f.data_subjects_affected == 0,
    Severity.LOW, RiskToRights.UNLIKELY, False,
)

DEFAULT_RULE = SeverityRule(
    "default",
    lambda f, r: True,
    Severity.LOW, RiskToRights.UNLIKELY, False,
)


@traced_engine("breach_severity", "1.0", fingerprint_fields=("facts",))
def assess_breach_severity(facts: BreachFacts, rules: BreachRules | None = None) -> BreachAssessment:
    rules = rules or BreachRules()
    matched = next((rule for rule in SEVERITY_RULES if rule.applies(facts, rules)), DEFAULT_RULE)
    # Terminal floor, evaluated after the table.
    if NOTHING_AFFECTED_RULE.applies(facts, rules):
        matched = NOTHING_AFFECTED_RULE
    return matched.assessment()


def assess(
    data_types_affected: Iterable[str],
    data_subjects_affected: int,
    breach_type: str,
    rules: BreachRules | None = None,
) -> BreachAssessment:
    """Convenience wrapper over ``assess_breach_severity``."""
    facts = BreachFacts(
        data_types_affected=data_types_affected,
        data_subjects_affected=data_subjects_affected,
        breach_type=breach_type,
    )
    return assess_breach_severity(facts, rules)


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------

BREACH_DETECTED = "detected"


@dataclass(frozen=True)
class DataBreach:
    breach_id: UUID
    tenant_id: str
    breach_number: str
    breach_type: str
    description: str
    data_types_affected: frozenset[str]
    data_subjects_affected: int
    discovered_at: datetime
    reported_at: datetime
    severity: Severity
    risk_to_rights: RiskToRights
    notification_required: bool
    assessment: BreachAssessment
    notification_hours: int = 72
    status: str = BREACH_DETECTED
    regulator_notified_at: datetime | None = None
    overridden_fields: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_overridden(self) -> bool:
        return bool(self.overridden_fields)

    @property
    def notification_deadline(self) -> datetime:
        return self.discovered_at + timedelta(hours=self.notification_hours)

    def is_notification_overdue(self, as_of: datetime) -> bool:
        return (
            self.notification_required
            and self.regulator_notified_at is None
            and as_of > self.notification_deadline
        )


def report_breach(
    tenant_id: str,
    breach_type: str,
    data_types_affected: Iterable[str],
    data_subjects_affected: int,
    clock: Clock,
    rules: BreachRules | None = None,
    description: str = "",
    discovered_at: datetime | None = None,
    severity: Severity | str | None = None,
    risk_to_rights: RiskToRights | str | None = None,
    notification_required: bool | None = None,
    breach_number: str | None = None,
    breach_id: UUID | None = None,
) -> RuleOutcome[DataBreach]:
    """
    Assess and build a breach record. Explicit severity, risk and
    notification values win over the derived ones.
    """
    rules = rules or BreachRules()
    issues: list[ValidationIssue] = []
    if breach_type not in rules.breach_types:
        issues.append(ValidationIssue(
            code="INVALID_BREACH_TYPE",
            message=f"Invalid breach type {breach_type!r}. Must be one of: {', '.join(sorted(rules.breach_types))}",
            field="breach_type",
        ))
    if isinstance(data_types_affected, str):
        issues.append(ValidationIssue(
            code="INVALID_DATA_TYPES",
            message="data_types_affected must be a collection of type names, not a single string",
            field="data_types_affected",
        ))
    if isinstance(data_subjects_affected, bool) or not isinstance(data_subjects_affected, int) \
            or data_subjects_affected < 0:
        issues.append(ValidationIssue(
            code="INVALID_SUBJECT_COUNT",
            message="data_subjects_affected must be a non-negative integer",
            field="data_subjects_affected",
        ))
    try:
        severity_override = Severity(severity) if severity is not None else None
    except ValueError:
        severity_override = None
        issues.append(ValidationIssue("INVALID_SEVERITY", f"Unknown severity {severity!r}", field="severity"))
    try:
        risk_override = RiskToRights(risk_to_rights) if risk_to_rights is not None else None
    except ValueError:
        risk_override = None
        issues.append(ValidationIssue(
            "INVALID_RISK", f"Unknown risk to rights {risk_to_rights!r}", field="risk_to_rights"
        ))
    if issues:
        return RuleOutcome.rejected(*issues)

    facts = BreachFacts(
        data_types_affected=frozenset(data_types_affected),
        data_subjects_affected=data_subjects_affected,
        breach_type=breach_type,
    )
    assessment = assess_breach_severity(facts, rules)

    overridden = frozenset(
        name for name, value in (
            ("severity", severity_override),
            ("risk_to_rights", risk_override),
            ("notification_required", notification_required),
        )
        if value is not None
    )
    now = clock.now()
    discovered = discovered_at or now
    breach = DataBreach(
        breach_id=breach_id or uuid4(),
        tenant_id=tenant_id,
        breach_number=breach_number or generate_reference_number("BREACH", now),
        breach_type=breach_type,
        description=description,
        data_types_affected=facts.data_types_affected,
        data_subjects_affected=data_subjects_affected,
        discovered_at=discovered,
        reported_at=now,
        severity=severity_override or assessment.severity,
        risk_to_rights=risk_override or assessment.risk_to_rights,
        notification_required=(
            notification_required if notification_required is not None
            else assessment.notification_required
        ),
        assessment=assessment,
        notification_hours=rules.notification_hours,
        overridden_fields=overridden,
    )

    logger.info("breach_reported", extra={
        "breach_number": breach.breach_number,
        "tenant_id": tenant_id,
        "severity": breach.severity.value,
        "derived_severity": assessment.severity.value,
        "rule": assessment.rule,
        "notification_required": breach.notification_required,
        "overridden_fields": sorted(overridden),
    })
    if breach.notification_required:
        logger.warning("breach_notification_required", extra={
            "breach_number": breach.breach_number,
            "notification_deadline": breach.notification_deadline,
        })
    return RuleOutcome.ok(breach)
