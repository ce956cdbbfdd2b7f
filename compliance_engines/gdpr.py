"""
GDPR Workflow Engine - consent, retention scheduling and DSAR deadlines.

Responsibility:
    Builds and transitions the immutable records behind the data-protection
    workflows. Every timestamp comes from an injected Clock.

Architecture position:
    Engines -- pure, zero I/O. ``compliance_modules.gdpr.service`` persists
    what these functions return.

Invariants enforced:
    - Lawful basis and DSAR request type come from configured enumerations;
      anything else is a returned rejection, never an exception.
    - A consent record is active iff ``consent_given`` and not withdrawn.
      Withdrawal is one-way; re-consent means a new record.
    - ``next_review_at = now + review_frequency_days`` (default from rules).
    - ``due_date = received_at + dsar_response_days`` (30 by default).
    - The retention log only grows. Entries are never edited or removed.
"""

from __future__ import annotations

import secrets
import string
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from compliance_kernel.domain.clock import Clock
from compliance_kernel.domain.validation import RuleOutcome, ValidationIssue
from compliance_kernel.domain.workflow import Workflow
from compliance_kernel.exceptions import ConsentAlreadyWithdrawnError
from compliance_kernel.logging_config import get_logger

logger = get_logger("engines.gdpr")

REFERENCE_ALPHABET = string.digits + string.ascii_uppercase


def generate_reference_number(
    prefix: str,
    at: datetime,
    choice: Callable[[str], str] = secrets.choice,
    length: int = 6,
) -> str:
    """``PREFIX-YYYY-XXXXXX`` with an uppercase base-36 suffix."""
    suffix = "".join(choice(REFERENCE_ALPHABET) for _ in range(length))
    return f"{prefix}-{at.year}-{suffix}"


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RetentionPolicyTemplate:
    """A recommended policy shipped with the rule set."""

    name: str
    category: str
    retention_days: int
    lawful_basis: str
    reference: str = ""


@dataclass(frozen=True)
class GdprRules:
    lawful_bases: frozenset[str]
    dsar_types: frozenset[str]
    dsar_response_days: int = 30
    retention_review_days: int = 365
    default_retention_policies: tuple[RetentionPolicyTemplate, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "lawful_bases", frozenset(self.lawful_bases))
        object.__setattr__(self, "dsar_types", frozenset(self.dsar_types))
        object.__setattr__(
            self, "default_retention_policies", tuple(self.default_retention_policies)
        )


def _enum_issue(code: str, field_name: str, value: str, allowed: Iterable[str]) -> ValidationIssue:
    allowed = sorted(allowed)
    return ValidationIssue(
        code=code,
        message=f"Invalid {field_name.replace('_', ' ')} {value!r}. Must be one of: {', '.join(allowed)}",
        field=field_name,
        details={"value": value, "allowed": allowed},
    )


def _positive_int_issue(field_name: str, value: Any) -> ValidationIssue | None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return ValidationIssue(
            code="INVALID_PERIOD",
            message=f"{field_name} must be a positive number of days",
            field=field_name,
            details={"value": value},
        )
    return None


# ---------------------------------------------------------------------------
# Consent
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConsentRecord:
    consent_id: UUID
    tenant_id: str
    data_subject_id: str
    consent_type: str
    lawful_basis: str
    given_at: datetime
    consent_given: bool = True
    purpose: str | None = None
    withdrawn_at: datetime | None = None
    withdrawal_reason: str | None = None

    @property
    def is_active(self) -> bool:
        return self.consent_given and self.withdrawn_at is None


def record_consent(
    tenant_id: str,
    data_subject_id: str,
    consent_type: str,
    lawful_basis: str,
    rules: GdprRules,
    clock: Clock,
    purpose: str | None = None,
    consent_id: UUID | None = None,
) -> RuleOutcome[ConsentRecord]:
    issues: list[ValidationIssue] = []
    if lawful_basis not in rules.lawful_bases:
        issues.append(_enum_issue("INVALID_LAWFUL_BASIS", "lawful_basis", lawful_basis, rules.lawful_bases))
    if not (data_subject_id or "").strip():
        issues.append(ValidationIssue("MISSING_FIELD", "data_subject_id is required", field="data_subject_id"))
    if not (consent_type or "").strip():
        issues.append(ValidationIssue("MISSING_FIELD", "consent_type is required", field="consent_type"))
    if issues:
        logger.info("consent_rejected", extra={
            "tenant_id": tenant_id,
            "issue_codes": [i.code for i in issues],
        })
        return RuleOutcome.rejected(*issues)

    record = ConsentRecord(
        consent_id=consent_id or uuid4(),
        tenant_id=tenant_id,
        data_subject_id=data_subject_id,
        consent_type=consent_type,
        lawful_basis=lawful_basis,
        given_at=clock.now(),
        purpose=purpose,
    )
    logger.info("consent_recorded", extra={
        "consent_id": str(record.consent_id),
        "tenant_id": tenant_id,
        "consent_type": consent_type,
        "lawful_basis": lawful_basis,
    })
    return RuleOutcome.ok(record)


def withdraw_consent(
    record: ConsentRecord,
    clock: Clock,
    reason: str | None = None,
) -> ConsentRecord:
    """
    One-way withdrawal.

    Raises:
        ConsentAlreadyWithdrawnError: the record is already withdrawn.
    """
    if record.withdrawn_at is not None:
        raise ConsentAlreadyWithdrawnError(str(record.consent_id), record.withdrawn_at.isoformat())
    withdrawn = replace(
        record,
        consent_given=False,
        withdrawn_at=clock.now(),
        withdrawal_reason=reason,
    )
    logger.info("consent_withdrawn", extra={
        "consent_id": str(record.consent_id),
        "tenant_id": record.tenant_id,
    })
    return withdrawn


def active_consents(records: Iterable[ConsentRecord], data_subject_id: str) -> tuple[ConsentRecord, ...]:
    return tuple(r for r in records if r.data_subject_id == data_subject_id and r.is_active)


# ---------------------------------------------------------------------------
# Retention
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RetentionPolicy:
    policy_id: UUID
    tenant_id: str
    name: str
    category: str
    retention_days: int
    lawful_basis: str
    review_frequency_days: int
    next_review_at: datetime
    created_at: datetime
    last_reviewed_at: datetime | None = None
    reference: str | None = None
    is_active: bool = True

    def is_review_due(self, as_of: datetime) -> bool:
        return self.is_active and as_of >= self.next_review_at

    def retention_deadline(self, starting_at: datetime) -> datetime:
        """When data collected at ``starting_at`` falls out of retention."""
        return starting_at + timedelta(days=self.retention_days)


def _policy_issues(
    retention_days: Any,
    lawful_basis: str,
    review_frequency_days: Any,
    rules: GdprRules,
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    if lawful_basis not in rules.lawful_bases:
        issues.append(_enum_issue("INVALID_LAWFUL_BASIS", "lawful_basis", lawful_basis, rules.lawful_bases))
    for name, value in (("retention_days", retention_days), ("review_frequency_days", review_frequency_days)):
        issue = _positive_int_issue(name, value)
        if issue is not None:
            issues.append(issue)
    return issues


def create_retention_policy(
    tenant_id: str,
    name: str,
    category: str,
    retention_days: int,
    lawful_basis: str,
    rules: GdprRules,
    clock: Clock,
    review_frequency_days: int | None = None,
    reference: str | None = None,
    policy_id: UUID | None = None,
) -> RuleOutcome[RetentionPolicy]:
    frequency = review_frequency_days if review_frequency_days is not None else rules.retention_review_days
    issues = _policy_issues(retention_days, lawful_basis, frequency, rules)
    if issues:
        return RuleOutcome.rejected(*issues)

    now = clock.now()
    policy = RetentionPolicy(
        policy_id=policy_id or uuid4(),
        tenant_id=tenant_id,
        name=name,
        category=category,
        retention_days=retention_days,
        lawful_basis=lawful_basis,
        review_frequency_days=frequency,
        next_review_at=now + timedelta(days=frequency),
        created_at=now,
        reference=reference,
    )
    logger.info("retention_policy_created", extra={
        "policy_id": str(policy.policy_id),
        "tenant_id": tenant_id,
        "category": category,
        "next_review_at": policy.next_review_at,
    })
    return RuleOutcome.ok(policy)


_POLICY_UPDATABLE = frozenset(
    {"name", "category", "retention_days", "lawful_basis", "review_frequency_days", "reference", "is_active"}
)


def update_retention_policy(
    policy: RetentionPolicy,
    changes: Mapping[str, Any],
    rules: GdprRules,
    clock: Clock,
) -> RuleOutcome[RetentionPolicy]:
    """
    Return an updated copy. A new review frequency re-schedules the next
    review from now.

    Raises:
        ValueError: ``changes`` names a field that cannot be updated.
    """
    unknown = set(changes) - _POLICY_UPDATABLE
    if unknown:
        raise ValueError(f"Retention policy fields cannot be updated: {sorted(unknown)}")
    merged = replace(policy, **changes)
    issues = _policy_issues(merged.retention_days, merged.lawful_basis, merged.review_frequency_days, rules)
    if issues:
        return RuleOutcome.rejected(*issues)
    if merged.review_frequency_days != policy.review_frequency_days:
        merged = replace(
            merged,
            next_review_at=clock.now() + timedelta(days=merged.review_frequency_days),
        )
    return RuleOutcome.ok(merged)


def mark_policy_reviewed(policy: RetentionPolicy, clock: Clock) -> RetentionPolicy:
    now = clock.now()
    return replace(
        policy,
        last_reviewed_at=now,
        next_review_at=now + timedelta(days=policy.review_frequency_days),
    )


def default_retention_policies(
    tenant_id: str,
    rules: GdprRules,
    clock: Clock,
) -> tuple[RetentionPolicy, ...]:
    """Instantiate the rule set's recommended policies for one tenant."""
    policies = []
    for template in rules.default_retention_policies:
        outcome = create_retention_policy(
            tenant_id=tenant_id,
            name=template.name,
            category=template.category,
            retention_days=template.retention_days,
            lawful_basis=template.lawful_basis,
            rules=rules,
            clock=clock,
            reference=template.reference or None,
        )
        if not outcome:
            raise ValueError(
                f"Default retention policy {template.category!r} is invalid: {outcome.reason}"
            )
        policies.append(outcome.value)
    return tuple(policies)


class RetentionAction(str, Enum):
    REVIEWED = "reviewed"
    ARCHIVED = "archived"
    ANONYMIZED = "anonymized"
    DELETED = "deleted"
    RETAINED = "retained"


@dataclass(frozen=True)
class RetentionLogEntry:
    entry_id: UUID
    policy_id: UUID
    tenant_id: str
    action: RetentionAction
    record_count: int
    performed_at: datetime
    performed_by: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class RetentionLog:
    """Append-only history of actions taken under retention policies."""

    entries: tuple[RetentionLogEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @property
    def latest(self) -> RetentionLogEntry | None:
        return self.entries[-1] if self.entries else None

    def for_policy(self, policy_id: UUID) -> tuple[RetentionLogEntry, ...]:
        return tuple(e for e in self.entries if e.policy_id == policy_id)


def log_retention_action(
    log: RetentionLog,
    policy: RetentionPolicy,
    action: RetentionAction | str,
    clock: Clock,
    record_count: int = 0,
    performed_by: str | None = None,
    notes: str | None = None,
) -> RetentionLog:
    """
    Return a new log with one more entry; ``log`` itself is unchanged.

    Raises:
        ValueError: record_count is negative or the action is unknown.
    """
    action = RetentionAction(action)
    if isinstance(record_count, bool) or not isinstance(record_count, int) or record_count < 0:
        raise ValueError(f"record_count must be a non-negative integer, got {record_count!r}")
    entry = RetentionLogEntry(
        entry_id=uuid4(),
        policy_id=policy.policy_id,
        tenant_id=policy.tenant_id,
        action=action,
        record_count=record_count,
        performed_at=clock.now(),
        performed_by=performed_by,
        notes=notes,
    )
    logger.info("retention_action_logged", extra={
        "policy_id": str(policy.policy_id),
        "action": action.value,
        "record_count": record_count,
    })
    return RetentionLog(entries=log.entries + (entry,))


# ---------------------------------------------------------------------------
# Data subject access requests
# ---------------------------------------------------------------------------

DSAR_RECEIVED = "received"
DSAR_IN_PROGRESS = "in_progress"
DSAR_COMPLETED = "completed"
DSAR_REJECTED = "rejected"
DSAR_CLOSED_STATES = frozenset({DSAR_COMPLETED, DSAR_REJECTED})


@dataclass(frozen=True)
class DsarRequest:
    request_id: UUID
    tenant_id: str
    request_number: str
    request_type: str
    data_subject_id: str
    received_at: datetime
    due_date: datetime
    status: str = DSAR_RECEIVED
    data_subject_email: str | None = None
    completed_at: datetime | None = None
    response_notes: str | None = None

    @property
    def is_closed(self) -> bool:
        return self.status in DSAR_CLOSED_STATES

    def is_overdue(self, as_of: datetime) -> bool:
        return not self.is_closed and as_of > self.due_date

    def days_remaining(self, as_of: datetime) -> int:
        """Whole days until the deadline; negative once overdue."""
        return (self.due_date - as_of).days


def create_dsar_request(
    tenant_id: str,
    data_subject_id: str,
    request_type: str,
    rules: GdprRules,
    clock: Clock,
    received_at: datetime | None = None,
    request_number: str | None = None,
    data_subject_email: str | None = None,
    request_id: UUID | None = None,
) -> RuleOutcome[DsarRequest]:
    if request_type not in rules.dsar_types:
        logger.info("dsar_rejected", extra={"tenant_id": tenant_id, "request_type": request_type})
        return RuleOutcome.rejected(
            _enum_issue("INVALID_REQUEST_TYPE", "request_type", request_type, rules.dsar_types)
        )
    received = received_at or clock.now()
    request = DsarRequest(
        request_id=request_id or uuid4(),
        tenant_id=tenant_id,
        request_number=request_number or generate_reference_number("DSAR", received),
        request_type=request_type,
        data_subject_id=data_subject_id,
        received_at=received,
        due_date=received + timedelta(days=rules.dsar_response_days),
        data_subject_email=data_subject_email,
    )
    logger.info("dsar_created", extra={
        "request_number": request.request_number,
        "tenant_id": tenant_id,
        "request_type": request_type,
        "due_date": request.due_date,
    })
    return RuleOutcome.ok(request)


def overdue_dsar_requests(requests: Iterable[DsarRequest], as_of: datetime) -> tuple[DsarRequest, ...]:
    return tuple(r for r in requests if r.is_overdue(as_of))


_DSAR_UPDATABLE = frozenset({"data_subject_email", "response_notes"})


def update_dsar_request(request: DsarRequest, **changes: Any) -> DsarRequest:
    """
    Edit contact details or response notes. Identity, deadline and status
    are fixed here; status moves only through ``advance_dsar_request``.
    """
    fixed = set(changes) - _DSAR_UPDATABLE
    if fixed:
        raise ValueError(f"DSAR fields cannot be changed directly: {sorted(fixed)}")
    return replace(request, **changes)


def advance_dsar_request(
    request: DsarRequest,
    action: str,
    workflow: Workflow,
    clock: Clock,
    notes: str | None = None,
) -> DsarRequest:
    """
    Move a request along ``workflow``. Closing states stamp ``completed_at``.

    Raises:
        TerminalStateError: the request is already completed or rejected.
        InvalidTransitionError: ``action`` is not allowed from the status.
    """
    target = workflow.apply(request.status, action)
    completed_at = clock.now() if target in DSAR_CLOSED_STATES else request.completed_at
    return replace(
        request,
        status=target,
        completed_at=completed_at,
        response_notes=notes if notes is not None else request.response_notes,
    )
