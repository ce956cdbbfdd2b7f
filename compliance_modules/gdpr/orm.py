"""
GDPR ORM Persistence Models (``compliance_modules.gdpr.orm``).

Responsibility:
    SQLAlchemy companions for the consent, retention, DSAR and breach
    records built by the pure engines, each with ``to_dto()`` /
    ``from_dto()`` conversion.

Invariants enforced:
    - Every row is tenant-scoped (``tenant_id`` indexed).
    - ``retention_logs`` is append-only: update and delete are blocked by
      the listeners in ``compliance_kernel.db.immutability``.
    - DSAR and breach reference numbers are unique.
    - Set-valued fields are stored as sorted JSON text.
    - The derived breach assessment is stored next to the effective
      (possibly operator-overridden) values.
"""

import json
from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from compliance_kernel.db.base import TrackedBase


# ---------------------------------------------------------------------------
# ConsentRecordModel
# ---------------------------------------------------------------------------


class ConsentRecordModel(TrackedBase):
    """
    ORM model for ``ConsentRecord``.

    Withdrawal sets ``withdrawn_at`` once; the service refuses to touch a
    withdrawn row again.
    """

    __tablename__ = "gdpr_consent_records"

    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    data_subject_id: Mapped[str] = mapped_column(String(255), nullable=False)
    consent_type: Mapped[str] = mapped_column(String(100), nullable=False)
    lawful_basis: Mapped[str] = mapped_column(String(50), nullable=False)
    consent_given: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    given_at: Mapped[datetime] = mapped_column(nullable=False)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)
    withdrawn_at: Mapped[datetime | None] = mapped_column(nullable=True)
    withdrawal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_consent_tenant_subject", "tenant_id", "data_subject_id"),
        Index("idx_consent_type", "consent_type"),
    )

    def to_dto(self):
        from compliance_engines.gdpr import ConsentRecord
        return ConsentRecord(
            consent_id=self.id,
            tenant_id=self.tenant_id,
            data_subject_id=self.data_subject_id,
            consent_type=self.consent_type,
            lawful_basis=self.lawful_basis,
            given_at=self.given_at,
            consent_given=self.consent_given,
            purpose=self.purpose,
            withdrawn_at=self.withdrawn_at,
            withdrawal_reason=self.withdrawal_reason,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID | None = None) -> "ConsentRecordModel":
        return cls(
            id=dto.consent_id,
            tenant_id=dto.tenant_id,
            data_subject_id=dto.data_subject_id,
            consent_type=dto.consent_type,
            lawful_basis=dto.lawful_basis,
            consent_given=dto.consent_given,
            given_at=dto.given_at,
            purpose=dto.purpose,
            withdrawn_at=dto.withdrawn_at,
            withdrawal_reason=dto.withdrawal_reason,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<ConsentRecordModel {self.data_subject_id}: {self.consent_type}>"


# ---------------------------------------------------------------------------
# RetentionPolicyModel
# ---------------------------------------------------------------------------


class RetentionPolicyModel(TrackedBase):
    """ORM model for ``RetentionPolicy``. One active policy per category."""

    __tablename__ = "gdpr_retention_policies"

    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    retention_days: Mapped[int] = mapped_column(nullable=False)
    lawful_basis: Mapped[str] = mapped_column(String(50), nullable=False)
    review_frequency_days: Mapped[int] = mapped_column(nullable=False)
    next_review_at: Mapped[datetime] = mapped_column(nullable=False)
    policy_created_at: Mapped[datetime] = mapped_column(nullable=False)
    last_reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reference: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("idx_retention_policy_tenant", "tenant_id"),
        Index("idx_retention_policy_review", "next_review_at"),
    )

    def to_dto(self):
        from compliance_engines.gdpr import RetentionPolicy
        return RetentionPolicy(
            policy_id=self.id,
            tenant_id=self.tenant_id,
            name=self.name,
            category=self.category,
            retention_days=self.retention_days,
            lawful_basis=self.lawful_basis,
            review_frequency_days=self.review_frequency_days,
            next_review_at=self.next_review_at,
            created_at=self.policy_created_at,
            last_reviewed_at=self.last_reviewed_at,
            reference=self.reference,
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID | None = None) -> "RetentionPolicyModel":
        return cls(
            id=dto.policy_id,
            tenant_id=dto.tenant_id,
            name=dto.name,
            category=dto.category,
            retention_days=dto.retention_days,
            lawful_basis=dto.lawful_basis,
            review_frequency_days=dto.review_frequency_days,
            next_review_at=dto.next_review_at,
            policy_created_at=dto.created_at,
            last_reviewed_at=dto.last_reviewed_at,
            reference=dto.reference,
            is_active=dto.is_active,
            created_by_id=created_by_id,
        )

    def apply_dto(self, dto) -> None:
        """Copy the mutable policy fields from an updated DTO."""
        for name in (
            "name", "category", "retention_days", "lawful_basis",
            "review_frequency_days", "next_review_at", "last_reviewed_at",
            "reference", "is_active",
        ):
            setattr(self, name, getattr(dto, name))

    def __repr__(self) -> str:
        return f"<RetentionPolicyModel {self.category}: {self.retention_days}d>"


# ---------------------------------------------------------------------------
# RetentionLogModel
# ---------------------------------------------------------------------------


class RetentionLogModel(TrackedBase):
    """
    ORM model for ``RetentionLogEntry``.

    Append-only. See ``compliance_kernel.db.immutability``.
    """

    __tablename__ = "gdpr_retention_logs"

    policy_id: Mapped[UUID] = mapped_column(
        ForeignKey("gdpr_retention_policies.id"), nullable=False,
    )
    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    record_count: Mapped[int] = mapped_column(nullable=False, default=0)
    performed_at: Mapped[datetime] = mapped_column(nullable=False)
    performed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_retention_log_policy", "policy_id"),
        Index("idx_retention_log_tenant", "tenant_id"),
    )

    def to_dto(self):
        from compliance_engines.gdpr import RetentionAction, RetentionLogEntry
        return RetentionLogEntry(
            entry_id=self.id,
            policy_id=self.policy_id,
            tenant_id=self.tenant_id,
            action=RetentionAction(self.action),
            record_count=self.record_count,
            performed_at=self.performed_at,
            performed_by=self.performed_by,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID | None = None) -> "RetentionLogModel":
        return cls(
            id=dto.entry_id,
            policy_id=dto.policy_id,
            tenant_id=dto.tenant_id,
            action=dto.action.value,
            record_count=dto.record_count,
            performed_at=dto.performed_at,
            performed_by=dto.performed_by,
            notes=dto.notes,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<RetentionLogModel {self.action} x{self.record_count}>"


# ---------------------------------------------------------------------------
# DsarRequestModel
# ---------------------------------------------------------------------------


class DsarRequestModel(TrackedBase):
    """ORM model for ``DsarRequest``. ``due_date`` is fixed at creation."""

    __tablename__ = "gdpr_dsar_requests"

    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    request_number: Mapped[str] = mapped_column(String(50), nullable=False)
    request_type: Mapped[str] = mapped_column(String(50), nullable=False)
    data_subject_id: Mapped[str] = mapped_column(String(255), nullable=False)
    data_subject_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    received_at: Mapped[datetime] = mapped_column(nullable=False)
    due_date: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="received")
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    response_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("request_number", name="uq_dsar_request_number"),
        Index("idx_dsar_tenant_status", "tenant_id", "status"),
        Index("idx_dsar_due_date", "due_date"),
    )

    def to_dto(self):
        from compliance_engines.gdpr import DsarRequest
        return DsarRequest(
            request_id=self.id,
            tenant_id=self.tenant_id,
            request_number=self.request_number,
            request_type=self.request_type,
            data_subject_id=self.data_subject_id,
            received_at=self.received_at,
            due_date=self.due_date,
            status=self.status,
            data_subject_email=self.data_subject_email,
            completed_at=self.completed_at,
            response_notes=self.response_notes,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID | None = None) -> "DsarRequestModel":
        return cls(
            id=dto.request_id,
            tenant_id=dto.tenant_id,
            request_number=dto.request_number,
            request_type=dto.request_type,
            data_subject_id=dto.data_subject_id,
            data_subject_email=dto.data_subject_email,
            received_at=dto.received_at,
            due_date=dto.due_date,
            status=dto.status,
            completed_at=dto.completed_at,
            response_notes=dto.response_notes,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<DsarRequestModel {self.request_number} ({self.status})>"


# ---------------------------------------------------------------------------
# DataBreachModel
# ---------------------------------------------------------------------------


class DataBreachModel(TrackedBase):
    """ORM model for ``DataBreach``."""

    __tablename__ = "gdpr_data_breaches"

    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    breach_number: Mapped[str] = mapped_column(String(50), nullable=False)
    breach_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    data_types_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    data_subjects_affected: Mapped[int] = mapped_column(nullable=False, default=0)
    discovered_at: Mapped[datetime] = mapped_column(nullable=False)
    reported_at: Mapped[datetime] = mapped_column(nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    risk_to_rights: Mapped[str] = mapped_column(String(20), nullable=False)
    notification_required: Mapped[bool] = mapped_column(Boolean, nullable=False)
    derived_severity: Mapped[str] = mapped_column(String(20), nullable=False)
    derived_risk_to_rights: Mapped[str] = mapped_column(String(20), nullable=False)
    derived_notification_required: Mapped[bool] = mapped_column(Boolean, nullable=False)
    assessment_rule: Mapped[str] = mapped_column(String(50), nullable=False)
    overridden_fields_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    notification_hours: Mapped[int] = mapped_column(nullable=False, default=72)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="detected")
    regulator_notified_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("breach_number", name="uq_breach_number"),
        Index("idx_breach_tenant_status", "tenant_id", "status"),
        Index("idx_breach_severity", "severity"),
    )

    def to_dto(self):
        from compliance_engines.breach import BreachAssessment, DataBreach, RiskToRights, Severity
        return DataBreach(
            breach_id=self.id,
            tenant_id=self.tenant_id,
            breach_number=self.breach_number,
            breach_type=self.breach_type,
            description=self.description,
            data_types_affected=frozenset(json.loads(self.data_types_json)),
            data_subjects_affected=self.data_subjects_affected,
            discovered_at=self.discovered_at,
            reported_at=self.reported_at,
            severity=Severity(self.severity),
            risk_to_rights=RiskToRights(self.risk_to_rights),
            notification_required=self.notification_required,
            assessment=BreachAssessment(
                severity=Severity(self.derived_severity),
                risk_to_rights=RiskToRights(self.derived_risk_to_rights),
                notification_required=self.derived_notification_required,
                rule=self.assessment_rule,
            ),
            notification_hours=self.notification_hours,
            status=self.status,
            regulator_notified_at=self.regulator_notified_at,
            overridden_fields=frozenset(json.loads(self.overridden_fields_json)),
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID | None = None) -> "DataBreachModel":
        return cls(
            id=dto.breach_id,
            tenant_id=dto.tenant_id,
            breach_number=dto.breach_number,
            breach_type=dto.breach_type,
            description=dto.description,
            data_types_json=json.dumps(sorted(dto.data_types_affected)),
            data_subjects_affected=dto.data_subjects_affected,
            discovered_at=dto.discovered_at,
            reported_at=dto.reported_at,
            severity=dto.severity.value,
            risk_to_rights=dto.risk_to_rights.value,
            notification_required=dto.notification_required,
            derived_severity=dto.assessment.severity.value,
            derived_risk_to_rights=dto.assessment.risk_to_rights.value,
            derived_notification_required=dto.assessment.notification_required,
            assessment_rule=dto.assessment.rule,
            overridden_fields_json=json.dumps(sorted(dto.overridden_fields)),
            notification_hours=dto.notification_hours,
            status=dto.status,
            regulator_notified_at=dto.regulator_notified_at,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<DataBreachModel {self.breach_number} ({self.severity}, {self.status})>"
