"""
GDPR Compliance Service -- consent, retention, DSAR and breach records.

Responsibility:
    Persists what the pure GDPR and breach engines decide. The engines
    validate and build the record; this service loads, saves and drives
    the lifecycle workflows.

Architecture:
    compliance_modules -- thin glue (this layer).
    1. ``compliance_engines.gdpr`` validates consent, retention policies
       and DSAR requests.
    2. ``compliance_engines.breach`` assesses breach severity.
    3. ``DSAR_WORKFLOW`` / ``BREACH_WORKFLOW`` gate status changes.

Invariants:
    - Rejected engine outcomes are returned to the caller untouched; no
      row is written for them.
    - Retention log rows are inserted, never updated or deleted.
    - All reads and writes are scoped to the caller's tenant.

Failure modes:
    - ``RecordNotFoundError``: unknown id, or an id from another tenant.
    - ``ConsentAlreadyWithdrawnError``: withdrawing twice.
    - ``InvalidTransitionError`` / ``TerminalStateError``: workflow refused.
    - ``NotificationPendingError``: resolving a notifiable breach before
      the regulator has been notified.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from compliance_config.schema import RuleRegistry
from compliance_engines import breach as breach_engine
from compliance_engines import gdpr as gdpr_engine
from compliance_engines.breach import DataBreach
from compliance_engines.gdpr import (
    ConsentRecord,
    DsarRequest,
    RetentionAction,
    RetentionLog,
    RetentionPolicy,
)
from compliance_kernel.domain.clock import Clock, SystemClock
from compliance_kernel.domain.validation import RuleOutcome
from compliance_kernel.exceptions import NotificationPendingError, RecordNotFoundError
from compliance_kernel.logging_config import get_logger
from compliance_modules.gdpr.models import BreachStatus, DsarStatus
from compliance_modules.gdpr.orm import (
    ConsentRecordModel,
    DataBreachModel,
    DsarRequestModel,
    RetentionLogModel,
    RetentionPolicyModel,
)
from compliance_modules.gdpr.workflows import BREACH_WORKFLOW, DSAR_WORKFLOW

logger = get_logger("modules.gdpr.service")


class ComplianceService:
    """
    Orchestrates GDPR record keeping for one database session.

    Contract:
        Callers supply a ``Session`` and the active ``RuleRegistry``.
        Methods that create records return the engine's ``RuleOutcome``;
        methods that act on existing records raise on failure.
    """

    def __init__(self, session: Session, config: RuleRegistry, clock: Clock | None = None):
        self._session = session
        self._gdpr = config.gdpr
        self._breach_rules = config.breach
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _save(self, model: Any) -> None:
        try:
            self._session.add(model)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

    def _commit(self) -> None:
        try:
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

    def _get(self, model_cls: type, record_type: str, tenant_id: str, record_id: UUID):
        model = self._session.get(model_cls, record_id)
        if model is None or model.tenant_id != tenant_id:
            raise RecordNotFoundError(record_type, str(record_id))
        return model

    # -------------------------------------------------------------------------
    # Consent
    # -------------------------------------------------------------------------

    def record_consent(
        self,
        tenant_id: str,
        data_subject_id: str,
        consent_type: str,
        lawful_basis: str,
        purpose: str | None = None,
        actor_id: UUID | None = None,
    ) -> RuleOutcome[ConsentRecord]:
        outcome = gdpr_engine.record_consent(
            tenant_id=tenant_id,
            data_subject_id=data_subject_id,
            consent_type=consent_type,
            lawful_basis=lawful_basis,
            rules=self._gdpr,
            clock=self._clock,
            purpose=purpose,
        )
        if outcome:
            self._save(ConsentRecordModel.from_dto(outcome.value, created_by_id=actor_id))
        return outcome

    def withdraw_consent(
        self,
        tenant_id: str,
        consent_id: UUID,
        reason: str | None = None,
    ) -> ConsentRecord:
        model = self._get(ConsentRecordModel, "ConsentRecord", tenant_id, consent_id)
        withdrawn = gdpr_engine.withdraw_consent(model.to_dto(), self._clock, reason)
        model.consent_given = withdrawn.consent_given
        model.withdrawn_at = withdrawn.withdrawn_at
        model.withdrawal_reason = withdrawn.withdrawal_reason
        self._commit()
        return withdrawn

    def active_consents(self, tenant_id: str, data_subject_id: str) -> tuple[ConsentRecord, ...]:
        stmt = (
            select(ConsentRecordModel)
            .where(ConsentRecordModel.tenant_id == tenant_id)
            .where(ConsentRecordModel.data_subject_id == data_subject_id)
            .order_by(ConsentRecordModel.given_at)
        )
        records = [m.to_dto() for m in self._session.scalars(stmt)]
        return gdpr_engine.active_consents(records, data_subject_id)

    # -------------------------------------------------------------------------
    # Retention
    # -------------------------------------------------------------------------

    def create_retention_policy(
        self,
        tenant_id: str,
        name: str,
        category: str,
        retention_days: int,
        lawful_basis: str,
        review_frequency_days: int | None = None,
        reference: str | None = None,
        actor_id: UUID | None = None,
    ) -> RuleOutcome[RetentionPolicy]:
        outcome = gdpr_engine.create_retention_policy(
            tenant_id=tenant_id,
            name=name,
            category=category,
            retention_days=retention_days,
            lawful_basis=lawful_basis,
            rules=self._gdpr,
            clock=self._clock,
            review_frequency_days=review_frequency_days,
            reference=reference,
        )
        if outcome:
            self._save(RetentionPolicyModel.from_dto(outcome.value, created_by_id=actor_id))
        return outcome

    def update_retention_policy(
        self,
        tenant_id: str,
        policy_id: UUID,
        actor_id: UUID | None = None,
        **changes: Any,
    ) -> RuleOutcome[RetentionPolicy]:
        model = self._get(RetentionPolicyModel, "RetentionPolicy", tenant_id, policy_id)
        outcome = gdpr_engine.update_retention_policy(model.to_dto(), changes, self._gdpr, self._clock)
        if outcome:
            model.apply_dto(outcome.value)
            model.updated_by_id = actor_id
            self._commit()
            logger.info("retention_policy_updated", extra={
                "policy_id": str(policy_id),
                "changed_fields": sorted(changes),
            })
        return outcome

    def install_default_policies(self, tenant_id: str) -> tuple[RetentionPolicy, ...]:
        """
        Create the rule set's recommended policies for categories the
        tenant does not cover yet. Returns only the newly created ones.
        """
        existing = set(self._session.scalars(
            select(RetentionPolicyModel.category)
            .where(RetentionPolicyModel.tenant_id == tenant_id)
            .where(RetentionPolicyModel.is_active.is_(True))
        ))
        created = tuple(
            p for p in gdpr_engine.default_retention_policies(tenant_id, self._gdpr, self._clock)
            if p.category not in existing
        )
        try:
            for policy in created:
                self._session.add(RetentionPolicyModel.from_dto(policy))
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("default_retention_policies_installed", extra={
            "tenant_id": tenant_id,
            "created_categories": [p.category for p in created],
            "skipped_categories": sorted(existing),
        })
        return created

    def policies_due_for_review(self, tenant_id: str) -> tuple[RetentionPolicy, ...]:
        now = self._clock.now()
        stmt = (
            select(RetentionPolicyModel)
            .where(RetentionPolicyModel.tenant_id == tenant_id)
            .order_by(RetentionPolicyModel.next_review_at)
        )
        return tuple(p for p in (m.to_dto() for m in self._session.scalars(stmt)) if p.is_review_due(now))

    def log_retention_action(
        self,
        tenant_id: str,
        policy_id: UUID,
        action: RetentionAction | str,
        record_count: int = 0,
        performed_by: str | None = None,
        notes: str | None = None,
    ) -> RetentionLog:
        """
        Append one entry to the policy's retention log. A ``reviewed``
        action also advances the policy's next review date.
        """
        model = self._get(RetentionPolicyModel, "RetentionPolicy", tenant_id, policy_id)
        policy = model.to_dto()
        log = gdpr_engine.log_retention_action(
            RetentionLog(),
            policy,
            action,
            self._clock,
            record_count=record_count,
            performed_by=performed_by,
            notes=notes,
        )
        try:
            self._session.add(RetentionLogModel.from_dto(log.latest))
            if log.latest.action is RetentionAction.REVIEWED:
                model.apply_dto(gdpr_engine.mark_policy_reviewed(policy, self._clock))
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return self.retention_log(tenant_id, policy_id)

    def retention_log(self, tenant_id: str, policy_id: UUID | None = None) -> RetentionLog:
        stmt = (
            select(RetentionLogModel)
            .where(RetentionLogModel.tenant_id == tenant_id)
            .order_by(RetentionLogModel.performed_at, RetentionLogModel.created_at)
        )
        if policy_id is not None:
            stmt = stmt.where(RetentionLogModel.policy_id == policy_id)
        return RetentionLog(entries=tuple(m.to_dto() for m in self._session.scalars(stmt)))

    # -------------------------------------------------------------------------
    # Data subject access requests
    # -------------------------------------------------------------------------

    def create_dsar_request(
        self,
        tenant_id: str,
        data_subject_id: str,
        request_type: str,
        data_subject_email: str | None = None,
        actor_id: UUID | None = None,
    ) -> RuleOutcome[DsarRequest]:
        outcome = gdpr_engine.create_dsar_request(
            tenant_id=tenant_id,
            data_subject_id=data_subject_id,
            request_type=request_type,
            rules=self._gdpr,
            clock=self._clock,
            data_subject_email=data_subject_email,
        )
        if outcome:
            self._save(DsarRequestModel.from_dto(outcome.value, created_by_id=actor_id))
        return outcome

    def get_dsar_request(self, tenant_id: str, request_id: UUID) -> DsarRequest:
        return self._get(DsarRequestModel, "DsarRequest", tenant_id, request_id).to_dto()

    def advance_dsar(
        self,
        tenant_id: str,
        request_id: UUID,
        action: str,
        notes: str | None = None,
    ) -> DsarRequest:
        """
        Apply a DSAR workflow action (``start``, ``complete``, ``reject``).

        Raises:
            TerminalStateError: the request is already completed or rejected.
            InvalidTransitionError: ``action`` is not allowed from the status.
        """
        model = self._get(DsarRequestModel, "DsarRequest", tenant_id, request_id)
        current = model.to_dto()
        updated = gdpr_engine.advance_dsar_request(current, action, DSAR_WORKFLOW, self._clock, notes)

        model.status = updated.status
        model.completed_at = updated.completed_at
        model.response_notes = updated.response_notes
        self._commit()

        logger.info("dsar_status_changed", extra={
            "request_number": updated.request_number,
            "from_status": current.status,
            "to_status": updated.status,
            "action": action,
        })
        return updated

    def overdue_dsar_requests(self, tenant_id: str) -> tuple[DsarRequest, ...]:
        now = self._clock.now()
        stmt = (
            select(DsarRequestModel)
            .where(DsarRequestModel.tenant_id == tenant_id)
            .where(DsarRequestModel.status.not_in([DsarStatus.COMPLETED.value, DsarStatus.REJECTED.value]))
            .order_by(DsarRequestModel.due_date)
        )
        requests = [m.to_dto() for m in self._session.scalars(stmt)]
        overdue = gdpr_engine.overdue_dsar_requests(requests, now)
        if overdue:
            logger.warning("dsar_requests_overdue", extra={
                "tenant_id": tenant_id,
                "request_numbers": [r.request_number for r in overdue],
            })
        return overdue

    # -------------------------------------------------------------------------
    # Data breaches
    # -------------------------------------------------------------------------

    def report_breach(
        self,
        tenant_id: str,
        breach_type: str,
        data_types_affected: list[str] | frozenset[str],
        data_subjects_affected: int,
        description: str = "",
        actor_id: UUID | None = None,
        **overrides: Any,
    ) -> RuleOutcome[DataBreach]:
        """
        Assess and store a breach. ``overrides`` accepts ``discovered_at``,
        ``severity``, ``risk_to_rights`` and ``notification_required``.
        """
        outcome = breach_engine.report_breach(
            tenant_id=tenant_id,
            breach_type=breach_type,
            data_types_affected=data_types_affected,
            data_subjects_affected=data_subjects_affected,
            clock=self._clock,
            rules=self._breach_rules,
            description=description,
            **overrides,
        )
        if outcome:
            self._save(DataBreachModel.from_dto(outcome.value, created_by_id=actor_id))
        return outcome

    def get_breach(self, tenant_id: str, breach_id: UUID) -> DataBreach:
        return self._get(DataBreachModel, "DataBreach", tenant_id, breach_id).to_dto()

    def advance_breach(self, tenant_id: str, breach_id: UUID, action: str) -> DataBreach:
        """
        Apply a breach workflow action (``investigate``, ``contain``,
        ``resolve``). A breach that requires notification cannot be
        resolved before the regulator has been notified; that raises
        ``NotificationPendingError``.
        """
        model = self._get(DataBreachModel, "DataBreach", tenant_id, breach_id)
        current = model.to_dto()
        target = BREACH_WORKFLOW.apply(current.status, action)
        if (
            target == BreachStatus.RESOLVED
            and current.notification_required
            and current.regulator_notified_at is None
        ):
            raise NotificationPendingError(current.breach_number, current.notification_deadline)

        model.status = target
        self._commit()
        logger.info("breach_status_changed", extra={
            "breach_number": current.breach_number,
            "from_status": current.status,
            "to_status": target,
            "action": action,
        })
        return model.to_dto()

    def mark_regulator_notified(self, tenant_id: str, breach_id: UUID) -> DataBreach:
        model = self._get(DataBreachModel, "DataBreach", tenant_id, breach_id)
        if model.regulator_notified_at is not None:
            return model.to_dto()
        now = self._clock.now()
        model.regulator_notified_at = now
        self._commit()

        breach = model.to_dto()
        logger.info("breach_regulator_notified", extra={
            "breach_number": breach.breach_number,
            "notified_at": now,
            "within_deadline": now <= breach.notification_deadline,
        })
        return breach

    def breaches_awaiting_notification(self, tenant_id: str) -> tuple[DataBreach, ...]:
        """Breaches whose notification deadline has passed without notice."""
        now = self._clock.now()
        stmt = (
            select(DataBreachModel)
            .where(DataBreachModel.tenant_id == tenant_id)
            .where(DataBreachModel.notification_required.is_(True))
            .where(DataBreachModel.regulator_notified_at.is_(None))
            .order_by(DataBreachModel.discovered_at)
        )
        breaches = (m.to_dto() for m in self._session.scalars(stmt))
        return tuple(b for b in breaches if b.is_notification_overdue(now))
