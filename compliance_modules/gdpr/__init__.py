"""
GDPR Module.

Consent records, retention policies with their append-only log, data
subject access requests and breach reporting, persisted over the pure
engines in ``compliance_engines.gdpr`` and ``compliance_engines.breach``.
"""

from compliance_modules.gdpr.models import BreachStatus, DsarStatus
from compliance_modules.gdpr.service import ComplianceService
from compliance_modules.gdpr.workflows import BREACH_WORKFLOW, DSAR_WORKFLOW

__all__ = [
    "BREACH_WORKFLOW",
    "BreachStatus",
    "ComplianceService",
    "DSAR_WORKFLOW",
    "DsarStatus",
]
