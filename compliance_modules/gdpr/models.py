"""
GDPR Domain Models.

The record DTOs (ConsentRecord, RetentionPolicy, RetentionLogEntry,
DsarRequest, DataBreach) are built by the pure engines in
``compliance_engines.gdpr`` and ``compliance_engines.breach``; this module
adds the lifecycle status enums the workflows and ORM use.
"""

from enum import Enum


class DsarStatus(str, Enum):
    RECEIVED = "received"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"


class BreachStatus(str, Enum):
    DETECTED = "detected"
    INVESTIGATING = "investigating"
    CONTAINED = "contained"
    RESOLVED = "resolved"
