"""
Pure domain layer.

Value objects, outcomes and workflow types with NO dependencies on
SQLAlchemy, the database, or I/O. All domain objects are immutable.
"""

from compliance_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from compliance_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from compliance_kernel.domain.validation import RuleOutcome, ValidationIssue
from compliance_kernel.domain.values import (
    BANKERS_ROUNDING,
    Currency,
    ExchangeRate,
    Money,
    to_decimal,
)
from compliance_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    # Values
    "BANKERS_ROUNDING",
    "Currency",
    "ExchangeRate",
    "Money",
    "to_decimal",
    # Outcomes
    "RuleOutcome",
    "ValidationIssue",
    # Workflow
    "Guard",
    "Transition",
    "Workflow",
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
    # Currency
    "CurrencyRegistry",
    "CurrencyInfo",
]
