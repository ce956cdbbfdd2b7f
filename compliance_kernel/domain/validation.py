"""
Validation outcomes returned (never raised) by the rule engines.

A rejected user input is an expected condition the caller must surface,
so engines hand back a ``RuleOutcome`` carrying one or more
``ValidationIssue`` values instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ValidationIssue:
    """A single machine-readable rejection reason."""

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class RuleOutcome(Generic[T]):
    """
    Result of applying a rule.

    ``accepted`` is True only when there are no issues. ``value`` carries
    the constructed object for accepted outcomes (e.g. a ConsentRecord).
    ``bool(outcome) == outcome.accepted``.
    """

    accepted: bool
    issues: tuple[ValidationIssue, ...] = field(default_factory=tuple)
    value: T | None = None

    @classmethod
    def ok(cls, value: T | None = None) -> RuleOutcome[T]:
        return cls(accepted=True, issues=(), value=value)

    @classmethod
    def rejected(cls, *issues: ValidationIssue) -> RuleOutcome[T]:
        if not issues:
            raise ValueError("A rejected outcome needs at least one issue")
        return cls(accepted=False, issues=tuple(issues))

    @classmethod
    def reject(
        cls,
        code: str,
        message: str,
        field: str | None = None,
        **details: Any,
    ) -> RuleOutcome[T]:
        """Shorthand for a single-issue rejection."""
        return cls.rejected(
            ValidationIssue(code=code, message=message, field=field, details=details or None)
        )

    @property
    def reason(self) -> str | None:
        """First issue's message, or None when accepted."""
        return self.issues[0].message if self.issues else None

    @property
    def codes(self) -> tuple[str, ...]:
        return tuple(issue.code for issue in self.issues)

    def __bool__(self) -> bool:
        return self.accepted
