"""
Typed Exception Hierarchy for the Compliance Kernel.

===============================================================================
WHEN SOMETHING IS RAISED VS. RETURNED
===============================================================================

The rule engine distinguishes three classes of failure:

  1. Validation -- malformed or out-of-range user input (a bad VAT number,
     an unknown lawful basis, an unknown DSAR type).  These are EXPECTED and
     are returned as structured rejections (``RuleOutcome`` / result objects
     carrying ``ValidationIssue`` values).  They are never raised.

  2. Invariant violations -- plan currency/country mismatch, protected prefix
     collision, illegal workflow transition.  Engines return the rejection;
     services raise the typed exception below BEFORE any write happens.

  3. Configuration gaps -- unknown tier, missing rate schedule.  Engines
     degrade to the safest default (lowest limits, no features, standard
     rate) and flag the gap.  ``ConfigurationGapError`` is raised only when
     no safe default exists at all.

Programming errors (float amounts, negative quantities) remain plain
``ValueError`` / ``TypeError``.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ComplianceKernelError (base)
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- CurrencyMismatchError
    |
    +-- InvariantViolationError
    |   +-- PlanCurrencyMismatchError
    |   +-- PlanCodeCollisionError
    |   +-- ProtectedPrefixError
    |
    +-- ConfigurationGapError
    |   +-- ConfigValidationError
    |   +-- RateScheduleNotFoundError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   +-- TerminalStateError
    |   +-- NotificationPendingError
    |
    +-- ConsentError
    |   +-- ConsentAlreadyWithdrawnError
    |
    +-- LimitError
    |   +-- LimitExceededError
    |
    +-- ImmutabilityError
    |   +-- AppendOnlyViolationError
    |
    +-- RecordNotFoundError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Currency        | INVALID_CURRENCY            | Not a valid ISO 4217 code
                | CURRENCY_MISMATCH           | Mixed currencies in operation
----------------|-----------------------------|-----------------------------------------
Invariant       | PLAN_CURRENCY_MISMATCH      | Protected country priced in wrong currency
                | PLAN_CODE_COLLISION         | Normalized code already active
                | PROTECTED_PREFIX            | Prefix/country disagreement or legacy clash
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIG_VALIDATION_FAILED    | Rule registry failed load-time checks
                | RATE_SCHEDULE_NOT_FOUND     | No schedule and no fallback jurisdiction
----------------|-----------------------------|-----------------------------------------
Workflow        | INVALID_TRANSITION          | Action not allowed from current state
                | TERMINAL_STATE              | Record is in a terminal state
                | NOTIFICATION_PENDING        | Resolving a breach before notifying
----------------|-----------------------------|-----------------------------------------
Consent         | CONSENT_ALREADY_WITHDRAWN   | Withdrawal is one-way
----------------|-----------------------------|-----------------------------------------
Limit           | LIMIT_EXCEEDED              | Atomic increment-or-reject refused
----------------|-----------------------------|-----------------------------------------
Immutability    | APPEND_ONLY_VIOLATION       | Editing an append-only log entry
----------------|-----------------------------|-----------------------------------------
Lookup          | RECORD_NOT_FOUND            | Tenant-scoped record does not exist
===============================================================================
"""


class ComplianceKernelError(Exception):
    """
    Base exception for all compliance kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "COMPLIANCE_KERNEL_ERROR"


# Currency-related exceptions


class CurrencyError(ComplianceKernelError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Currency code is not valid ISO 4217."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: {currency!r}")


class CurrencyMismatchError(CurrencyError):
    """Operation mixes amounts in different currencies."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, received: str, operation: str = ""):
        self.expected = expected
        self.received = received
        self.operation = operation
        suffix = f" in {operation}" if operation else ""
        super().__init__(
            f"Currency mismatch{suffix}: expected {expected}, got {received}"
        )


# Invariant violations (rejected before persistence)


class InvariantViolationError(ComplianceKernelError):
    """Base exception for cross-entity invariant violations."""

    code: str = "INVARIANT_VIOLATION"


class PlanCurrencyMismatchError(InvariantViolationError):
    """A protected country's plan is priced in a non-mandated currency."""

    code: str = "PLAN_CURRENCY_MISMATCH"

    def __init__(self, plan_code: str, country: str, expected: str, received: str):
        self.plan_code = plan_code
        self.country = country
        self.expected = expected
        self.received = received
        super().__init__(
            f"Plan {plan_code!r} for country {country} must use {expected}, "
            f"got {received}"
        )


class PlanCodeCollisionError(InvariantViolationError):
    """Plan code collides with an active code once normalized."""

    code: str = "PLAN_CODE_COLLISION"

    def __init__(self, plan_code: str, existing_code: str):
        self.plan_code = plan_code
        self.existing_code = existing_code
        super().__init__(
            f"Plan code {plan_code!r} collides with active code {existing_code!r}"
        )


class ProtectedPrefixError(InvariantViolationError):
    """Plan code prefix disagrees with its country or shadows a protected namespace."""

    code: str = "PROTECTED_PREFIX"

    def __init__(self, plan_code: str, reason: str):
        self.plan_code = plan_code
        self.reason = reason
        super().__init__(f"Plan code {plan_code!r} rejected: {reason}")


# Configuration gaps


class ConfigurationGapError(ComplianceKernelError):
    """Base exception for missing or inconsistent configuration."""

    code: str = "CONFIGURATION_GAP"


class ConfigValidationError(ConfigurationGapError):
    """Rule registry failed load-time validation."""

    code: str = "CONFIG_VALIDATION_FAILED"

    def __init__(self, source: str, issues: list[str]):
        self.source = source
        self.issues = issues
        super().__init__(
            f"Configuration {source} failed validation with "
            f"{len(issues)} issue(s): " + "; ".join(issues)
        )


class RateScheduleNotFoundError(ConfigurationGapError):
    """No VAT schedule exists for the jurisdiction and no fallback is configured."""

    code: str = "RATE_SCHEDULE_NOT_FOUND"

    def __init__(self, jurisdiction: str):
        self.jurisdiction = jurisdiction
        super().__init__(f"No VAT rate schedule for jurisdiction {jurisdiction!r}")


# Workflow errors


class WorkflowError(ComplianceKernelError):
    """Base exception for lifecycle state-machine errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """Requested action is not a valid transition from the current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, workflow: str, from_state: str, action: str):
        self.workflow = workflow
        self.from_state = from_state
        self.action = action
        super().__init__(
            f"Workflow {workflow!r}: action {action!r} not allowed from {from_state!r}"
        )


class TerminalStateError(WorkflowError):
    """Record is in a terminal state and accepts no further transitions."""

    code: str = "TERMINAL_STATE"

    def __init__(self, workflow: str, state: str):
        self.workflow = workflow
        self.state = state
        super().__init__(f"Workflow {workflow!r}: {state!r} is terminal")


class NotificationPendingError(WorkflowError):
    """Breach cannot be resolved while its regulator notification is outstanding."""

    code: str = "NOTIFICATION_PENDING"

    def __init__(self, breach_number: str, deadline):
        self.breach_number = breach_number
        self.deadline = deadline
        super().__init__(
            f"Breach {breach_number} requires regulator notification "
            f"(due {deadline.isoformat()}) before it is resolved"
        )


# Consent errors


class ConsentError(ComplianceKernelError):
    """Base exception for consent lifecycle errors."""

    code: str = "CONSENT_ERROR"


class ConsentAlreadyWithdrawnError(ConsentError):
    """Consent withdrawal is one-way; a new record must be created to re-consent."""

    code: str = "CONSENT_ALREADY_WITHDRAWN"

    def __init__(self, consent_id: str, withdrawn_at: str):
        self.consent_id = consent_id
        self.withdrawn_at = withdrawn_at
        super().__init__(
            f"Consent {consent_id} was already withdrawn at {withdrawn_at}"
        )


# Limit errors


class LimitError(ComplianceKernelError):
    """Base exception for subscription limit errors."""

    code: str = "LIMIT_ERROR"


class LimitExceededError(LimitError):
    """Atomic increment-or-reject refused because the tier cap is reached."""

    code: str = "LIMIT_EXCEEDED"

    def __init__(self, tenant_id: str, resource: str, limit: int, current: int):
        self.tenant_id = tenant_id
        self.resource = resource
        self.limit = limit
        self.current = current
        super().__init__(
            f"Tenant {tenant_id} reached {resource} limit {limit} (current={current})"
        )


# Immutability errors


class ImmutabilityError(ComplianceKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class AppendOnlyViolationError(ImmutabilityError):
    """Attempt to modify or remove an entry from an append-only log."""

    code: str = "APPEND_ONLY_VIOLATION"

    def __init__(self, log_name: str, entry_id: str):
        self.log_name = log_name
        self.entry_id = entry_id
        super().__init__(f"{log_name} is append-only; entry {entry_id} cannot change")


# Lookup errors


class RecordNotFoundError(ComplianceKernelError):
    """Tenant-scoped record does not exist."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, record_type: str, record_id: str):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(f"{record_type} not found: {record_id}")
