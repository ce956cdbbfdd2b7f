"""GDPR Workflows.

State machines for data subject access requests and data breaches.
"""

from compliance_kernel.domain.workflow import Guard, Transition, Workflow
from compliance_kernel.logging_config import get_logger

logger = get_logger("modules.gdpr.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

IDENTITY_VERIFIED = Guard(
    name="identity_verified",
    description="Data subject identity has been verified",
)

RESPONSE_SENT = Guard(
    name="response_sent",
    description="Response delivered to the data subject",
)

REGULATOR_ASSESSED = Guard(
    name="regulator_assessed",
    description="Regulator notification duty reviewed within the deadline",
)


# -----------------------------------------------------------------------------
# DSAR Workflow
# -----------------------------------------------------------------------------

DSAR_WORKFLOW = Workflow(
    name="dsar_request",
    description="Data subject access request lifecycle",
    initial_state="received",
    states=(
        "received",
        "in_progress",
        "completed",
        "rejected",
    ),
    transitions=(
        Transition("received", "in_progress", action="start", guard=IDENTITY_VERIFIED),
        Transition("received", "rejected", action="reject"),
        Transition("in_progress", "completed", action="complete", guard=RESPONSE_SENT),
        Transition("in_progress", "rejected", action="reject"),
    ),
    terminal_states=("completed", "rejected"),
)


# -----------------------------------------------------------------------------
# Breach Workflow
# -----------------------------------------------------------------------------

BREACH_WORKFLOW = Workflow(
    name="data_breach",
    description="Personal data breach lifecycle",
    initial_state="detected",
    states=(
        "detected",
        "investigating",
        "contained",
        "resolved",
    ),
    transitions=(
        Transition("detected", "investigating", action="investigate"),
        Transition("investigating", "contained", action="contain"),
        Transition("contained", "resolved", action="resolve", guard=REGULATOR_ASSESSED),
    ),
    terminal_states=("resolved",),
)

logger.debug(
    "gdpr_workflows_defined",
    extra={"workflows": [DSAR_WORKFLOW.name, BREACH_WORKFLOW.name]},
)
