"""
Canonical workflow types (``compliance_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for lifecycle state machines (invoices, DSAR requests,
breaches). Guard, Transition and Workflow are defined once here and
declared per module in ``<module>/workflows.py``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects. ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass

from compliance_kernel.exceptions import InvalidTransitionError, TerminalStateError


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Descriptive only; the owning engine evaluates it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a record lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action!r} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state!r} has outgoing transition"
                )

    def allowed_actions(self, state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == state)

    def find_transition(self, state: str, action: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == state and t.action == action:
                return t
        return None

    def can_transition(self, state: str, action: str) -> bool:
        return self.find_transition(state, action) is not None

    def apply(self, state: str, action: str) -> str:
        """Return the target state of ``action`` from ``state``.

        Raises:
            TerminalStateError: ``state`` is terminal.
            InvalidTransitionError: no such transition.
        """
        if state in self.terminal_states:
            raise TerminalStateError(self.name, state)
        transition = self.find_transition(state, action)
        if transition is None:
            raise InvalidTransitionError(self.name, state, action)
        return transition.to_state
