"""
Canonical workflow types (``pettycash_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the receipt and batch state machines.  Every status
change in the services resolves its target state through ``Workflow.resolve``
so there is exactly one table of legal moves per entity.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass

from pettycash_kernel.exceptions import InvalidStateTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.  The owning service evaluates it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``actor_roles`` lists the personas allowed to trigger it; empty means
    the transition only fires as a side effect of another entity's transition.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    actor_roles: tuple[str, ...] = ()


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"{self.name}: initial state {self.initial_state!r} not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"{self.name}: transition {t.action} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"{self.name}: terminal state {t.from_state!r} has outgoing "
                    f"transition {t.action}"
                )

    def find(self, from_state: str, action: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def can(self, from_state: str, action: str) -> bool:
        return self.find(from_state, action) is not None

    def resolve(self, from_state: str, action: str, entity_id: object) -> Transition:
        """Return the transition for ``action`` from ``from_state``.

        Raises:
            InvalidStateTransitionError: no such transition.
        """
        transition = self.find(from_state, action)
        if transition is None:
            raise InvalidStateTransitionError(
                entity_type=self.name,
                entity_id=str(entity_id),
                current_state=from_state,
                action=action,
            )
        return transition

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

    def actions_from(self, state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == state)
