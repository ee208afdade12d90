"""
Canonical workflow types (``repair_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for state machines.  ``Transition`` and ``Workflow`` are
defined once; the job workflow in ``domain.transitions`` is an instance.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* At most one transition per ``(from_state, to_state)`` pair.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    Contract: frozen.  ``is_back_edge=True`` marks a move to an earlier
    stage; such transitions require a justification from the actor.
    """
    from_state: str
    to_state: str
    action: str
    is_back_edge: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; validated at construction.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        known = set(self.states)
        if self.initial_state not in known:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state} "
                f"is not a declared state"
            )
        seen: set[tuple[str, str]] = set()
        for t in self.transitions:
            if t.from_state not in known or t.to_state not in known:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} references "
                    f"undeclared state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state} "
                    f"has outgoing transition {t.action}"
                )
            key = (t.from_state, t.to_state)
            if key in seen:
                raise ValueError(
                    f"Workflow {self.name}: duplicate edge {key[0]} -> {key[1]}"
                )
            seen.add(key)

    def find(self, from_state: str, to_state: str) -> Transition | None:
        """Return the transition for an edge, or None if it does not exist."""
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state:
                return t
        return None

    def outgoing(self, from_state: str) -> tuple[Transition, ...]:
        return tuple(t for t in self.transitions if t.from_state == from_state)
