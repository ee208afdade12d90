"""
Job transition policy (``repair_kernel.domain.transitions``).

Responsibility
--------------
The job workflow graph and the pure queries over it: which edges exist,
which of them are back edges needing a justification, and which states a
job can still reach.

Architecture position
---------------------
**Kernel domain layer** -- pure functions over frozen data.  ZERO I/O.

Invariants enforced
-------------------
* The edge table below is the only source of legal transitions.
* CLOSED is terminal.
* Back edges (move to an earlier stage) require a non-blank reason.
"""

from __future__ import annotations

from enum import Enum

from repair_kernel.domain.workflow import Transition, Workflow
from repair_kernel.exceptions import InvalidTransitionError, ReasonRequiredError


class JobState(str, Enum):
    """Operational states of a repair job, in workflow order."""

    CHECKED_IN = "CHECKED_IN"
    DIAGNOSIS = "DIAGNOSIS"
    WAITING_APPROVAL = "WAITING_APPROVAL"
    APPROVED_READY = "APPROVED_READY"
    IN_REPAIR = "IN_REPAIR"
    WAITING_PARTS = "WAITING_PARTS"
    QUALITY_CHECK = "QUALITY_CHECK"
    READY_PICKUP = "READY_PICKUP"
    CLOSED = "CLOSED"


S = JobState

JOB_WORKFLOW = Workflow(
    name="repair_job",
    description="Intake through pickup for one vehicle repair",
    initial_state=S.CHECKED_IN.value,
    states=tuple(s.value for s in JobState),
    transitions=(
        # Forward path
        Transition(S.CHECKED_IN.value, S.DIAGNOSIS.value, "start_diagnosis"),
        Transition(S.DIAGNOSIS.value, S.WAITING_APPROVAL.value, "send_for_approval"),
        Transition(S.WAITING_APPROVAL.value, S.APPROVED_READY.value, "customer_approved"),
        Transition(S.APPROVED_READY.value, S.IN_REPAIR.value, "start_repair"),
        Transition(S.IN_REPAIR.value, S.WAITING_PARTS.value, "wait_for_parts"),
        Transition(S.IN_REPAIR.value, S.QUALITY_CHECK.value, "send_to_qc"),
        Transition(S.WAITING_PARTS.value, S.IN_REPAIR.value, "parts_arrived"),
        Transition(S.QUALITY_CHECK.value, S.READY_PICKUP.value, "pass_qc"),
        Transition(S.READY_PICKUP.value, S.CLOSED.value, "close"),
        # Back edges
        Transition(S.WAITING_APPROVAL.value, S.DIAGNOSIS.value, "revise_estimate", is_back_edge=True),
        Transition(S.IN_REPAIR.value, S.DIAGNOSIS.value, "rediagnose", is_back_edge=True),
        Transition(S.QUALITY_CHECK.value, S.IN_REPAIR.value, "fail_qc", is_back_edge=True),
    ),
    terminal_states=(S.CLOSED.value,),
)


FORWARD_TRANSITIONS: dict[JobState, tuple[JobState, ...]] = {
    state: tuple(
        JobState(t.to_state)
        for t in JOB_WORKFLOW.outgoing(state.value)
        if not t.is_back_edge
    )
    for state in JobState
}

BACK_TRANSITIONS: dict[JobState, tuple[JobState, ...]] = {
    state: tuple(
        JobState(t.to_state)
        for t in JOB_WORKFLOW.outgoing(state.value)
        if t.is_back_edge
    )
    for state in JobState
}

# Edge a customer decides; users other than management never drive it.
CUSTOMER_DECISION_EDGE: tuple[JobState, JobState] = (
    JobState.WAITING_APPROVAL,
    JobState.APPROVED_READY,
)

STATE_LABELS: dict[JobState, str] = {
    JobState.CHECKED_IN: "Checked In",
    JobState.DIAGNOSIS: "Diagnosis",
    JobState.WAITING_APPROVAL: "Waiting Approval",
    JobState.APPROVED_READY: "Approved / Ready",
    JobState.IN_REPAIR: "In Repair",
    JobState.WAITING_PARTS: "Waiting Parts",
    JobState.QUALITY_CHECK: "Quality Check",
    JobState.READY_PICKUP: "Ready for Pickup",
    JobState.CLOSED: "Closed",
}

# Board columns: every open state, in workflow order.
BOARD_STATES: tuple[JobState, ...] = tuple(
    s for s in JobState if s is not JobState.CLOSED
)

TECH_DO_NOW_STATES: frozenset[JobState] = frozenset({
    JobState.APPROVED_READY,
    JobState.IN_REPAIR,
})

TECH_BLOCKED_STATES: frozenset[JobState] = frozenset({
    JobState.WAITING_PARTS,
    JobState.WAITING_APPROVAL,
})


def can_transition(from_state: JobState, to_state: JobState) -> bool:
    """True iff ``to_state`` is a forward or back target of ``from_state``."""
    return (
        to_state in FORWARD_TRANSITIONS[from_state]
        or to_state in BACK_TRANSITIONS[from_state]
    )


def requires_reason(from_state: JobState, to_state: JobState) -> bool:
    """True iff the edge is a back edge."""
    return to_state in BACK_TRANSITIONS[from_state]


def allowed_targets(from_state: JobState) -> tuple[JobState, ...]:
    """Legal targets from a state: forward targets first, then back targets."""
    return FORWARD_TRANSITIONS[from_state] + BACK_TRANSITIONS[from_state]


def normalize_reason(reason: str | None) -> str | None:
    """Blank reasons count as absent."""
    if reason is None or not reason.strip():
        return None
    return reason


def check_transition(
    from_state: JobState,
    to_state: JobState,
    reason: str | None = None,
) -> None:
    """Validate an edge and its justification.

    Raises:
        InvalidTransitionError: The edge is not in the workflow.
        ReasonRequiredError: The edge is a back edge and ``reason`` is blank.
    """
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state.value, to_state.value)
    if requires_reason(from_state, to_state) and normalize_reason(reason) is None:
        raise ReasonRequiredError(from_state.value, to_state.value)


def reachable_states(from_state: JobState) -> frozenset[JobState]:
    """All states reachable from ``from_state`` (including itself)."""
    seen = {from_state}
    frontier = [from_state]
    while frontier:
        state = frontier.pop()
        for target in allowed_targets(state):
            if target not in seen:
                seen.add(target)
                frontier.append(target)
    return frozenset(seen)
