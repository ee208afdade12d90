"""
Tests for the job workflow graph (``repair_kernel.domain.transitions``).

Covers every ordered pair of states: the twelve edges are legal, the three
back edges demand a reason, and the other 69 pairs are rejected.
"""

from itertools import product

import pytest

from repair_kernel.domain.transitions import (
    BACK_TRANSITIONS,
    BOARD_STATES,
    FORWARD_TRANSITIONS,
    JOB_WORKFLOW,
    STATE_LABELS,
    JobState,
    allowed_targets,
    can_transition,
    check_transition,
    normalize_reason,
    reachable_states,
    requires_reason,
)
from repair_kernel.domain.workflow import Transition, Workflow
from repair_kernel.exceptions import InvalidTransitionError, ReasonRequiredError

S = JobState

FORWARD_EDGES = {
    (S.CHECKED_IN, S.DIAGNOSIS),
    (S.DIAGNOSIS, S.WAITING_APPROVAL),
    (S.WAITING_APPROVAL, S.APPROVED_READY),
    (S.APPROVED_READY, S.IN_REPAIR),
    (S.IN_REPAIR, S.WAITING_PARTS),
    (S.IN_REPAIR, S.QUALITY_CHECK),
    (S.WAITING_PARTS, S.IN_REPAIR),
    (S.QUALITY_CHECK, S.READY_PICKUP),
    (S.READY_PICKUP, S.CLOSED),
}

BACK_EDGES = {
    (S.WAITING_APPROVAL, S.DIAGNOSIS),
    (S.IN_REPAIR, S.DIAGNOSIS),
    (S.QUALITY_CHECK, S.IN_REPAIR),
}

ALL_PAIRS = list(product(JobState, JobState))


class TestGraphShape:

    def test_nine_states(self):
        assert len(JobState) == 9

    def test_edge_sets_match_tables(self):
        forward = {(f, t) for f, targets in FORWARD_TRANSITIONS.items() for t in targets}
        back = {(f, t) for f, targets in BACK_TRANSITIONS.items() for t in targets}
        assert forward == FORWARD_EDGES
        assert back == BACK_EDGES

    def test_closed_is_terminal(self):
        assert allowed_targets(S.CLOSED) == ()
        assert JOB_WORKFLOW.terminal_states == ("CLOSED",)

    def test_allowed_targets_forward_first(self):
        assert allowed_targets(S.IN_REPAIR) == (S.WAITING_PARTS, S.QUALITY_CHECK, S.DIAGNOSIS)
        assert allowed_targets(S.WAITING_APPROVAL) == (S.APPROVED_READY, S.DIAGNOSIS)

    def test_every_state_reaches_closed(self):
        for state in JobState:
            assert S.CLOSED in reachable_states(state)

    def test_closed_reaches_only_itself(self):
        assert reachable_states(S.CLOSED) == frozenset({S.CLOSED})

    def test_board_states_exclude_closed(self):
        assert S.CLOSED not in BOARD_STATES
        assert len(BOARD_STATES) == 8

    def test_every_state_has_a_label(self):
        assert set(STATE_LABELS) == set(JobState)


class TestAllPairs:
    """Exhaustive 9 x 9 check."""

    @pytest.mark.parametrize("from_state,to_state", ALL_PAIRS)
    def test_can_transition(self, from_state, to_state):
        expected = (from_state, to_state) in FORWARD_EDGES | BACK_EDGES
        assert can_transition(from_state, to_state) is expected

    @pytest.mark.parametrize("from_state,to_state", ALL_PAIRS)
    def test_check_transition_with_reason(self, from_state, to_state):
        if (from_state, to_state) in FORWARD_EDGES | BACK_EDGES:
            check_transition(from_state, to_state, "customer asked")
        else:
            with pytest.raises(InvalidTransitionError) as exc_info:
                check_transition(from_state, to_state, "customer asked")
            assert exc_info.value.from_state == from_state.value
            assert exc_info.value.to_state == to_state.value

    def test_self_transitions_rejected(self):
        for state in JobState:
            assert not can_transition(state, state)


class TestReasons:

    @pytest.mark.parametrize("from_state,to_state", sorted(BACK_EDGES))
    @pytest.mark.parametrize("reason", [None, "", "   ", "\t\n"])
    def test_back_edge_without_reason_rejected(self, from_state, to_state, reason):
        assert requires_reason(from_state, to_state)
        with pytest.raises(ReasonRequiredError) as exc_info:
            check_transition(from_state, to_state, reason)
        assert exc_info.value.code == "REASON_REQUIRED"

    @pytest.mark.parametrize("from_state,to_state", sorted(FORWARD_EDGES))
    def test_forward_edge_needs_no_reason(self, from_state, to_state):
        assert not requires_reason(from_state, to_state)
        check_transition(from_state, to_state)

    def test_invalid_edge_reported_before_missing_reason(self):
        with pytest.raises(InvalidTransitionError):
            check_transition(S.CLOSED, S.DIAGNOSIS)

    def test_normalize_reason(self):
        assert normalize_reason(None) is None
        assert normalize_reason("  ") is None
        assert normalize_reason(" needs parts ") == " needs parts "


class TestWorkflowDefinition:

    def test_rejects_unknown_state(self):
        with pytest.raises(ValueError):
            Workflow(
                name="w", description="", initial_state="A", states=("A",),
                transitions=(Transition("A", "B", "go"),),
            )

    def test_rejects_outgoing_edge_from_terminal(self):
        with pytest.raises(ValueError):
            Workflow(
                name="w", description="", initial_state="A", states=("A", "B"),
                transitions=(Transition("B", "A", "reopen"),),
                terminal_states=("B",),
            )

    def test_rejects_duplicate_edge(self):
        with pytest.raises(ValueError):
            Workflow(
                name="w", description="", initial_state="A", states=("A", "B"),
                transitions=(Transition("A", "B", "go"), Transition("A", "B", "again")),
            )

    def test_find(self):
        edge = JOB_WORKFLOW.find("QUALITY_CHECK", "IN_REPAIR")
        assert edge.action == "fail_qc"
        assert edge.is_back_edge
        assert JOB_WORKFLOW.find("CLOSED", "CHECKED_IN") is None
