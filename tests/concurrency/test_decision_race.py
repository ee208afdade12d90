"""
Concurrent customer decisions on one approval link.

However many requests race, exactly one decision is recorded and the job,
the request and the line items all agree with it.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from threading import Barrier, Event

import pytest

from repair_kernel.domain.approval import ApprovalStatus, DecisionOutcome
from repair_kernel.domain.dtos import LineItemStatus
from repair_kernel.domain.events import JobEventType
from repair_kernel.domain.transitions import JobState
from repair_kernel.exceptions import InvalidTransitionError
from repair_kernel.models.job import Job
from repair_kernel.selectors.job_selector import JobSelector
from repair_kernel.services.approval_service import ApprovalService
from repair_kernel.services.job_lifecycle_service import JobLifecycleService

pytestmark = pytest.mark.concurrency

THREADS = 8


def test_exactly_one_decision_wins(session, session_factory, settings, waiting_job, advisor, deterministic_clock):
    job, issue = waiting_job
    barrier = Barrier(THREADS)

    def decide(i: int):
        thread_session = session_factory()
        approvals = ApprovalService(thread_session, settings, deterministic_clock)
        choice = "approve" if i % 2 == 0 else "decline"
        barrier.wait(timeout=30)
        return choice, approvals.decide(job.id, issue.token, choice)

    session.close()
    with ThreadPoolExecutor(max_workers=THREADS) as pool:
        results = list(pool.map(decide, range(THREADS)))

    winners = [choice for choice, outcome in results if outcome is DecisionOutcome.RECORDED]
    assert len(winners) == 1
    assert sum(outcome is DecisionOutcome.NOT_AVAILABLE for _, outcome in results) == THREADS - 1

    detail = JobSelector(session).job_detail(advisor, job.id)
    if winners[0] == "approve":
        assert detail.approval.status is ApprovalStatus.APPROVED
        assert detail.job.state is JobState.APPROVED_READY
        assert {i.status for i in detail.items} == {LineItemStatus.APPROVED}
    else:
        assert detail.approval.status is ApprovalStatus.DECLINED
        assert detail.job.state is JobState.WAITING_APPROVAL
        assert {i.status for i in detail.items} == {LineItemStatus.DECLINED}
    decided = [e for e in detail.history if e.type is JobEventType.APPROVAL_DECIDED]
    assert len(decided) == 1
    _assert_history_chains(detail.history)


def _assert_history_chains(history):
    """Every STATE_CHANGE starts where the previous one ended."""
    state_changes = [e.payload for e in history if e.type is JobEventType.STATE_CHANGE]
    for previous, current in zip(state_changes, state_changes[1:]):
        assert current.from_state is previous.to_state


def test_back_edge_waits_for_decision_holding_the_job(
    session, session_factory, settings, waiting_job, advisor, deterministic_clock, monkeypatch,
):
    """A staff back edge issued while a decision holds the job row lands after it."""
    job, issue = waiting_job
    job_locked = Event()
    release = Event()
    load_request = ApprovalService._load_request

    def load_request_after_job_lock(self, job_id, for_update=False):
        if for_update:
            job_locked.set()
            assert release.wait(timeout=30)
        return load_request(self, job_id, for_update)

    monkeypatch.setattr(ApprovalService, "_load_request", load_request_after_job_lock)

    def decide():
        approvals = ApprovalService(session_factory(), settings, deterministic_clock)
        return approvals.decide(job.id, issue.token, "approve")

    def revise():
        assert job_locked.wait(timeout=30)
        lifecycle = JobLifecycleService(session_factory(), settings, deterministic_clock)
        return lifecycle.transition_job(advisor, job.id, JobState.DIAGNOSIS, reason="Re-quote")

    session.close()
    with ThreadPoolExecutor(max_workers=2) as pool:
        decision = pool.submit(decide)
        revision = pool.submit(revise)
        assert job_locked.wait(timeout=30)
        # Give the staff unit time to block on the job row.
        time.sleep(0.3)
        release.set()
        assert decision.result(timeout=60) is DecisionOutcome.RECORDED
        with pytest.raises(InvalidTransitionError):
            revision.result(timeout=60)

    detail = JobSelector(session).job_detail(advisor, job.id)
    assert detail.job.state is JobState.APPROVED_READY
    last = [e for e in detail.history if e.type is JobEventType.STATE_CHANGE][-1]
    assert last.payload.from_state is JobState.WAITING_APPROVAL
    assert last.payload.to_state is JobState.APPROVED_READY
    _assert_history_chains(detail.history)


def test_decision_rereads_job_committed_elsewhere(
    session, session_factory, settings, waiting_job, approvals, advisor, deterministic_clock,
):
    """A back edge committed by another session voids the link, even though
    the deciding session still holds the job as WAITING_APPROVAL."""
    job, issue = waiting_job
    held = session.get(Job, job.id)
    assert held.state == JobState.WAITING_APPROVAL.value
    session.commit()

    staff_lifecycle = JobLifecycleService(session_factory(), settings, deterministic_clock)
    staff_lifecycle.transition_job(advisor, job.id, JobState.DIAGNOSIS, reason="Re-quote")

    assert approvals.decide(job.id, issue.token, "approve") is DecisionOutcome.NOT_AVAILABLE

    detail = JobSelector(session).job_detail(advisor, job.id)
    assert detail.job.state is JobState.DIAGNOSIS
    assert detail.approval.status is ApprovalStatus.SENT
    assert {i.status for i in detail.items} == {LineItemStatus.PROPOSED}
    assert not [e for e in detail.history if e.type is JobEventType.APPROVAL_DECIDED]
    _assert_history_chains(detail.history)
