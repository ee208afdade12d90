"""
Tests for ORM-level immutability enforcement (``repair_kernel.db.immutability``).

Every test goes through the ORM so the before_update/before_delete
listeners fire; a blocked flush leaves the database untouched.
"""

import pytest
from sqlalchemy import event, select

from repair_kernel.db.immutability import (
    _check_job_event_immutability,
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from repair_kernel.domain.transitions import JobState
from repair_kernel.exceptions import ImmutabilityViolationError
from repair_kernel.models.approval import ApprovalRequestModel
from repair_kernel.models.job import Job
from repair_kernel.models.job_event import JobEvent
from repair_kernel.models.line_item import LineItem


def _first_event(session, job_id) -> JobEvent:
    return session.execute(
        select(JobEvent).where(JobEvent.job_id == job_id).order_by(JobEvent.seq)
    ).scalars().first()


class TestJobEvents:

    def test_update_blocked(self, make_job, session):
        job = make_job()
        event_row = _first_event(session, job.id)
        event_row.payload = {"to_state": "CLOSED", "from_state": None, "reason": None}
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "JobEvent"
        session.rollback()

    def test_delete_blocked(self, make_job, session):
        job = make_job()
        session.delete(_first_event(session, job.id))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_violation_logged(self, make_job, session, captured_logs):
        job = make_job()
        event_row = _first_event(session, job.id)
        event_row.actor_id = None
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()
        record = next(r for r in captured_logs() if r["message"] == "immutability_violation_blocked")
        assert record["entity_type"] == "JobEvent"
        assert record["field"] == "actor_id"


class TestApprovalRequests:

    def test_decided_request_frozen(self, waiting_job, approvals, session):
        job, issue = waiting_job
        approvals.decide(job.id, issue.token, "approve")
        row = session.execute(
            select(ApprovalRequestModel).where(ApprovalRequestModel.job_id == job.id)
        ).scalar_one()
        row.status = "DECLINED"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_partial_reset_blocked(self, waiting_job, approvals, session):
        job, issue = waiting_job
        approvals.decide(job.id, issue.token, "decline")
        row = session.execute(
            select(ApprovalRequestModel).where(ApprovalRequestModel.job_id == job.id)
        ).scalar_one()
        row.status = "SENT"
        row.decided_at = None
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_delete_blocked(self, waiting_job, session):
        job, _ = waiting_job
        row = session.execute(
            select(ApprovalRequestModel).where(ApprovalRequestModel.job_id == job.id)
        ).scalar_one()
        session.delete(row)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


class TestLineItems:

    def test_decided_item_status_frozen(self, waiting_job, approvals, session):
        job, issue = waiting_job
        approvals.decide(job.id, issue.token, "decline")
        item = session.execute(
            select(LineItem).where(LineItem.job_id == job.id).order_by(LineItem.sort_order)
        ).scalars().first()
        item.status = "PROPOSED"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_proposed_item_may_change(self, make_job, add_estimate, session):
        job = make_job()
        add_estimate(job.id)
        item = session.execute(select(LineItem).where(LineItem.job_id == job.id)).scalars().first()
        item.unit_price = 9900
        session.flush()
        session.rollback()

    def test_decided_item_delete_blocked(self, waiting_job, approvals, session):
        job, issue = waiting_job
        approvals.decide(job.id, issue.token, "approve")
        item = session.execute(select(LineItem).where(LineItem.job_id == job.id)).scalars().first()
        session.delete(item)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


class TestJobs:

    def _close(self, lifecycle, advisor, job_id):
        for state in (
            JobState.DIAGNOSIS, JobState.WAITING_APPROVAL, JobState.APPROVED_READY,
            JobState.IN_REPAIR, JobState.QUALITY_CHECK, JobState.READY_PICKUP, JobState.CLOSED,
        ):
            lifecycle.transition_job(advisor, job_id, state)

    def test_closed_job_cannot_reopen(self, make_job, lifecycle, advisor, session):
        job = make_job()
        self._close(lifecycle, advisor, job.id)
        row = session.get(Job, job.id, populate_existing=True)
        row.state = "IN_REPAIR"
        row.closed_at = None
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_closed_job_title_may_change(self, make_job, lifecycle, advisor, session):
        job = make_job()
        self._close(lifecycle, advisor, job.id)
        row = session.get(Job, job.id, populate_existing=True)
        row.title = "Brake noise (warranty)"
        session.flush()
        session.rollback()

    def test_jobs_never_deleted(self, make_job, session):
        job = make_job()
        session.delete(session.get(Job, job.id))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


class TestRegistration:

    def test_register_is_idempotent(self, db_engine):
        register_immutability_listeners()
        register_immutability_listeners()
        assert event.contains(JobEvent, "before_update", _check_job_event_immutability)

    def test_unregister(self, db_engine):
        unregister_immutability_listeners()
        try:
            assert not event.contains(JobEvent, "before_update", _check_job_event_immutability)
        finally:
            register_immutability_listeners()
