"""
Module: repair_kernel.selectors.job_selector
Responsibility: Read models over jobs -- the service board, a technician's
    queue, and the full detail of one job.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Tenant scoping: every query filters on the principal's shop; a foreign
      job is reported exactly like a missing one (JobNotFoundError).
    - History is returned in canonical order: (created_at, seq).
    - Time in state is measured from the job's latest STATE_CHANGE event,
      not from ``updated_at`` (assignment also touches ``updated_at``).

Failure modes:
    - JobNotFoundError from ``job_detail`` for a missing or foreign job.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from repair_kernel.domain.approval import ApprovalRequestRecord
from repair_kernel.domain.dtos import (
    JobEventRecord,
    JobPriority,
    JobRecord,
    LineItemRecord,
    LineItemStatus,
    MediaRecord,
    items_total,
)
from repair_kernel.domain.events import JobEventType
from repair_kernel.domain.principal import Principal
from repair_kernel.domain.transitions import (
    BOARD_STATES,
    STATE_LABELS,
    TECH_BLOCKED_STATES,
    TECH_DO_NOW_STATES,
    JobState,
    allowed_targets,
)
from repair_kernel.exceptions import JobNotFoundError
from repair_kernel.models.approval import ApprovalRequestModel
from repair_kernel.models.job import Job
from repair_kernel.models.job_event import JobEvent
from repair_kernel.models.line_item import LineItem
from repair_kernel.models.media import InspectionMedia
from repair_kernel.models.shop import User, Vehicle
from repair_kernel.selectors.base import BaseSelector

_PRIORITY_RANK = {
    JobPriority.HIGH.value: 0,
    JobPriority.NORMAL.value: 1,
    JobPriority.LOW.value: 2,
}


@dataclass(frozen=True)
class BoardCard:
    """One job as shown on the board or in a technician's queue."""

    job_id: UUID
    job_number: int
    title: str
    state: JobState
    priority: JobPriority
    customer_name: str
    vehicle_description: str
    assigned_tech_id: UUID | None
    assigned_tech_name: str | None
    state_entered_at: datetime
    seconds_in_state: int


@dataclass(frozen=True)
class BoardColumn:
    state: JobState
    label: str
    cards: tuple[BoardCard, ...]


@dataclass(frozen=True)
class TechQueue:
    do_now: tuple[BoardCard, ...]
    blocked: tuple[BoardCard, ...]


@dataclass(frozen=True)
class JobDetail:
    job: JobRecord
    customer_name: str
    customer_phone: str | None
    customer_email: str | None
    vehicle_description: str
    assigned_tech_name: str | None
    history: tuple[JobEventRecord, ...]
    items: tuple[LineItemRecord, ...]
    media: tuple[MediaRecord, ...]
    approval: ApprovalRequestRecord | None
    allowed_targets: tuple[JobState, ...]

    @property
    def proposed_total(self) -> int:
        return items_total(self.items, LineItemStatus.PROPOSED)

    @property
    def approved_total(self) -> int:
        return items_total(self.items, LineItemStatus.APPROVED)


class JobSelector(BaseSelector):
    """Read models for the shop floor."""

    def __init__(self, session: Session):
        super().__init__(session)

    def _cards(self, shop_id: UUID, now: datetime, *conditions) -> list[BoardCard]:
        entered = (
            select(
                JobEvent.job_id.label("job_id"),
                func.max(JobEvent.created_at).label("entered_at"),
            )
            .where(JobEvent.type == JobEventType.STATE_CHANGE.value)
            .group_by(JobEvent.job_id)
            .subquery()
        )
        rows = self.session.execute(
            select(Job, entered.c.entered_at)
            .join(entered, entered.c.job_id == Job.id)
            .where(Job.shop_id == shop_id, *conditions)
            .options(
                selectinload(Job.customer),
                selectinload(Job.vehicle),
            )
        ).all()

        tech_ids = {job.assigned_tech_id for job, _ in rows if job.assigned_tech_id}
        tech_names = self._user_names(tech_ids)

        cards = []
        for job, entered_at in rows:
            # SQLite returns aggregates over timestamps without tzinfo.
            entered_at = _as_aware(entered_at)
            cards.append(
                BoardCard(
                    job_id=job.id,
                    job_number=job.job_number,
                    title=job.title,
                    state=JobState(job.state),
                    priority=JobPriority(job.priority),
                    customer_name=job.customer.name,
                    vehicle_description=job.vehicle.describe(),
                    assigned_tech_id=job.assigned_tech_id,
                    assigned_tech_name=tech_names.get(job.assigned_tech_id),
                    state_entered_at=entered_at,
                    seconds_in_state=max(0, int((now - entered_at).total_seconds())),
                )
            )
        cards.sort(key=lambda c: (_PRIORITY_RANK[c.priority.value], c.state_entered_at, c.job_number))
        return cards

    def _user_names(self, user_ids: set[UUID]) -> dict[UUID, str]:
        if not user_ids:
            return {}
        rows = self.session.execute(
            select(User.id, User.name).where(User.id.in_(user_ids))
        ).all()
        return {uid: name for uid, name in rows}

    def board(self, principal: Principal, now: datetime) -> tuple[BoardColumn, ...]:
        """Open jobs of the principal's shop, one column per open state."""
        cards = self._cards(
            principal.shop_id, now, Job.state != JobState.CLOSED.value,
        )
        return tuple(
            BoardColumn(
                state=state,
                label=STATE_LABELS[state],
                cards=tuple(c for c in cards if c.state is state),
            )
            for state in BOARD_STATES
        )

    def tech_queue(self, principal: Principal, now: datetime) -> TechQueue:
        """Jobs assigned to the principal: ready to work on vs. blocked."""
        cards = self._cards(
            principal.shop_id, now, Job.assigned_tech_id == principal.id,
        )
        return TechQueue(
            do_now=tuple(c for c in cards if c.state in TECH_DO_NOW_STATES),
            blocked=tuple(c for c in cards if c.state in TECH_BLOCKED_STATES),
        )

    def history(self, job_id: UUID) -> list[JobEventRecord]:
        """A job's events in canonical order."""
        events = self.session.scalars(
            select(JobEvent)
            .where(JobEvent.job_id == job_id)
            .order_by(JobEvent.created_at, JobEvent.seq)
        )
        return [e.to_dto() for e in events]

    def job_detail(self, principal: Principal, job_id: UUID) -> JobDetail:
        job = self.session.execute(
            select(Job)
            .where(Job.id == job_id, Job.shop_id == principal.shop_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if job is None:
            raise JobNotFoundError(str(job_id))

        items = self.session.scalars(
            select(LineItem)
            .where(LineItem.job_id == job.id)
            .order_by(LineItem.sort_order)
            .execution_options(populate_existing=True)
        )
        media = self.session.scalars(
            select(InspectionMedia)
            .where(InspectionMedia.job_id == job.id)
            .order_by(InspectionMedia.created_at, InspectionMedia.id)
        )
        approval = self.session.execute(
            select(ApprovalRequestModel)
            .where(ApprovalRequestModel.job_id == job.id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        vehicle = self.session.get(Vehicle, job.vehicle_id)
        tech_name = None
        if job.assigned_tech_id is not None:
            tech_name = self._user_names({job.assigned_tech_id}).get(job.assigned_tech_id)

        return JobDetail(
            job=job.to_dto(),
            customer_name=vehicle.customer.name,
            customer_phone=vehicle.customer.phone,
            customer_email=vehicle.customer.email,
            vehicle_description=vehicle.describe(),
            assigned_tech_name=tech_name,
            history=tuple(self.history(job.id)),
            items=tuple(i.to_dto() for i in items),
            media=tuple(m.to_dto() for m in media),
            approval=approval.to_dto() if approval else None,
            allowed_targets=allowed_targets(JobState(job.state)),
        )


def _as_aware(value: datetime | str) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
