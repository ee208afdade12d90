"""
Module: repair_kernel.models.job
Responsibility: ORM persistence for repair jobs and the per-shop job number
    counter.
Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py only.

Invariants enforced:
    - UNIQUE(shop_id, job_number): one number per job within a shop.
    - ``closed_at`` is set iff ``state = 'CLOSED'`` (check constraint).
    - ``event_seq`` is the last sequence number handed to a JobEvent of this
      job.  It is only ever advanced by an atomic ``UPDATE ... RETURNING``,
      which also serializes concurrent writers on the same job.
    - ``job_number_counters.shop_id`` is unique; ``current_value`` is the last
      number handed out, advanced only by an atomic ``UPDATE ... RETURNING``.

Failure modes:
    - IntegrityError on duplicate (shop_id, job_number) or duplicate counter.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repair_kernel.db.base import Base, UUIDString
from repair_kernel.db.types import Name, Sequence, ShortCode
from repair_kernel.models.shop import Customer, Vehicle

if TYPE_CHECKING:
    from repair_kernel.domain.dtos import JobRecord


class Job(Base):
    """One repair engagement for one vehicle within one shop.

    Contract:
        ``state`` changes only through ``JobLifecycleService``; jobs are never
        deleted.
    """

    __tablename__ = "jobs"

    __table_args__ = (
        UniqueConstraint("shop_id", "job_number", name="uq_jobs_shop_job_number"),
        CheckConstraint(
            "state IN ('CHECKED_IN', 'DIAGNOSIS', 'WAITING_APPROVAL', "
            "'APPROVED_READY', 'IN_REPAIR', 'WAITING_PARTS', 'QUALITY_CHECK', "
            "'READY_PICKUP', 'CLOSED')",
            name="ck_jobs_valid_state",
        ),
        CheckConstraint(
            "priority IN ('LOW', 'NORMAL', 'HIGH')",
            name="ck_jobs_valid_priority",
        ),
        CheckConstraint(
            "(state = 'CLOSED') = (closed_at IS NOT NULL)",
            name="ck_jobs_closed_at_iff_closed",
        ),
        Index("ix_jobs_shop_state", "shop_id", "state", "updated_at"),
        Index("ix_jobs_shop_tech", "shop_id", "assigned_tech_id"),
    )

    shop_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("shops.id"), nullable=False,
    )
    job_number: Mapped[Sequence] = mapped_column(nullable=False)
    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("customers.id"), nullable=False,
    )
    vehicle_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("vehicles.id"), nullable=False,
    )
    title: Mapped[Name] = mapped_column(nullable=False)
    state: Mapped[ShortCode] = mapped_column(nullable=False, default="CHECKED_IN")
    priority: Mapped[ShortCode] = mapped_column(nullable=False, default="NORMAL")
    assigned_tech_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("users.id"), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    event_seq: Mapped[Sequence] = mapped_column(nullable=False, default=0)

    customer: Mapped[Customer] = relationship(Customer, lazy="select")
    vehicle: Mapped[Vehicle] = relationship(Vehicle, lazy="select")

    def __repr__(self) -> str:
        return f"<Job #{self.job_number} {self.state}>"

    def to_dto(self) -> JobRecord:
        """Convert ORM model to frozen domain DTO."""
        from repair_kernel.domain.dtos import JobPriority, JobRecord
        from repair_kernel.domain.transitions import JobState

        return JobRecord(
            id=self.id,
            shop_id=self.shop_id,
            job_number=self.job_number,
            title=self.title,
            state=JobState(self.state),
            priority=JobPriority(self.priority),
            customer_id=self.customer_id,
            vehicle_id=self.vehicle_id,
            assigned_tech_id=self.assigned_tech_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
            closed_at=self.closed_at,
        )


class JobNumberCounter(Base):
    """Last job number handed out in a shop."""

    __tablename__ = "job_number_counters"

    shop_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("shops.id"), nullable=False, unique=True,
    )
    current_value: Mapped[Sequence] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<JobNumberCounter shop={self.shop_id} at {self.current_value}>"
