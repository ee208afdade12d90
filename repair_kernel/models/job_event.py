"""
Module: repair_kernel.models.job_event
Responsibility: ORM persistence for the append-only job history.
Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py only.

Invariants enforced:
    - Append-only: ``db.immutability`` rejects any UPDATE or DELETE.
    - UNIQUE(job_id, seq): ``seq`` is handed out from ``jobs.event_seq``
      under the job row lock, so it is the insertion order of the job's
      events.
    - Canonical history order is (created_at, seq).

Failure modes:
    - ImmutabilityViolationError on UPDATE or DELETE of an event.
    - EventPayloadError when ``to_dto`` meets a payload of the wrong shape.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from repair_kernel.db.base import Base, UUIDString
from repair_kernel.db.types import Sequence, ShortCode

if TYPE_CHECKING:
    from repair_kernel.domain.dtos import JobEventRecord


class JobEvent(Base):
    """An immutable fact in a job's history.

    ``actor_id`` is None for customer and system originated events.
    """

    __tablename__ = "job_events"

    __table_args__ = (
        UniqueConstraint("job_id", "seq", name="uq_job_events_job_seq"),
        CheckConstraint(
            "type IN ('STATE_CHANGE', 'NOTE', 'APPROVAL_SENT', 'APPROVAL_DECIDED')",
            name="ck_job_events_valid_type",
        ),
        Index("ix_job_events_history", "job_id", "created_at", "seq"),
    )

    job_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("jobs.id"), nullable=False,
    )
    seq: Mapped[Sequence] = mapped_column(nullable=False)
    type: Mapped[ShortCode] = mapped_column(nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    actor_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("users.id"), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<JobEvent {self.job_id}#{self.seq} {self.type}>"

    def to_dto(self) -> JobEventRecord:
        """Convert ORM model to frozen domain DTO, decoding the payload."""
        from repair_kernel.domain.dtos import JobEventRecord
        from repair_kernel.domain.events import JobEventType, decode_payload

        event_type = JobEventType(self.type)
        return JobEventRecord(
            id=self.id,
            job_id=self.job_id,
            seq=self.seq,
            type=event_type,
            payload=decode_payload(event_type, self.payload),
            actor_id=self.actor_id,
            created_at=self.created_at,
        )
