"""
Module: repair_kernel.models.approval
Responsibility: ORM persistence for a job's customer approval request.

Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py only.

Invariants enforced:
    - UNIQUE(job_id): at most one request per job; re-issuing overwrites it.
    - Only the keyed hash of the customer token is stored.
    - Once ``decided_at`` is set the decision is frozen: ``db.immutability``
      allows only a full re-issue (new hash, new sent_at, status SENT,
      decided_at cleared).
    - Status values limited by check constraint; ``decided_at`` is set iff
      the status is terminal.

Failure modes:
    - IntegrityError on a second request row for the same job.
    - ImmutabilityViolationError on a partial change to a decided request,
      and on any DELETE.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from repair_kernel.db.base import Base, UUIDString
from repair_kernel.db.types import ShortCode, TokenHash

if TYPE_CHECKING:
    from repair_kernel.domain.approval import ApprovalRequestRecord


class ApprovalRequestModel(Base):
    """Persistent approval request.

    Contract:
        Decided through one compare-and-set UPDATE in ``ApprovalService``.
        Never deleted.
    """

    __tablename__ = "approval_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('SENT', 'APPROVED', 'DECLINED')",
            name="ck_approval_requests_valid_status",
        ),
        CheckConstraint(
            "(status = 'SENT') = (decided_at IS NULL)",
            name="ck_approval_requests_decided_iff_terminal",
        ),
    )

    job_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("jobs.id"), nullable=False, unique=True,
    )
    status: Mapped[ShortCode] = mapped_column(nullable=False, default="SENT")
    customer_token_hash: Mapped[TokenHash] = mapped_column(nullable=False)
    sent_at: Mapped[datetime] = mapped_column(nullable=False)
    decided_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<ApprovalRequest job={self.job_id} status={self.status}>"

    def to_dto(self) -> ApprovalRequestRecord:
        """Convert ORM model to frozen domain DTO (without the token hash)."""
        from repair_kernel.domain.approval import (
            ApprovalRequestRecord,
            ApprovalStatus,
        )

        return ApprovalRequestRecord(
            id=self.id,
            job_id=self.job_id,
            status=ApprovalStatus(self.status),
            sent_at=self.sent_at,
            decided_at=self.decided_at,
        )
