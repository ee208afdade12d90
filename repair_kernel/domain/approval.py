"""
Approval domain types (``repair_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for the customer approval cycle: request status and
its lifecycle table, the customer's decision, the outcome reported back
to the capability URL, and the read model the customer sees.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* ``APPROVAL_TRANSITIONS`` defines the only status moves a decision can
  make.  Re-issuing is not a status move: it replaces the request wholesale.
* ``ApprovalRequestRecord`` is frozen; once ``decided_at`` is set the record
  a caller holds can never show a different decision.
* ``DecisionOutcome`` has no member that distinguishes a wrong token from a
  consumed one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from repair_kernel.domain.dtos import LineItemRecord, LineItemStatus, MediaRecord
from repair_kernel.exceptions import ValidationError


class ApprovalStatus(str, Enum):
    """Approval request lifecycle states."""

    SENT = "SENT"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"


APPROVAL_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.SENT: frozenset({
        ApprovalStatus.APPROVED,
        ApprovalStatus.DECLINED,
    }),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.DECLINED: frozenset(),
}


def can_decide(current: ApprovalStatus | str, target: ApprovalStatus) -> bool:
    """True if a request in ``current`` may be moved to ``target``."""
    try:
        current = ApprovalStatus(current)
    except ValueError:
        return False
    return target in APPROVAL_TRANSITIONS[current]


class ApprovalDecision(str, Enum):
    """What the customer chose on the approval page."""

    APPROVE = "approve"
    DECLINE = "decline"

    @classmethod
    def parse(cls, value: "ApprovalDecision | str") -> "ApprovalDecision":
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                "decision", f"must be 'approve' or 'decline', got {value!r}"
            ) from None

    @property
    def request_status(self) -> ApprovalStatus:
        if self is ApprovalDecision.APPROVE:
            return ApprovalStatus.APPROVED
        return ApprovalStatus.DECLINED

    @property
    def item_status(self) -> LineItemStatus:
        if self is ApprovalDecision.APPROVE:
            return LineItemStatus.APPROVED
        return LineItemStatus.DECLINED


class DecisionOutcome(str, Enum):
    """Result of a decision attempt as reported to the customer."""

    RECORDED = "RECORDED"
    NOT_AVAILABLE = "NOT_AVAILABLE"


@dataclass(frozen=True)
class ApprovalRequestRecord:
    """Snapshot of a job's approval request.  Never carries the token hash."""

    id: UUID
    job_id: UUID
    status: ApprovalStatus
    sent_at: datetime
    decided_at: datetime | None = None

    @property
    def is_live(self) -> bool:
        return self.status is ApprovalStatus.SENT and self.decided_at is None


@dataclass(frozen=True)
class ApprovalIssue:
    """Returned once by ``request_approval``.

    ``token`` is the raw credential; it is stored nowhere and must be
    handed to the notification channel by the caller.
    """

    job_id: UUID
    token: str
    url: str
    sent_at: datetime

    def __repr__(self) -> str:
        return (
            f"ApprovalIssue(job_id={self.job_id!r}, token='***', "
            f"sent_at={self.sent_at!r})"
        )


@dataclass(frozen=True)
class CustomerApprovalView:
    """What the holder of a valid approval link is shown."""

    job_id: UUID
    shop_name: str
    job_number: int
    title: str
    vehicle_description: str
    items: tuple[LineItemRecord, ...]
    media: tuple[MediaRecord, ...]
    sent_at: datetime

    @property
    def total_cents(self) -> int:
        return sum(item.line_total for item in self.items)
