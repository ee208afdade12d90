"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from repair_kernel.domain.access import (
    authorize_transition,
    can_manage_jobs,
    require_job_access,
    require_management,
)
from repair_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalIssue,
    ApprovalRequestRecord,
    ApprovalStatus,
    CustomerApprovalView,
    DecisionOutcome,
)
from repair_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from repair_kernel.domain.dtos import (
    JobEventRecord,
    JobPriority,
    JobRecord,
    LineItemRecord,
    LineItemStatus,
    LineItemType,
    MediaRecord,
    MediaType,
    NewJobFields,
    NewLineItem,
    ShopRecord,
    UserRecord,
)
from repair_kernel.domain.events import (
    ApprovalDecidedPayload,
    ApprovalSentPayload,
    EventPayload,
    JobEventType,
    NotePayload,
    StateChangePayload,
)
from repair_kernel.domain.principal import Principal, Role
from repair_kernel.domain.transitions import (
    JobState,
    allowed_targets,
    can_transition,
    check_transition,
    requires_reason,
)

__all__ = [
    # Access
    "authorize_transition",
    "can_manage_jobs",
    "require_job_access",
    "require_management",
    # Approval
    "ApprovalDecision",
    "ApprovalIssue",
    "ApprovalRequestRecord",
    "ApprovalStatus",
    "CustomerApprovalView",
    "DecisionOutcome",
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # DTOs
    "JobEventRecord",
    "JobPriority",
    "JobRecord",
    "LineItemRecord",
    "LineItemStatus",
    "LineItemType",
    "MediaRecord",
    "MediaType",
    "NewJobFields",
    "NewLineItem",
    "ShopRecord",
    "UserRecord",
    # Events
    "ApprovalDecidedPayload",
    "ApprovalSentPayload",
    "EventPayload",
    "JobEventType",
    "NotePayload",
    "StateChangePayload",
    # Principal
    "Principal",
    "Role",
    # Transitions
    "JobState",
    "allowed_targets",
    "can_transition",
    "check_transition",
    "requires_reason",
]
