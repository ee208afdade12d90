"""
Role and assignment gates (``repair_kernel.domain.access``).

Pure checks over a ``Principal`` and the few job attributes that decide
access.  Tenant scoping is NOT decided here: services compare
``job.shop_id`` with ``principal.shop_id`` first and answer a mismatch
with ``JobNotFoundError``, so a foreign job is indistinguishable from a
missing one.
"""

from __future__ import annotations

from uuid import UUID

from repair_kernel.domain.principal import MANAGEMENT_ROLES, Principal, Role
from repair_kernel.domain.transitions import CUSTOMER_DECISION_EDGE, JobState
from repair_kernel.exceptions import ForbiddenError


def can_manage_jobs(role: Role) -> bool:
    """OWNER and ADVISOR manage jobs; TECH does not."""
    return role in MANAGEMENT_ROLES


def require_management(principal: Principal, action: str) -> None:
    if not can_manage_jobs(principal.role):
        raise ForbiddenError(
            str(principal.id), action, f"role {principal.role.value} cannot manage jobs",
        )


def require_job_access(
    principal: Principal,
    assigned_tech_id: UUID | None,
    action: str,
) -> None:
    """Management, or the technician the job is assigned to."""
    if can_manage_jobs(principal.role):
        return
    if principal.role is Role.TECH and assigned_tech_id == principal.id:
        return
    raise ForbiddenError(str(principal.id), action, "job is not assigned to this technician")


def authorize_transition(
    principal: Principal,
    assigned_tech_id: UUID | None,
    from_state: JobState,
    to_state: JobState,
) -> None:
    """Gate a user-initiated transition.

    Management may drive any edge.  A technician may drive edges only on
    jobs assigned to them, and never the customer-decision edge.

    Raises:
        ForbiddenError: The principal may not drive this edge.
    """
    if can_manage_jobs(principal.role):
        return
    require_job_access(principal, assigned_tech_id, "transition_job")
    if (from_state, to_state) == CUSTOMER_DECISION_EDGE:
        raise ForbiddenError(
            str(principal.id),
            "transition_job",
            "customer approval is recorded by management or the customer",
        )
