"""
JobLifecycleService -- job creation, transitions, assignment and notes.

Responsibility:
    The actor-gated entry point for everything staff do to a job.  Each
    public method is one atomic unit: the state change and the event that
    documents it commit together or not at all.

Architecture position:
    Kernel > Services -- imperative shell, owns transaction boundaries
    (``auto_commit=True``).  Delegates pure policy to ``domain.transitions``
    and ``domain.access``, numbering to JobNumberService, history to
    EventLogService, and intake records to ShopDirectoryService.

Flow (transition_job):
    1. Load the job in the principal's shop (else JobNotFoundError)
    2. Role/assignment gate (else ForbiddenError)
    3. Edge and reason check (InvalidTransitionError / ReasonRequiredError)
    4. Update state (and closed_at on CLOSED), append STATE_CHANGE
    5. Commit or rollback

Invariants enforced:
    - Job numbers come from the per-shop locked counter.  Losing a job
      number race (JobNumberTakenError) rolls back the whole creation unit
      and retries it, at most ``settings.job_number_max_retries`` times.
      Any other IntegrityError is not retried.
    - ``closed_at`` is set iff the job is CLOSED.
    - Every state change, including creation, has exactly one STATE_CHANGE
      event in the same unit.
    - Assignment changes append no event; they are recorded in the
      structured log as ``job_tech_assigned``.

Failure modes:
    - JobNotFoundError, ForbiddenError, InvalidTransitionError,
      ReasonRequiredError, ValidationError, InvalidTechnicianError.
    - JobNumberConflictError after the retry budget is spent.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from repair_kernel.domain.access import (
    authorize_transition,
    require_job_access,
    require_management,
)
from repair_kernel.domain.clock import Clock
from repair_kernel.domain.dtos import JobEventRecord, JobRecord, NewJobFields
from repair_kernel.domain.events import JobEventType, NotePayload, StateChangePayload
from repair_kernel.domain.principal import Principal
from repair_kernel.domain.settings import WorkflowSettings
from repair_kernel.domain.transitions import (
    JobState,
    check_transition,
    normalize_reason,
)
from repair_kernel.domain.validation import validate_new_job, validate_note
from repair_kernel.exceptions import (
    JobNumberConflictError,
    JobNumberTakenError,
    ValidationError,
)
from repair_kernel.logging_config import get_logger
from repair_kernel.models.job import Job
from repair_kernel.services.base import WorkflowService, load_tenant_job
from repair_kernel.services.event_log import EventLogService
from repair_kernel.services.job_number_service import JobNumberService
from repair_kernel.services.shop_directory_service import ShopDirectoryService

logger = get_logger("services.job_lifecycle")


def _parse_state(value: JobState | str) -> JobState:
    try:
        return JobState(value)
    except ValueError:
        raise ValidationError("to_state", f"unknown job state {value!r}") from None


class JobLifecycleService(WorkflowService):
    """
    Contract:
        Every public method takes the verified ``Principal`` explicitly and
        returns frozen records, never ORM entities.

    Usage:
        lifecycle = JobLifecycleService(session, settings)
        job = lifecycle.create_job(advisor, NewJobFields(
            title="Brake noise", customer_name="Dana Reyes",
        ))
        lifecycle.transition_job(advisor, job.id, JobState.DIAGNOSIS)
    """

    def __init__(
        self,
        session: Session,
        settings: WorkflowSettings,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, clock, auto_commit)
        self.settings = settings
        self._events = EventLogService(session, self.clock)
        self._job_numbers = JobNumberService(
            session, self.clock, settings.first_job_number,
        )
        self._directory = ShopDirectoryService(
            session, self.clock, settings.first_job_number,
        )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_job(self, principal: Principal, fields: NewJobFields) -> JobRecord:
        """
        Create a job in CHECKED_IN with its customer and vehicle.

        Preconditions:
            - ``principal`` is OWNER or ADVISOR.
            - ``fields.assigned_tech_id``, if set, is an active TECH of the
              principal's shop.

        Postconditions:
            - The job, customer, vehicle and creation STATE_CHANGE event
              are committed together (when auto_commit=True).

        Raises:
            ForbiddenError, ValidationError, InvalidTechnicianError,
            JobNumberConflictError.
        """
        # Without ownership of the unit there is nothing to retry.
        attempts = self.settings.job_number_max_retries if self.auto_commit else 1
        for attempt in range(1, attempts + 1):
            try:
                return self._run_unit(
                    "create_job",
                    principal,
                    lambda: self._create_job(principal, fields),
                    retryable=(JobNumberTakenError,),
                )
            except JobNumberTakenError as exc:
                if attempt >= attempts:
                    logger.error(
                        "job_number_conflict_exhausted",
                        extra={"shop_id": str(principal.shop_id), "attempts": attempt},
                    )
                    raise JobNumberConflictError(str(principal.shop_id), attempt) from exc
                logger.warning(
                    "job_number_conflict_retry",
                    extra={"shop_id": str(principal.shop_id), "attempt": attempt},
                )
        raise AssertionError("unreachable")

    def _create_job(self, principal: Principal, fields: NewJobFields) -> JobRecord:
        require_management(principal, "create_job")
        fields = validate_new_job(fields)

        tech_id = None
        if fields.assigned_tech_id is not None:
            tech_id = self._directory.get_active_tech(
                principal.shop_id, fields.assigned_tech_id,
            ).id

        job_number = self._job_numbers.next_job_number(principal.shop_id)
        customer, vehicle = self._directory.create_customer_and_vehicle(
            principal.shop_id, fields,
        )

        now = self.clock.now()
        job = Job(
            shop_id=principal.shop_id,
            job_number=job_number,
            customer_id=customer.id,
            vehicle_id=vehicle.id,
            title=fields.title,
            state=JobState.CHECKED_IN.value,
            priority=fields.priority.value,
            assigned_tech_id=tech_id,
            created_at=now,
            updated_at=now,
            event_seq=0,
        )
        self.session.add(job)
        try:
            self.session.flush()
        except IntegrityError as exc:
            # Only the job row is pending, so this is UNIQUE(shop_id, job_number).
            raise JobNumberTakenError(str(principal.shop_id), job_number) from exc

        self._events.append(
            job.id,
            JobEventType.STATE_CHANGE,
            StateChangePayload(to_state=JobState.CHECKED_IN),
            actor_id=principal.id,
        )
        logger.info(
            "job_created",
            extra={
                "job_id": str(job.id),
                "job_number": job_number,
                "priority": fields.priority.value,
                "assigned": tech_id is not None,
            },
        )
        return job.to_dto()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def transition_job(
        self,
        principal: Principal,
        job_id: UUID | str,
        to_state: JobState | str,
        reason: str | None = None,
    ) -> JobRecord:
        """
        Move a job along one edge of the workflow.

        Raises:
            JobNotFoundError: Unknown job or another shop's job.
            ForbiddenError: Role or assignment gate failed.
            InvalidTransitionError: Edge not in the workflow.
            ReasonRequiredError: Back edge without a non-blank reason.
        """

        def work() -> JobRecord:
            target = _parse_state(to_state)
            job = load_tenant_job(self.session, principal.shop_id, job_id, for_update=True)
            from_state = JobState(job.state)
            authorize_transition(principal, job.assigned_tech_id, from_state, target)
            return self.record_transition(job, target, principal.id, reason)

        return self._run_unit("transition_job", principal, work, job_id=job_id)

    def apply_system_transition(self, job: Job, to_state: JobState) -> JobRecord:
        """
        Transition triggered by the system rather than a user.

        Used by the approval workflow when the customer approves.  The edge
        is still checked against the workflow; the actor gate is skipped and
        the STATE_CHANGE event has no actor.  Flush-only: runs inside the
        caller's unit.
        """
        return self.record_transition(job, to_state)

    def record_transition(
        self,
        job: Job,
        to_state: JobState,
        actor_id: UUID | None = None,
        reason: str | None = None,
    ) -> JobRecord:
        """
        Check an edge, move the job and append its STATE_CHANGE event.

        Flush-only; the access gate is the caller's responsibility.
        """
        from_state = JobState(job.state)
        check_transition(from_state, to_state, reason)
        now = self.clock.now()
        job.state = to_state.value
        job.updated_at = now
        if to_state is JobState.CLOSED:
            job.closed_at = now
        self.session.flush()

        self._events.append(
            job.id,
            JobEventType.STATE_CHANGE,
            StateChangePayload(
                to_state=to_state,
                from_state=from_state,
                reason=reason if normalize_reason(reason) is not None else None,
            ),
            actor_id=actor_id,
        )
        logger.info(
            "job_transitioned",
            extra={
                "job_id": str(job.id),
                "from_state": from_state.value,
                "to_state": to_state.value,
                "system": actor_id is None,
            },
        )
        return job.to_dto()

    # ------------------------------------------------------------------
    # Assignment and notes
    # ------------------------------------------------------------------

    def assign_tech(
        self,
        principal: Principal,
        job_id: UUID | str,
        tech_id: UUID | str | None,
    ) -> JobRecord:
        """
        Assign (or with ``tech_id=None`` unassign) the job's technician.

        Raises:
            JobNotFoundError, ForbiddenError, InvalidTechnicianError.
        """

        def work() -> JobRecord:
            job = load_tenant_job(self.session, principal.shop_id, job_id, for_update=True)
            require_management(principal, "assign_tech")
            new_tech_id = None
            if tech_id is not None:
                new_tech_id = self._directory.get_active_tech(principal.shop_id, tech_id).id
            previous = job.assigned_tech_id
            job.assigned_tech_id = new_tech_id
            job.updated_at = self.clock.now()
            self.session.flush()
            logger.info(
                "job_tech_assigned",
                extra={
                    "job_id": str(job.id),
                    "previous_tech_id": str(previous) if previous else None,
                    "tech_id": str(new_tech_id) if new_tech_id else None,
                },
            )
            return job.to_dto()

        return self._run_unit("assign_tech", principal, work, job_id=job_id)

    def add_note(
        self,
        principal: Principal,
        job_id: UUID | str,
        text: str,
    ) -> JobEventRecord:
        """Append a NOTE event.  Management or the assigned technician."""

        def work() -> JobEventRecord:
            job = load_tenant_job(self.session, principal.shop_id, job_id)
            require_job_access(principal, job.assigned_tech_id, "add_note")
            note = validate_note(text)
            event = self._events.append(
                job.id,
                JobEventType.NOTE,
                NotePayload(note=note),
                actor_id=principal.id,
            )
            logger.info("job_note_added", extra={"job_id": str(job.id)})
            return event

        return self._run_unit("add_note", principal, work, job_id=job_id)
