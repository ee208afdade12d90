"""
EventLogService -- append-only job history.

Responsibility:
    Appends ``JobEvent`` rows in the same unit as the change they document.
    Each event gets the next per-job sequence number from ``jobs.event_seq``.

Architecture position:
    Kernel > Services -- flush-only.  Called by JobLifecycleService and
    ApprovalService; never commits.

Invariants enforced:
    - Append-only: this service only inserts.  ``db.immutability`` rejects
      updates and deletes.
    - Per-job sequence: ``UPDATE jobs SET event_seq = event_seq + 1 ...
      RETURNING event_seq`` is atomic and takes the job row lock, so
      concurrent writers on one job get distinct, increasing ``seq`` values
      and (created_at, seq) is a total order.
    - Payload shape: the payload is encoded through ``domain.events`` and
      must be the dataclass registered for the event type.

Failure modes:
    - EventPayloadError on a payload/type mismatch.
    - JobNotFoundError if the job row disappeared (cannot happen through the
      services; jobs are never deleted).
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import update

from repair_kernel.domain.dtos import JobEventRecord
from repair_kernel.domain.events import EventPayload, JobEventType, encode_payload
from repair_kernel.exceptions import JobNotFoundError
from repair_kernel.logging_config import get_logger
from repair_kernel.models.job import Job
from repair_kernel.models.job_event import JobEvent
from repair_kernel.services.base import BaseService

logger = get_logger("services.event_log")


class EventLogService(BaseService):
    """
    Contract:
        ``append`` inserts exactly one event and flushes.  The caller's
        transaction decides whether it becomes visible.
    """

    def next_sequence(self, job_id: UUID) -> int:
        """Advance and return the job's event counter (locks the job row)."""
        seq = self.session.execute(
            update(Job)
            .where(Job.id == job_id)
            .values(event_seq=Job.event_seq + 1)
            .returning(Job.event_seq)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()
        if seq is None:
            raise JobNotFoundError(str(job_id))
        return seq

    def append(
        self,
        job_id: UUID,
        event_type: JobEventType,
        payload: EventPayload,
        actor_id: UUID | None = None,
    ) -> JobEventRecord:
        """
        Append one event to a job's history.

        Args:
            job_id: The job the event belongs to.
            event_type: Discriminator of the payload union.
            payload: Frozen payload dataclass for ``event_type``.
            actor_id: The user responsible; None for customer and system
                originated events.

        Returns:
            The stored event as a frozen record.
        """
        data = encode_payload(event_type, payload)
        seq = self.next_sequence(job_id)
        event = JobEvent(
            job_id=job_id,
            seq=seq,
            type=event_type.value,
            payload=data,
            actor_id=actor_id,
            created_at=self.clock.now(),
        )
        self.session.add(event)
        self.session.flush()
        logger.debug(
            "job_event_appended",
            extra={
                "event_type": event_type.value,
                "seq": seq,
                "has_actor": actor_id is not None,
            },
        )
        return event.to_dto()
