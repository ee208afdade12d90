"""
JobNumberService -- per-shop job number allocation via locked counter rows.

Responsibility:
    Hands out the externally visible, strictly increasing ``job_number`` of
    a shop.  One ``job_number_counters`` row per shop holds the last number
    issued.

Architecture position:
    Kernel > Services -- flush-only.  Called by ShopDirectoryService (to
    create the counter with the shop) and JobLifecycleService (to number a
    new job).

Invariants enforced:
    - The aggregate-max-plus-one pattern is FORBIDDEN for allocation.  The
      counter is advanced with ``UPDATE ... SET current_value =
      current_value + 1 RETURNING current_value``, which is atomic and
      holds the row lock until the caller's transaction ends.
    - Allocation is transactional: a rolled back unit returns its number.
    - ``UNIQUE(shop_id, job_number)`` on jobs backs the counter.

Failure modes:
    - JobNumberTakenError when two units race to seed a missing counter
      row.  The caller (JobLifecycleService.create_job) rolls back the
      whole unit and retries; savepoints are not used.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from repair_kernel.exceptions import JobNumberTakenError
from repair_kernel.logging_config import get_logger
from repair_kernel.models.job import Job, JobNumberCounter
from repair_kernel.services.base import BaseService

logger = get_logger("services.job_number")

DEFAULT_FIRST_JOB_NUMBER = 1001


class JobNumberService(BaseService):
    """
    Contract:
        ``next_job_number(shop_id)`` returns a number strictly greater than
        any number previously committed for that shop.
    """

    def __init__(self, session, clock=None, first_job_number: int = DEFAULT_FIRST_JOB_NUMBER):
        super().__init__(session, clock)
        self.first_job_number = first_job_number

    def create_counter(self, shop_id: UUID) -> JobNumberCounter:
        """Create a shop's counter so its first job gets ``first_job_number``."""
        counter = JobNumberCounter(
            shop_id=shop_id,
            current_value=self.first_job_number - 1,
        )
        self.session.add(counter)
        self.session.flush()
        return counter

    def next_job_number(self, shop_id: UUID) -> int:
        """
        Allocate the next job number for a shop.

        Postconditions:
            - The counter row is locked until the transaction completes.

        Raises:
            JobNumberTakenError: Lost a race seeding a missing counter row.
        """
        value = self.session.execute(
            update(JobNumberCounter)
            .where(JobNumberCounter.shop_id == shop_id)
            .values(current_value=JobNumberCounter.current_value + 1)
            .returning(JobNumberCounter.current_value)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()

        if value is None:
            value = self._seed_counter(shop_id)

        logger.debug(
            "job_number_allocated",
            extra={"shop_id": str(shop_id), "job_number": value},
        )
        return value

    def _seed_counter(self, shop_id: UUID) -> int:
        # Shops created before counters existed: continue after their
        # highest number.  The counter's unique shop_id serializes this.
        highest = self.session.execute(
            select(func.max(Job.job_number)).where(Job.shop_id == shop_id)
        ).scalar()
        value = (highest + 1) if highest is not None else self.first_job_number
        self.session.add(JobNumberCounter(shop_id=shop_id, current_value=value))
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise JobNumberTakenError(str(shop_id), value) from exc
        logger.info(
            "job_number_counter_seeded",
            extra={"shop_id": str(shop_id), "job_number": value},
        )
        return value

    def current_value(self, shop_id: UUID) -> int | None:
        """Last number issued for a shop, or None if it has no counter."""
        return self.session.execute(
            select(JobNumberCounter.current_value)
            .where(JobNumberCounter.shop_id == shop_id)
        ).scalar_one_or_none()
