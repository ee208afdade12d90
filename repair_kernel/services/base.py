"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer.  Kernel services receive a
    SQLAlchemy ``Session`` that they use via ``session.flush()`` -- never
    ``session.commit()``.

    ``WorkflowService`` is the one exception: the top-level workflow
    services (job lifecycle, approval, line items, media) own the atomic
    unit when constructed with ``auto_commit=True`` -- commit on success,
    rollback on any exception.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: flush-only services never commit or roll
      back.  A workflow service commits or rolls back exactly once per
      public call, so no partial unit is ever visible.
    - Tenant scoping: ``load_tenant_job`` answers a job of another shop
      exactly like a missing job.

Failure modes:
    - If a subclass violates the flush-only contract by calling
      ``session.commit()``, the atomicity of multi-step units (create job,
      issue approval, record decision) is broken.
"""

from __future__ import annotations

import time
from abc import ABC
from typing import Callable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from repair_kernel.domain.clock import Clock, SystemClock
from repair_kernel.domain.principal import Principal
from repair_kernel.exceptions import JobNotFoundError, RepairKernelError
from repair_kernel.logging_config import LogContext, get_logger
from repair_kernel.models.job import Job

T = TypeVar("T")

logger = get_logger("services.base")


def coerce_uuid(value: UUID | str | None) -> UUID | None:
    """UUID from a UUID or its string form; None for anything unparseable."""
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def load_tenant_job(
    session: Session,
    shop_id: UUID,
    job_id: UUID | str,
    for_update: bool = False,
) -> Job:
    """
    Load a job belonging to ``shop_id``.

    Raises:
        JobNotFoundError: No such job, or it belongs to another shop.
    """
    parsed = coerce_uuid(job_id)
    if parsed is None:
        raise JobNotFoundError(str(job_id))
    stmt = select(Job).where(Job.id == parsed, Job.shop_id == shop_id)
    if for_update:
        stmt = stmt.with_for_update()
    job = session.execute(
        stmt.execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if job is None:
        raise JobNotFoundError(str(job_id))
    return job


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only (read) methods -- those belong
          in ``repair_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()


class WorkflowService(BaseService):
    """
    Base for services that own an atomic unit per public call.

    Contract:
        ``auto_commit=True``: every public call is one transaction --
        committed on success, rolled back on any exception.
        ``auto_commit=False``: the caller owns the unit (see
        ``db.engine.session_scope``); the service only flushes.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, clock)
        self.auto_commit = auto_commit

    def _run_unit(
        self,
        operation: str,
        principal: Principal | None,
        work: Callable[[], T],
        job_id: UUID | str | None = None,
        retryable: tuple[type[Exception], ...] = (),
    ) -> T:
        """Run ``work`` as one atomic unit with request-scoped log context.

        Exceptions in ``retryable`` are rolled back and re-raised without an
        error record; the caller decides whether to run the unit again.
        """
        with LogContext.bind(
            correlation_id=str(uuid4()),
            shop_id=str(principal.shop_id) if principal else None,
            actor_id=str(principal.id) if principal else None,
            job_id=str(job_id) if job_id is not None else None,
        ):
            t0 = time.monotonic()
            try:
                result = work()
                if self.auto_commit:
                    self.session.commit()
                return result
            except retryable:
                if self.auto_commit:
                    self.session.rollback()
                raise
            except RepairKernelError as exc:
                if self.auto_commit:
                    self.session.rollback()
                logger.warning(
                    "workflow_unit_rejected",
                    extra={
                        "operation": operation,
                        "error_code": exc.code,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                raise
            except Exception:
                if self.auto_commit:
                    self.session.rollback()
                logger.error(
                    "workflow_unit_failed",
                    extra={
                        "operation": operation,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                    exc_info=True,
                )
                raise
