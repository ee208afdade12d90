"""
LineItemService -- the per-job ledger of billable items.

Responsibility:
    Adds PROPOSED items in creation order and applies the customer's
    decision to all PROPOSED items of a job in one bulk statement.

Architecture position:
    Kernel > Services.  ``add_line_item`` owns its unit (auto_commit);
    ``cascade_decision`` is flush-only and runs inside ApprovalService's
    decision unit.

Invariants enforced:
    - ``sort_order = count(existing items) + 1``, computed while holding the
      job row lock; UNIQUE(job_id, sort_order) backs it.
    - Status moves only PROPOSED -> APPROVED/DECLINED: the cascade's WHERE
      clause matches PROPOSED rows only, so a decided item is never touched.
    - Money is integer cents; ``line_total = qty * unit_price``.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select, update

from repair_kernel.domain.access import require_management
from repair_kernel.domain.approval import ApprovalDecision
from repair_kernel.domain.dtos import (
    LineItemRecord,
    LineItemStatus,
    NewLineItem,
    items_total,
)
from repair_kernel.domain.principal import Principal
from repair_kernel.domain.transitions import JobState
from repair_kernel.domain.validation import validate_new_line_item
from repair_kernel.exceptions import ValidationError
from repair_kernel.logging_config import get_logger
from repair_kernel.models.line_item import LineItem
from repair_kernel.services.base import WorkflowService, load_tenant_job

logger = get_logger("services.line_items")


def proposed_total(items: Iterable[LineItemRecord]) -> int:
    """Sum of ``line_total`` over the PROPOSED items, in cents."""
    return items_total(items, LineItemStatus.PROPOSED)


class LineItemService(WorkflowService):

    def add_line_item(
        self,
        principal: Principal,
        job_id: UUID | str,
        fields: NewLineItem,
    ) -> LineItemRecord:
        """
        Append a PROPOSED item to a job.

        Raises:
            JobNotFoundError: Unknown job or another shop's job.
            ForbiddenError: Principal is not management.
            ValidationError: Bad fields, or the job is CLOSED.
        """

        def work() -> LineItemRecord:
            job = load_tenant_job(self.session, principal.shop_id, job_id, for_update=True)
            require_management(principal, "add_line_item")
            if job.state == JobState.CLOSED.value:
                raise ValidationError("job_id", "line items cannot be added to a closed job")
            item_fields = validate_new_line_item(fields)

            existing = self.session.execute(
                select(func.count()).select_from(LineItem).where(LineItem.job_id == job.id)
            ).scalar_one()
            item = LineItem(
                job_id=job.id,
                type=item_fields.type.value,
                name=item_fields.name,
                qty=item_fields.qty,
                unit_price=item_fields.unit_price,
                labor_hours=item_fields.labor_hours,
                taxable=item_fields.taxable,
                status=LineItemStatus.PROPOSED.value,
                sort_order=existing + 1,
                created_at=self.clock.now(),
            )
            self.session.add(item)
            self.session.flush()
            logger.info(
                "line_item_added",
                extra={
                    "job_id": str(job.id),
                    "item_type": item.type,
                    "sort_order": item.sort_order,
                    "line_total_cents": item.line_total,
                },
            )
            return item.to_dto()

        return self._run_unit("add_line_item", principal, work, job_id=job_id)

    def cascade_decision(self, job_id: UUID, decision: ApprovalDecision) -> int:
        """
        Apply a decision to every PROPOSED item of a job.

        Returns:
            Number of items moved.
        """
        result = self.session.execute(
            update(LineItem)
            .where(
                LineItem.job_id == job_id,
                LineItem.status == LineItemStatus.PROPOSED.value,
            )
            .values(status=decision.item_status.value)
            .execution_options(synchronize_session=False)
        )
        # Loaded items must not keep showing PROPOSED.
        for obj in list(self.session.identity_map.values()):
            if isinstance(obj, LineItem) and obj.job_id == job_id:
                self.session.expire(obj)
        logger.info(
            "line_items_cascaded",
            extra={
                "job_id": str(job_id),
                "decision": decision.value,
                "item_count": result.rowcount,
            },
        )
        return result.rowcount

    def list_items(self, job_id: UUID) -> list[LineItemRecord]:
        """Items of a job in ``sort_order``."""
        items = self.session.scalars(
            select(LineItem)
            .where(LineItem.job_id == job_id)
            .order_by(LineItem.sort_order)
            .execution_options(populate_existing=True)
        )
        return [item.to_dto() for item in items]
