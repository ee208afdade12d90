"""
Module: repair_kernel.models.line_item
Responsibility: ORM persistence for the per-job list of billable items.
Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py only.

Invariants enforced:
    - UNIQUE(job_id, sort_order): creation order, 1-based, per job.
    - ``qty >= 1`` and ``unit_price >= 0`` (integer cents) by check
      constraint.
    - Status only moves PROPOSED -> APPROVED/DECLINED (``db.immutability``
      plus ``WHERE status = 'PROPOSED'`` on the bulk cascade).

Failure modes:
    - IntegrityError on duplicate sort order or constraint violation.
    - ImmutabilityViolationError on status reversal or DELETE.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from repair_kernel.db.base import Base, UUIDString
from repair_kernel.db.types import Cents, Name, ShortCode

if TYPE_CHECKING:
    from repair_kernel.domain.dtos import LineItemRecord


class LineItem(Base):
    __tablename__ = "line_items"

    __table_args__ = (
        UniqueConstraint("job_id", "sort_order", name="uq_line_items_job_sort"),
        CheckConstraint("qty >= 1", name="ck_line_items_qty_positive"),
        CheckConstraint("unit_price >= 0", name="ck_line_items_price_non_negative"),
        CheckConstraint(
            "type IN ('LABOR', 'PART', 'FEE')",
            name="ck_line_items_valid_type",
        ),
        CheckConstraint(
            "status IN ('PROPOSED', 'APPROVED', 'DECLINED')",
            name="ck_line_items_valid_status",
        ),
    )

    job_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("jobs.id"), nullable=False,
    )
    type: Mapped[ShortCode] = mapped_column(nullable=False)
    name: Mapped[Name] = mapped_column(nullable=False)
    qty: Mapped[int] = mapped_column(nullable=False, default=1)
    unit_price: Mapped[Cents] = mapped_column(nullable=False, default=0)
    labor_hours: Mapped[Decimal | None] = mapped_column(nullable=True)
    taxable: Mapped[bool] = mapped_column(nullable=False, default=True)
    status: Mapped[ShortCode] = mapped_column(nullable=False, default="PROPOSED")
    sort_order: Mapped[int] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<LineItem {self.sort_order}. {self.name} {self.status}>"

    @property
    def line_total(self) -> int:
        return self.qty * self.unit_price

    def to_dto(self) -> LineItemRecord:
        from repair_kernel.domain.dtos import (
            LineItemRecord,
            LineItemStatus,
            LineItemType,
        )

        return LineItemRecord(
            id=self.id,
            job_id=self.job_id,
            type=LineItemType(self.type),
            name=self.name,
            qty=self.qty,
            unit_price=self.unit_price,
            labor_hours=self.labor_hours,
            taxable=self.taxable,
            status=LineItemStatus(self.status),
            sort_order=self.sort_order,
            created_at=self.created_at,
        )
