"""
Module: repair_kernel.models.media
Responsibility: ORM persistence for inspection photos and videos attached
    to a job (URLs only; the media itself lives elsewhere).
Architecture position: Kernel > Models.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from repair_kernel.db.base import Base, UUIDString
from repair_kernel.db.types import LongText, ShortCode

if TYPE_CHECKING:
    from repair_kernel.domain.dtos import MediaRecord


class InspectionMedia(Base):
    __tablename__ = "inspection_media"

    __table_args__ = (
        CheckConstraint(
            "type IN ('PHOTO', 'VIDEO')",
            name="ck_inspection_media_valid_type",
        ),
        Index("ix_inspection_media_job", "job_id", "created_at"),
    )

    job_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("jobs.id"), nullable=False,
    )
    type: Mapped[ShortCode] = mapped_column(nullable=False)
    url: Mapped[LongText] = mapped_column(nullable=False)
    caption: Mapped[LongText | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<InspectionMedia {self.type} {self.url}>"

    def to_dto(self) -> MediaRecord:
        from repair_kernel.domain.dtos import MediaRecord, MediaType

        return MediaRecord(
            id=self.id,
            job_id=self.job_id,
            type=MediaType(self.type),
            url=self.url,
            caption=self.caption,
            created_at=self.created_at,
        )
