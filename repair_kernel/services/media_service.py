"""
MediaService -- inspection photos and videos attached to a job.

Only URLs are stored.  Media shows on the job detail and on the customer
approval page.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from repair_kernel.domain.access import require_management
from repair_kernel.domain.dtos import MediaRecord, MediaType
from repair_kernel.domain.principal import Principal
from repair_kernel.domain.validation import validate_media
from repair_kernel.logging_config import get_logger
from repair_kernel.models.media import InspectionMedia
from repair_kernel.services.base import WorkflowService, load_tenant_job

logger = get_logger("services.media")


class MediaService(WorkflowService):

    def add_media(
        self,
        principal: Principal,
        job_id: UUID | str,
        media_type: MediaType | str,
        url: str,
        caption: str | None = None,
    ) -> MediaRecord:
        """
        Attach a photo or video URL to a job.

        Raises:
            JobNotFoundError, ForbiddenError, ValidationError (URL not
            absolute http(s), unknown type).
        """

        def work() -> MediaRecord:
            job = load_tenant_job(self.session, principal.shop_id, job_id)
            require_management(principal, "add_media")
            kind, clean_url = validate_media(media_type, url)
            media = InspectionMedia(
                job_id=job.id,
                type=kind.value,
                url=clean_url,
                caption=(caption or "").strip() or None,
                created_at=self.clock.now(),
            )
            self.session.add(media)
            self.session.flush()
            logger.info(
                "media_added",
                extra={"job_id": str(job.id), "media_type": kind.value},
            )
            return media.to_dto()

        return self._run_unit("add_media", principal, work, job_id=job_id)

    def list_media(self, job_id: UUID) -> list[MediaRecord]:
        media = self.session.scalars(
            select(InspectionMedia)
            .where(InspectionMedia.job_id == job_id)
            .order_by(InspectionMedia.created_at, InspectionMedia.id)
        )
        return [m.to_dto() for m in media]
