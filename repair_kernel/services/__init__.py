"""Services for the repair kernel (write side)."""

from repair_kernel.services.approval_service import ApprovalService
from repair_kernel.services.event_log import EventLogService
from repair_kernel.services.job_lifecycle_service import JobLifecycleService
from repair_kernel.services.job_number_service import JobNumberService
from repair_kernel.services.line_item_service import LineItemService, proposed_total
from repair_kernel.services.media_service import MediaService
from repair_kernel.services.shop_directory_service import ShopDirectoryService

__all__ = [
    "ApprovalService",
    "EventLogService",
    "JobLifecycleService",
    "JobNumberService",
    "LineItemService",
    "MediaService",
    "ShopDirectoryService",
    "proposed_total",
]
