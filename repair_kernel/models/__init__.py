"""ORM models for the repair kernel."""

from repair_kernel.models.approval import ApprovalRequestModel
from repair_kernel.models.job import Job, JobNumberCounter
from repair_kernel.models.job_event import JobEvent
from repair_kernel.models.line_item import LineItem
from repair_kernel.models.media import InspectionMedia
from repair_kernel.models.shop import Customer, Shop, User, Vehicle

__all__ = [
    "ApprovalRequestModel",
    "Customer",
    "InspectionMedia",
    "Job",
    "JobEvent",
    "JobNumberCounter",
    "LineItem",
    "Shop",
    "User",
    "Vehicle",
]
