"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable inputs (``NewJobFields``, ``NewLineItem``) and the frozen
    records services return instead of ORM entities (``JobRecord``,
    ``JobEventRecord``, ``LineItemRecord``, ``MediaRecord``, ``UserRecord``,
    ``ShopRecord``).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    ``to_dto()`` methods on the models are the only converters into these
    types; domain logic never sees an ORM object.

Invariants enforced:
    - Money is integer cents; ``LineItemRecord.line_total`` is exact.
    - Records are frozen: a caller holding a record cannot alter history.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable
from uuid import UUID

from repair_kernel.domain.events import EventPayload, JobEventType
from repair_kernel.domain.principal import Role
from repair_kernel.domain.transitions import JobState


class JobPriority(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"


class LineItemType(str, Enum):
    LABOR = "LABOR"
    PART = "PART"
    FEE = "FEE"


class LineItemStatus(str, Enum):
    """PROPOSED until the customer decides; never reversed afterwards."""

    PROPOSED = "PROPOSED"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"


class MediaType(str, Enum):
    PHOTO = "PHOTO"
    VIDEO = "VIDEO"


# =============================================================================
# Inputs
# =============================================================================


@dataclass(frozen=True)
class NewJobFields:
    """Intake form for a new job: the customer, the vehicle, the work.

    ``vehicle_year`` arrives as typed by the advisor and must be numeric if
    present; ``validation.validate_new_job`` normalizes it to an int.
    """

    title: str
    customer_name: str
    customer_phone: str | None = None
    customer_email: str | None = None
    vehicle_year: int | str | None = None
    vehicle_make: str | None = None
    vehicle_model: str | None = None
    vehicle_trim: str | None = None
    vehicle_vin: str | None = None
    vehicle_plate: str | None = None
    vehicle_odometer: int | None = None
    priority: JobPriority = JobPriority.NORMAL
    assigned_tech_id: UUID | None = None


@dataclass(frozen=True)
class NewLineItem:
    type: LineItemType
    name: str
    qty: int = 1
    unit_price: int = 0
    labor_hours: Decimal | None = None
    taxable: bool = True


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True)
class ShopRecord:
    id: UUID
    name: str
    timezone: str


@dataclass(frozen=True)
class UserRecord:
    id: UUID
    shop_id: UUID
    name: str
    email: str
    role: Role
    active: bool


@dataclass(frozen=True)
class JobRecord:
    id: UUID
    shop_id: UUID
    job_number: int
    title: str
    state: JobState
    priority: JobPriority
    customer_id: UUID
    vehicle_id: UUID
    assigned_tech_id: UUID | None
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None

    @property
    def is_closed(self) -> bool:
        return self.state is JobState.CLOSED


@dataclass(frozen=True)
class JobEventRecord:
    """One entry of a job's history.  ``actor_id`` is None for customer and
    system originated events."""

    id: UUID
    job_id: UUID
    seq: int
    type: JobEventType
    payload: EventPayload
    actor_id: UUID | None
    created_at: datetime


@dataclass(frozen=True)
class LineItemRecord:
    id: UUID
    job_id: UUID
    type: LineItemType
    name: str
    qty: int
    unit_price: int
    labor_hours: Decimal | None
    taxable: bool
    status: LineItemStatus
    sort_order: int
    created_at: datetime

    @property
    def line_total(self) -> int:
        """``qty * unit_price`` in cents."""
        return self.qty * self.unit_price


def items_total(items: Iterable[LineItemRecord], status: LineItemStatus) -> int:
    """Sum of ``line_total`` over the items in ``status``, in cents."""
    return sum(item.line_total for item in items if item.status is status)


@dataclass(frozen=True)
class MediaRecord:
    id: UUID
    job_id: UUID
    type: MediaType
    url: str
    caption: str | None
    created_at: datetime
