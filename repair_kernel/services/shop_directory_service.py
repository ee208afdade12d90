"""
Service layer for the shop directory.

Manages shops, their staff, and the customer and vehicle records created at
intake.  Returns frozen DTOs (``ShopRecord``, ``UserRecord``) instead of
ORM entities to callers outside the kernel.

Flush-only: the caller owns the transaction.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from repair_kernel.domain.dtos import NewJobFields, ShopRecord, UserRecord
from repair_kernel.domain.principal import Role
from repair_kernel.exceptions import (
    InvalidTechnicianError,
    ShopNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from repair_kernel.logging_config import get_logger
from repair_kernel.models.shop import Customer, Shop, User, Vehicle
from repair_kernel.services.base import BaseService, coerce_uuid
from repair_kernel.services.job_number_service import (
    DEFAULT_FIRST_JOB_NUMBER,
    JobNumberService,
)

logger = get_logger("services.shop_directory")


class ShopDirectoryService(BaseService):
    """
    Contract:
        Users are deactivated, never deleted.  A shop is created together
        with its job number counter.
    """

    def __init__(self, session, clock=None, first_job_number: int = DEFAULT_FIRST_JOB_NUMBER):
        super().__init__(session, clock)
        self._job_numbers = JobNumberService(session, clock, first_job_number)

    def _get_shop(self, shop_id: UUID) -> Shop:
        shop = self.session.get(Shop, shop_id)
        if shop is None:
            raise ShopNotFoundError(str(shop_id))
        return shop

    def _get_user(self, user_id: UUID) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        return user

    def create_shop(self, name: str, timezone: str = "America/New_York") -> ShopRecord:
        name = (name or "").strip()
        if len(name) < 2:
            raise ValidationError("name", "must be at least 2 characters")
        shop = Shop(name=name, timezone=timezone)
        self.session.add(shop)
        self.session.flush()
        self._job_numbers.create_counter(shop.id)
        logger.info("shop_created", extra={"shop_id": str(shop.id), "shop_name": name})
        return shop.to_dto()

    def get_shop(self, shop_id: UUID) -> ShopRecord:
        return self._get_shop(shop_id).to_dto()

    def add_user(self, shop_id: UUID, name: str, email: str, role: Role | str) -> UserRecord:
        self._get_shop(shop_id)
        name = (name or "").strip()
        email = (email or "").strip().lower()
        if len(name) < 2:
            raise ValidationError("name", "must be at least 2 characters")
        if "@" not in email:
            raise ValidationError("email", "must be an email address")
        try:
            role = Role(role)
        except ValueError:
            raise ValidationError("role", f"unknown role {role!r}") from None

        user = User(shop_id=shop_id, name=name, email=email, role=role.value, active=True)
        self.session.add(user)
        self.session.flush()
        logger.info(
            "user_added",
            extra={"shop_id": str(shop_id), "user_id": str(user.id), "role": role.value},
        )
        return user.to_dto()

    def deactivate_user(self, user_id: UUID) -> UserRecord:
        user = self._get_user(user_id)
        user.active = False
        self.session.flush()
        logger.info("user_deactivated", extra={"user_id": str(user_id)})
        return user.to_dto()

    def get_user(self, user_id: UUID) -> UserRecord:
        return self._get_user(user_id).to_dto()

    def list_users(self, shop_id: UUID, role: Role | None = None) -> list[UserRecord]:
        stmt = select(User).where(User.shop_id == shop_id)
        if role is not None:
            stmt = stmt.where(User.role == role.value)
        return [u.to_dto() for u in self.session.scalars(stmt.order_by(User.name))]

    def get_active_tech(self, shop_id: UUID, user_id: UUID | str) -> User:
        """
        Resolve an active technician of ``shop_id``.

        Raises:
            InvalidTechnicianError: Unknown user, wrong shop, not a TECH, or
                deactivated.  All four look the same to the caller.
        """
        parsed = coerce_uuid(user_id)
        user = self.session.get(User, parsed) if parsed is not None else None
        if (
            user is None
            or user.shop_id != shop_id
            or user.role != Role.TECH.value
            or not user.active
        ):
            raise InvalidTechnicianError(str(user_id))
        return user

    def create_customer_and_vehicle(
        self, shop_id: UUID, fields: NewJobFields,
    ) -> tuple[Customer, Vehicle]:
        """Intake records for a new job; ``fields`` must already be validated."""
        customer = Customer(
            shop_id=shop_id,
            name=fields.customer_name,
            phone=fields.customer_phone,
            email=fields.customer_email,
        )
        self.session.add(customer)
        self.session.flush()
        vehicle = Vehicle(
            shop_id=shop_id,
            customer_id=customer.id,
            year=fields.vehicle_year,
            make=fields.vehicle_make,
            model=fields.vehicle_model,
            trim=fields.vehicle_trim,
            vin=fields.vehicle_vin,
            plate=fields.vehicle_plate,
            odometer=fields.vehicle_odometer,
        )
        self.session.add(vehicle)
        self.session.flush()
        return customer, vehicle
