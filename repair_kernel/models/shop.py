"""
Module: repair_kernel.models.shop
Responsibility: ORM persistence for the tenant and its directory: the shop
    itself, its staff (users with a role), and its customers and vehicles.
Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py only.

Invariants enforced:
    - Every row other than Shop carries ``shop_id``; cross-tenant lookups are
      answered by the services as not-found.
    - ``users.email`` is globally unique (the identity provider keys on it).
    - Users are deactivated, never deleted, so historical ``actor_id`` values
      stay resolvable.

Failure modes:
    - IntegrityError on duplicate user email.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repair_kernel.db.base import Base, UUIDString
from repair_kernel.db.types import Name, ShortCode

if TYPE_CHECKING:
    from repair_kernel.domain.dtos import ShopRecord, UserRecord


class Shop(Base):
    """A repair shop -- the tenant boundary."""

    __tablename__ = "shops"

    name: Mapped[Name] = mapped_column(nullable=False)
    timezone: Mapped[str] = mapped_column(
        String(64), nullable=False, default="America/New_York",
    )

    def __repr__(self) -> str:
        return f"<Shop {self.name}>"

    def to_dto(self) -> ShopRecord:
        from repair_kernel.domain.dtos import ShopRecord

        return ShopRecord(id=self.id, name=self.name, timezone=self.timezone)


class User(Base):
    """A staff member of one shop."""

    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint(
            "role IN ('OWNER', 'ADVISOR', 'TECH')",
            name="ck_users_valid_role",
        ),
        Index("ix_users_shop_role", "shop_id", "role", "active"),
    )

    shop_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("shops.id"), nullable=False,
    )
    name: Mapped[Name] = mapped_column(nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    role: Mapped[ShortCode] = mapped_column(nullable=False)
    active: Mapped[bool] = mapped_column(nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<User {self.email} {self.role}>"

    def to_dto(self) -> UserRecord:
        from repair_kernel.domain.dtos import UserRecord
        from repair_kernel.domain.principal import Role

        return UserRecord(
            id=self.id,
            shop_id=self.shop_id,
            name=self.name,
            email=self.email,
            role=Role(self.role),
            active=self.active,
        )


class Customer(Base):
    __tablename__ = "customers"

    __table_args__ = (
        Index("ix_customers_shop", "shop_id"),
    )

    shop_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("shops.id"), nullable=False,
    )
    name: Mapped[Name] = mapped_column(nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    def __repr__(self) -> str:
        return f"<Customer {self.name}>"


class Vehicle(Base):
    __tablename__ = "vehicles"

    __table_args__ = (
        Index("ix_vehicles_shop", "shop_id"),
    )

    shop_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("shops.id"), nullable=False,
    )
    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("customers.id"), nullable=False,
    )
    year: Mapped[int | None] = mapped_column(nullable=True)
    make: Mapped[str | None] = mapped_column(String(100), nullable=True)
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    trim: Mapped[str | None] = mapped_column(String(100), nullable=True)
    vin: Mapped[str | None] = mapped_column(String(32), nullable=True)
    plate: Mapped[str | None] = mapped_column(String(32), nullable=True)
    odometer: Mapped[int | None] = mapped_column(nullable=True)

    customer: Mapped[Customer] = relationship(Customer, lazy="joined")

    def __repr__(self) -> str:
        return f"<Vehicle {self.describe()}>"

    def describe(self) -> str:
        """``"2019 Honda Civic EX"``; parts that are unknown are left out."""
        parts = [
            str(self.year) if self.year is not None else None,
            self.make,
            self.model,
            self.trim,
        ]
        text = " ".join(p for p in parts if p)
        return text or "Vehicle"
