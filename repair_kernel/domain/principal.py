"""
Verified principal (``repair_kernel.domain.principal``).

The identity provider authenticates; the kernel only authorizes.  Every
tenant-scoped engine call receives a ``Principal`` explicitly -- there is no
ambient "current user".
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    """Shop roles."""

    OWNER = "OWNER"
    ADVISOR = "ADVISOR"
    TECH = "TECH"


MANAGEMENT_ROLES: frozenset[Role] = frozenset({Role.OWNER, Role.ADVISOR})


@dataclass(frozen=True)
class Principal:
    """An authenticated actor, as vouched for by the identity provider.

    Contract: frozen; the kernel trusts ``id``, ``role`` and ``shop_id``
    without re-checking credentials.
    """

    id: UUID
    role: Role
    shop_id: UUID

    @property
    def is_management(self) -> bool:
        return self.role in MANAGEMENT_ROLES

    def owns_tenant(self, shop_id: UUID) -> bool:
        return self.shop_id == shop_id
