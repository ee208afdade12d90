"""Database layer - engine, base classes, types, and immutability listeners."""

from repair_kernel.db.base import UUID, Base, UTCDateTime, UUIDString
from repair_kernel.db.engine import create_tables, get_engine, get_session
from repair_kernel.db.types import Cents, Sequence, TokenHash

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "UTCDateTime",
    "UUIDString",
    "UUID",
    "Cents",
    "Sequence",
    "TokenHash",
]
