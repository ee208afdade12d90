"""
Module: repair_kernel.db.types
Responsibility: Annotated type aliases for column types shared across models.
Architecture position: Kernel > DB.  May be imported by models/ and services/.
    MUST NOT import from any of those layers.

Invariants enforced:
    - Money is integer minor units (cents).  No floats, no Decimals for money.
      ``line_total`` and approval totals are exact integer arithmetic.
    - Enum-valued columns are stored as short strings (``ShortCode``) so the
      schema stays portable across PostgreSQL and SQLite.
"""

from typing import Annotated

from sqlalchemy import BigInteger, String, Text

# Integer minor currency units (e.g. 8900 == $89.00)
Cents = Annotated[int, BigInteger]

# Monotonic counter values (job numbers, per-job event sequence)
Sequence = Annotated[int, BigInteger]

# HMAC-SHA256 hex digest (64 characters)
TokenHash = Annotated[str, String(64)]

# Enum values and other short identifiers
ShortCode = Annotated[str, String(50)]

# Names, titles, captions
Name = Annotated[str, String(200)]

# URLs and free text
LongText = Annotated[str, Text]


def cents_to_display(cents: int, currency_symbol: str = "$") -> str:
    """
    Render integer cents for logs and tooling (``8900 -> "$89.00"``).

    Presentation layers do their own locale-aware formatting; this exists
    so operational output never reaches for floats.
    """
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{currency_symbol}{whole:,}.{frac:02d}"
