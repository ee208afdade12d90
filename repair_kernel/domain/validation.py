"""
Input validation for tenant-scoped actions.

Pure checks with no I/O.  Each function either returns a normalized value
or raises ``ValidationError`` naming the offending field.  Checks that need
the database (is this tech active in this shop?) live in the services.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from urllib.parse import urlparse

from repair_kernel.domain.dtos import (
    JobPriority,
    LineItemType,
    MediaType,
    NewJobFields,
    NewLineItem,
)
from repair_kernel.exceptions import ValidationError

MIN_TITLE_LENGTH = 3
MIN_NAME_LENGTH = 2
MIN_NOTE_LENGTH = 2


def _require_text(value: str | None, field: str, min_length: int) -> str:
    text = (value or "").strip()
    if len(text) < min_length:
        raise ValidationError(field, f"must be at least {min_length} characters")
    return text


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip()
    return text or None


def validate_new_job(fields: NewJobFields) -> NewJobFields:
    """Normalize an intake form.

    Text is stripped, blank optionals become None and ``vehicle_year`` is
    converted to an int.
    """
    title = _require_text(fields.title, "title", MIN_TITLE_LENGTH)
    customer_name = _require_text(fields.customer_name, "customer_name", MIN_NAME_LENGTH)

    year = fields.vehicle_year
    if isinstance(year, str):
        year = year.strip() or None
    if year is not None:
        if isinstance(year, bool) or not str(year).isdigit():
            raise ValidationError("vehicle_year", "must be numeric")
        year = int(year)

    odometer = fields.vehicle_odometer
    if odometer is not None and (isinstance(odometer, bool) or odometer < 0):
        raise ValidationError("vehicle_odometer", "must be a non-negative integer")

    try:
        priority = JobPriority(fields.priority)
    except ValueError:
        raise ValidationError("priority", f"unknown priority {fields.priority!r}") from None

    return replace(
        fields,
        title=title,
        customer_name=customer_name,
        customer_phone=_optional_text(fields.customer_phone),
        customer_email=_optional_text(fields.customer_email),
        vehicle_year=year,
        vehicle_make=_optional_text(fields.vehicle_make),
        vehicle_model=_optional_text(fields.vehicle_model),
        vehicle_trim=_optional_text(fields.vehicle_trim),
        vehicle_vin=_optional_text(fields.vehicle_vin),
        vehicle_plate=_optional_text(fields.vehicle_plate),
        priority=priority,
    )


def validate_new_line_item(fields: NewLineItem) -> NewLineItem:
    name = _require_text(fields.name, "name", MIN_NAME_LENGTH)
    try:
        item_type = LineItemType(fields.type)
    except ValueError:
        raise ValidationError("type", f"unknown line item type {fields.type!r}") from None
    if isinstance(fields.qty, bool) or not isinstance(fields.qty, int) or fields.qty < 1:
        raise ValidationError("qty", "must be an integer >= 1")
    if (
        isinstance(fields.unit_price, bool)
        or not isinstance(fields.unit_price, int)
        or fields.unit_price < 0
    ):
        raise ValidationError("unit_price", "must be integer cents >= 0")
    labor_hours = fields.labor_hours
    if labor_hours is not None:
        labor_hours = Decimal(str(labor_hours))
        if not labor_hours.is_finite() or labor_hours < 0:
            raise ValidationError("labor_hours", "must be >= 0")
    return replace(
        fields,
        type=item_type,
        name=name,
        labor_hours=labor_hours,
        taxable=bool(fields.taxable),
    )


def validate_note(text: str | None) -> str:
    return _require_text(text, "note", MIN_NOTE_LENGTH)


def validate_media(media_type: MediaType | str, url: str | None) -> tuple[MediaType, str]:
    try:
        media_type = MediaType(media_type)
    except ValueError:
        raise ValidationError("type", f"unknown media type {media_type!r}") from None
    url = (url or "").strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("url", "must be an absolute http(s) URL")
    return media_type, url
