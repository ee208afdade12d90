"""
Job event payloads -- tagged union keyed by event type.

Responsibility:
    Each ``JobEventType`` has exactly one frozen payload dataclass.  Payloads
    are encoded to plain dicts for the JSON column and decoded back into the
    dataclass for their type; a stored blob of the wrong shape is an error,
    not a silently partial object.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - ``payload_type_for(event_type)`` is total over ``JobEventType``.
    - ``encode_payload`` refuses a payload whose class does not match the
      event type it is being recorded under.
    - ``decode_payload`` rejects missing required keys, unknown keys and
      wrongly typed values with ``EventPayloadError``.

Failure modes:
    - EventPayloadError on any shape mismatch in either direction.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any, Union

from repair_kernel.domain.transitions import JobState
from repair_kernel.exceptions import EventPayloadError


class JobEventType(str, Enum):
    STATE_CHANGE = "STATE_CHANGE"
    NOTE = "NOTE"
    APPROVAL_SENT = "APPROVAL_SENT"
    APPROVAL_DECIDED = "APPROVAL_DECIDED"


@dataclass(frozen=True)
class StateChangePayload:
    """``from_state`` is None only for the creation event."""

    to_state: JobState
    from_state: JobState | None = None
    reason: str | None = None


@dataclass(frozen=True)
class NotePayload:
    note: str


@dataclass(frozen=True)
class ApprovalSentPayload:
    url: str


@dataclass(frozen=True)
class ApprovalDecidedPayload:
    """``decision`` is the customer's word: ``approve`` or ``decline``."""

    decision: str


EventPayload = Union[
    StateChangePayload,
    NotePayload,
    ApprovalSentPayload,
    ApprovalDecidedPayload,
]

_PAYLOAD_TYPES: dict[JobEventType, type] = {
    JobEventType.STATE_CHANGE: StateChangePayload,
    JobEventType.NOTE: NotePayload,
    JobEventType.APPROVAL_SENT: ApprovalSentPayload,
    JobEventType.APPROVAL_DECIDED: ApprovalDecidedPayload,
}

_STATE_FIELDS = frozenset({"from_state", "to_state"})
_OPTIONAL_FIELDS = frozenset({"from_state", "reason"})


def payload_type_for(event_type: JobEventType) -> type:
    return _PAYLOAD_TYPES[event_type]


def encode_payload(event_type: JobEventType, payload: EventPayload) -> dict[str, Any]:
    """Flatten a payload into a JSON-safe dict for storage."""
    expected = _PAYLOAD_TYPES[event_type]
    if type(payload) is not expected:
        raise EventPayloadError(
            event_type.value,
            f"expected {expected.__name__}, got {type(payload).__name__}",
        )
    data = asdict(payload)
    for key in _STATE_FIELDS & data.keys():
        if data[key] is not None:
            data[key] = JobState(data[key]).value
    return data


def decode_payload(event_type: JobEventType | str, data: Any) -> EventPayload:
    """Rebuild the payload dataclass for ``event_type`` from a stored dict.

    Raises:
        EventPayloadError: ``data`` is not a mapping of exactly the
            payload's fields with values of the right kind.
    """
    try:
        event_type = JobEventType(event_type)
    except ValueError:
        raise EventPayloadError(str(event_type), "unknown event type") from None

    if not isinstance(data, dict):
        raise EventPayloadError(event_type.value, "payload must be an object")

    cls = _PAYLOAD_TYPES[event_type]
    names = {f.name for f in fields(cls)}
    unknown = set(data) - names
    if unknown:
        raise EventPayloadError(
            event_type.value, f"unexpected keys: {sorted(unknown)}"
        )

    values: dict[str, Any] = {}
    for name in names:
        value = data.get(name)
        if value is None:
            if name not in _OPTIONAL_FIELDS:
                raise EventPayloadError(event_type.value, f"missing {name}")
            values[name] = None
            continue
        if not isinstance(value, str):
            raise EventPayloadError(event_type.value, f"{name} must be a string")
        if name in _STATE_FIELDS:
            try:
                value = JobState(value)
            except ValueError:
                raise EventPayloadError(
                    event_type.value, f"{name} is not a job state: {value}"
                ) from None
        values[name] = value
    return cls(**values)
