"""
Typed Exception Hierarchy for the Repair Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure the engine can surface has its own class, a machine-readable
``code`` class attribute, and structured attributes.  Callers (an HTTP layer,
a CLI, a test) catch by type and read attributes -- never parse messages.

    try:
        lifecycle.transition_job(principal, job_id, JobState.DIAGNOSIS)
    except ReasonRequiredError as e:
        api_response(code=e.code, from_state=e.from_state, to_state=e.to_state)
    except NotFoundError as e:
        api_response(status=404, code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RepairKernelError (base)
    |
    +-- NotFoundError
    |   +-- JobNotFoundError
    |   +-- ApprovalNotAvailableError
    |   +-- ShopNotFoundError
    |   +-- UserNotFoundError
    |
    +-- ForbiddenError
    |
    +-- TransitionError
    |   +-- InvalidTransitionError
    |   +-- ReasonRequiredError
    |
    +-- ValidationError
    |   +-- InvalidTechnicianError
    |   +-- EventPayloadError
    |
    +-- ConflictError
    |   +-- JobNumberTakenError
    |   +-- JobNumberConflictError
    |   +-- ApprovalAlreadyDecidedError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|-------------------------------------------
Not found    | JOB_NOT_FOUND             | Job missing OR owned by another shop
             | APPROVAL_NOT_AVAILABLE    | Bad/stale/consumed approval token
             | SHOP_NOT_FOUND            | Shop id unknown to the directory
             | USER_NOT_FOUND            | User id unknown to the directory
-------------|---------------------------|-------------------------------------------
Access       | FORBIDDEN                 | Role or assignment gate failed
-------------|---------------------------|-------------------------------------------
Transition   | INVALID_TRANSITION        | Edge not in the workflow graph
             | REASON_REQUIRED           | Back edge without a justification
-------------|---------------------------|-------------------------------------------
Validation   | VALIDATION_ERROR          | Malformed input field
             | INVALID_TECHNICIAN        | Tech missing, inactive, wrong role/shop
             | EVENT_PAYLOAD_INVALID     | Stored event payload has the wrong shape
-------------|---------------------------|-------------------------------------------
Conflict     | JOB_NUMBER_TAKEN          | One allocation lost a race (retried)
             | JOB_NUMBER_CONFLICT       | Job number race not resolved by retries
             | APPROVAL_ALREADY_DECIDED  | Compare-and-set on a decided request
-------------|---------------------------|-------------------------------------------
Immutability | IMMUTABILITY_VIOLATION    | Mutating an append-only/terminal record

===============================================================================
DESIGN DECISIONS
===============================================================================

1. NotFound covers tenant mismatch.
   A job belonging to another shop raises the same ``JobNotFoundError`` as a
   job that does not exist.  Only ``job_id`` is carried.

2. Customer-facing errors carry nothing.
   ``ApprovalNotAvailableError`` has no attributes besides ``job_id``; the
   reason (mismatch, decided, reissued) is logged server-side only.

3. Conflicts are internal.
   ``JobNumberTakenError`` never leaves ``create_job``: it marks the one
   kind of IntegrityError that rerunning the creation unit can resolve.
   ``JobNumberConflictError`` is raised only after bounded retries.
   ``ApprovalAlreadyDecidedError`` aborts a decision unit and is converted by
   the approval workflow into a no-op outcome.

===============================================================================
"""


class RepairKernelError(Exception):
    """
    Base exception for all repair kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "REPAIR_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(RepairKernelError):
    """Base exception for missing or inaccessible entities."""

    code: str = "NOT_FOUND"


class JobNotFoundError(NotFoundError):
    """Job does not exist or belongs to another shop."""

    code: str = "JOB_NOT_FOUND"

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class ApprovalNotAvailableError(NotFoundError):
    """
    Approval link is not usable.

    Deliberately undifferentiated: a wrong token, a reissued link, and an
    already-recorded decision all look the same to the customer.
    """

    code: str = "APPROVAL_NOT_AVAILABLE"

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__("This approval request is not available")


class ShopNotFoundError(NotFoundError):
    code: str = "SHOP_NOT_FOUND"

    def __init__(self, shop_id: str):
        self.shop_id = shop_id
        super().__init__(f"Shop not found: {shop_id}")


class UserNotFoundError(NotFoundError):
    code: str = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


# Access exceptions


class ForbiddenError(RepairKernelError):
    """Principal's role or assignment does not allow the action."""

    code: str = "FORBIDDEN"

    def __init__(self, actor_id: str, action: str, reason: str):
        self.actor_id = actor_id
        self.action = action
        self.reason = reason
        super().__init__(f"Actor {actor_id} may not {action}: {reason}")


# Transition exceptions


class TransitionError(RepairKernelError):
    """Base exception for workflow transition errors."""

    code: str = "TRANSITION_ERROR"


class InvalidTransitionError(TransitionError):
    """The requested edge is not part of the workflow graph."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state} -> {to_state}")


class ReasonRequiredError(TransitionError):
    """A back edge was requested without a justification."""

    code: str = "REASON_REQUIRED"

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Reason required for back transition {from_state} -> {to_state}"
        )


# Validation exceptions


class ValidationError(RepairKernelError):
    """Malformed input."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class InvalidTechnicianError(ValidationError):
    """Technician is not an active TECH in the principal's shop."""

    code: str = "INVALID_TECHNICIAN"

    def __init__(self, tech_id: str):
        self.tech_id = tech_id
        super().__init__(
            "assigned_tech_id",
            f"{tech_id} is not an active technician in this shop",
        )


class EventPayloadError(ValidationError):
    """Event payload does not match the schema for its event type."""

    code: str = "EVENT_PAYLOAD_INVALID"

    def __init__(self, event_type: str, reason: str):
        self.event_type = event_type
        super().__init__("payload", f"{event_type}: {reason}")


# Conflict exceptions


class ConflictError(RepairKernelError):
    """Base exception for concurrent-modification conflicts."""

    code: str = "CONFLICT"


class JobNumberTakenError(ConflictError):
    """A job number (or the shop's counter row) was claimed by a concurrent unit."""

    code: str = "JOB_NUMBER_TAKEN"

    def __init__(self, shop_id: str, job_number: int | None = None):
        self.shop_id = shop_id
        self.job_number = job_number
        super().__init__(f"Job number {job_number} of shop {shop_id} was taken concurrently")


class JobNumberConflictError(ConflictError):
    """Job number allocation kept colliding after all retries."""

    code: str = "JOB_NUMBER_CONFLICT"

    def __init__(self, shop_id: str, attempts: int):
        self.shop_id = shop_id
        self.attempts = attempts
        super().__init__(
            f"Could not allocate a job number for shop {shop_id} "
            f"after {attempts} attempt(s)"
        )


class ApprovalAlreadyDecidedError(ConflictError):
    """Compare-and-set on an approval request matched no live request."""

    code: str = "APPROVAL_ALREADY_DECIDED"

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Approval for job {job_id} is no longer pending")


# Immutability exceptions


class ImmutabilityViolationError(RepairKernelError):
    """Attempt to modify an append-only or terminal record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
