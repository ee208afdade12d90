"""
Module: repair_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the read side: structured access to jobs, their history
    and their items without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and domain/ (for the frozen records they return).  MUST NOT import from
    services/ or outer layers.

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but MUST NOT
      call session.add(), session.delete(), session.commit(), or session.flush().
    - DTO return convention: Selectors return frozen dataclasses, NOT raw ORM
      model instances.
    - Session ownership: the caller owns the session and its transaction scope.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session
