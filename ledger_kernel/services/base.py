"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for every
    service in the kernel layer.  Services receive a SQLAlchemy ``Session``
    and persist through ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or roll back themselves.  The caller (an HTTP adapter
    via ``session_scope()``, or a test) owns commit/rollback, so a user
    operation that fails or is cancelled half-way leaves no partial writes.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
    """

    def __init__(self, session: Session):
        self.session = session
