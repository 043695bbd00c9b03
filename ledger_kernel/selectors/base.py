"""
Module: ledger_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/,
    domain/ and services/access_control.py (reads are gated too).

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(), delete(),
      commit(), or flush().
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """Abstract base class for all selectors."""

    def __init__(self, session: Session):
        self.session = session
