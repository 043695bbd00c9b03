"""
UserDirectory -- the kernel's view of the external identity provider.

Responsibility:
    Turns the ``target_email_or_id`` a group admin types into a user id.
    Credentials, tokens and sessions are the identity provider's business;
    the kernel only ever sees opaque, already-authenticated user ids.

Implementations:
    - SqlUserDirectory: reads the local ``users`` mirror table.
    - InMemoryUserDirectory: dict-backed, for tests and tooling.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.exceptions import UserNotFoundError
from ledger_kernel.models.user import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _as_uuid(reference: str | UUID) -> UUID | None:
    if isinstance(reference, UUID):
        return reference
    try:
        return UUID(reference.strip())
    except (ValueError, AttributeError):
        return None


class UserDirectory(ABC):
    """Resolves user references (email address or id) to user ids."""

    @abstractmethod
    def find_by_email(self, email: str) -> UUID | None: ...

    @abstractmethod
    def exists(self, user_id: UUID) -> bool: ...

    def resolve(self, reference: str | UUID) -> UUID:
        """
        Resolve an email address or a user id.

        Raises:
            UserNotFoundError: no such user.
        """
        user_id = _as_uuid(reference)
        if user_id is not None:
            if self.exists(user_id):
                return user_id
            raise UserNotFoundError(str(reference))

        if isinstance(reference, str) and reference.strip():
            found = self.find_by_email(normalize_email(reference))
            if found is not None:
                return found
        raise UserNotFoundError(str(reference))


class SqlUserDirectory(UserDirectory):
    """User lookups against the ``users`` mirror table."""

    def __init__(self, session: Session):
        self._session = session

    def find_by_email(self, email: str) -> UUID | None:
        return self._session.execute(
            select(User.id).where(User.email == normalize_email(email))
        ).scalar_one_or_none()

    def exists(self, user_id: UUID) -> bool:
        return self._session.get(User, user_id) is not None

    def register(self, email: str, display_name: str = "", user_id: UUID | None = None) -> UUID:
        """Mirror an identity issued by the provider.  Flushes, never commits."""
        user = User(email=normalize_email(email), display_name=display_name)
        if user_id is not None:
            user.id = user_id
        self._session.add(user)
        self._session.flush()
        return user.id


class InMemoryUserDirectory(UserDirectory):
    """Dict-backed directory."""

    def __init__(self, users: dict[str, UUID] | None = None):
        self._by_email: dict[str, UUID] = {
            normalize_email(email): uid for email, uid in (users or {}).items()
        }

    def add(self, email: str, user_id: UUID) -> None:
        self._by_email[normalize_email(email)] = user_id

    def find_by_email(self, email: str) -> UUID | None:
        return self._by_email.get(normalize_email(email))

    def exists(self, user_id: UUID) -> bool:
        return user_id in self._by_email.values()
