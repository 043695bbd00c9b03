"""
Role -- the single typed access level used by every authorization check.

Ordering is total: NONE < VIEW < EDIT < ADMIN.  Effective permission for a
(user, account) pair is the maximum of the implicit owner role (ADMIN) and
every group role that reaches the account, so comparisons and ``max()`` are
the only operations callers need.
"""

from enum import IntEnum

from ledger_kernel.exceptions import InvalidRoleError


class Role(IntEnum):
    NONE = 0
    VIEW = 1
    EDIT = 2
    ADMIN = 3

    @property
    def label(self) -> str:
        """Lowercase storage form (``view``, ``edit``, ``admin``, ``none``)."""
        return self.name.lower()

    @classmethod
    def parse(cls, value: str) -> "Role":
        """
        Parse a grantable role from user input.

        Trims and lowercases.  Only ``view``, ``edit`` and ``admin`` are
        grantable; ``none`` and anything else raise InvalidRoleError.
        """
        if not isinstance(value, str):
            raise InvalidRoleError(repr(value))
        normalized = value.strip().lower()
        if normalized not in GRANTABLE_LABELS:
            raise InvalidRoleError(value)
        return cls[normalized.upper()]

    @classmethod
    def from_stored(cls, value: str | None) -> "Role":
        """Map a stored role column (or a missing row) to a Role."""
        if value is None:
            return cls.NONE
        return cls[value.upper()]


GRANTABLE_LABELS: frozenset[str] = frozenset({"view", "edit", "admin"})


def max_role(roles) -> Role:
    """Maximum of an iterable of roles; NONE when empty."""
    return max(roles, default=Role.NONE)
