"""
ObligationService -- user-facing management of recurring obligations.

Responsibility:
    Create, update, skip, delete, read and list recurring obligations on
    behalf of an authenticated user.  Firing obligations is NOT done here;
    that is the scheduler's job (ledger_batch).

Authorization (group-aware):
    - EDIT on the account (owner or group role) to create, update, skip or
      delete.
    - VIEW on the account to read or list.
    - An obligation on an account the caller cannot see is reported as
      ObligationNotFoundError.

Invariants enforced:
    - ``next_occurs_at`` is set at creation and afterwards only moved by the
      scheduler or by skip_obligation(), always by exactly one interval.
      update_obligation() does not accept it.
    - Amounts are positive Decimals, currencies are ISO 4217, intervals are
      whole days in [1, 36500].

Transaction boundaries:
    Flush only.  The caller commits.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import DESCRIPTION_LENGTH, parse_amount, validate_currency
from ledger_kernel.domain.cadence import (
    advance_next_fire,
    normalize_timestamp,
    validate_interval_days,
)
from ledger_kernel.domain.dtos import ObligationInfo, TransactionKind
from ledger_kernel.domain.roles import Role
from ledger_kernel.exceptions import (
    InvalidNameError,
    NotFoundError,
    ObligationNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.obligation import RecurringObligation
from ledger_kernel.services.access_control import AccessControlKernel
from ledger_kernel.services.base import BaseService

logger = get_logger("services.obligation")

DEFAULT_LIST_LIMIT = 100
MAX_LIST_LIMIT = 200


def clamp_page(limit: int, offset: int) -> tuple[int, int]:
    """Clamp ``limit`` to [1, MAX_LIST_LIMIT] and ``offset`` to >= 0."""
    return max(1, min(int(limit), MAX_LIST_LIMIT)), max(0, int(offset))


def _clean_description(description: str | None) -> str | None:
    if description is None:
        return None
    if not isinstance(description, str):
        raise InvalidNameError(str(description), "description must be text")
    if len(description) > DESCRIPTION_LENGTH:
        raise InvalidNameError(
            description[:40], f"description at most {DESCRIPTION_LENGTH} characters"
        )
    return description


_UNSET = object()


class ObligationService(BaseService):
    """Recurring obligation CRUD plus the explicit skip action."""

    def __init__(self, session: Session, access: AccessControlKernel | None = None):
        super().__init__(session)
        self._access = access or AccessControlKernel(session)

    def create_obligation(
        self,
        acting_user: UUID,
        account_id: UUID,
        amount: Decimal | int | str,
        currency_code: str,
        kind: TransactionKind | str,
        interval_days: int,
        next_occurs_at: datetime,
        description: str | None = None,
        is_enabled: bool = True,
    ) -> ObligationInfo:
        """
        Create an obligation on an account the caller can edit.

        Raises:
            AccountNotFoundError / AccessDeniedError: kernel gate.
            LedgerValidationError subclasses: malformed fields.
        """
        row = RecurringObligation(
            account_id=account_id,
            amount=parse_amount(amount),
            currency_code=validate_currency(currency_code),
            kind=TransactionKind.parse(kind).value,
            description=_clean_description(description),
            interval_days=validate_interval_days(interval_days),
            next_occurs_at=normalize_timestamp(next_occurs_at),
            is_enabled=bool(is_enabled),
        )
        self._access.assert_edit(acting_user, account_id)

        self.session.add(row)
        self.session.flush()

        logger.info(
            "obligation_created",
            extra={
                "obligation_id": str(row.id),
                "account_id": str(account_id),
                "actor_id": str(acting_user),
                "interval_days": row.interval_days,
                "next_occurs_at": row.next_occurs_at,
            },
        )
        return row.to_dto()

    def update_obligation(
        self,
        acting_user: UUID,
        obligation_id: UUID,
        *,
        account_id: UUID | None = None,
        amount: Decimal | int | str | None = None,
        currency_code: str | None = None,
        kind: TransactionKind | str | None = None,
        description: str | None | object = _UNSET,
        interval_days: int | None = None,
        is_enabled: bool | None = None,
    ) -> ObligationInfo:
        """
        Update the template fields of an obligation.

        ``next_occurs_at`` is deliberately not a parameter.  Passing
        ``description=None`` clears it; omitting it leaves it unchanged.
        Moving the obligation to another account requires EDIT there too.
        """
        row = self._load_for(acting_user, obligation_id, Role.EDIT)

        if account_id is not None and account_id != row.account_id:
            self._access.assert_edit(acting_user, account_id)
            row.account_id = account_id
        if amount is not None:
            row.amount = parse_amount(amount)
        if currency_code is not None:
            row.currency_code = validate_currency(currency_code)
        if kind is not None:
            row.kind = TransactionKind.parse(kind).value
        if description is not _UNSET:
            row.description = _clean_description(description)
        if interval_days is not None:
            row.interval_days = validate_interval_days(interval_days)
        if is_enabled is not None:
            row.is_enabled = bool(is_enabled)

        self.session.flush()
        logger.info(
            "obligation_updated",
            extra={"obligation_id": str(obligation_id), "actor_id": str(acting_user)},
        )
        return row.to_dto()

    def skip_obligation(self, acting_user: UUID, obligation_id: UUID) -> ObligationInfo:
        """
        Advance ``next_occurs_at`` by one interval without creating a
        transaction.

        Takes a blocking row lock so a concurrent scheduler firing and a skip
        cannot both advance from the same value; a scheduler holding the row
        makes this wait, and the skip then applies to the advanced value.
        """
        row = self._load_for(acting_user, obligation_id, Role.EDIT, lock=True)

        previous = row.next_occurs_at
        row.next_occurs_at = advance_next_fire(previous, row.interval_days)
        self.session.flush()

        logger.info(
            "obligation_skipped",
            extra={
                "obligation_id": str(obligation_id),
                "actor_id": str(acting_user),
                "skipped_occurrence": previous,
                "next_occurs_at": row.next_occurs_at,
            },
        )
        return row.to_dto()

    def delete_obligation(self, acting_user: UUID, obligation_id: UUID) -> None:
        """Delete the template.  Transactions it already produced are kept."""
        row = self._load_for(acting_user, obligation_id, Role.EDIT)
        self.session.delete(row)
        self.session.flush()
        logger.info(
            "obligation_deleted",
            extra={"obligation_id": str(obligation_id), "actor_id": str(acting_user)},
        )

    def get_obligation(self, acting_user: UUID, obligation_id: UUID) -> ObligationInfo:
        return self._load_for(acting_user, obligation_id, Role.VIEW).to_dto()

    def list_obligations(
        self,
        acting_user: UUID,
        account_id: UUID | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> list[ObligationInfo]:
        """
        Obligations on every account the caller can view, soonest first.

        With ``account_id`` the listing is restricted to that account and the
        caller must have VIEW on it.
        """
        limit, offset = clamp_page(limit, offset)

        if account_id is not None:
            self._access.assert_view(acting_user, account_id)
            account_ids = [account_id]
        else:
            account_ids = self._access.visible_account_ids(acting_user)
            if not account_ids:
                return []

        rows = self.session.execute(
            select(RecurringObligation)
            .where(RecurringObligation.account_id.in_(account_ids))
            .order_by(RecurringObligation.next_occurs_at, RecurringObligation.id)
            .limit(limit)
            .offset(offset)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _load_for(
        self,
        acting_user: UUID,
        obligation_id: UUID,
        required: Role,
        lock: bool = False,
    ) -> RecurringObligation:
        stmt = select(RecurringObligation).where(RecurringObligation.id == obligation_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        row = self.session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise ObligationNotFoundError(str(obligation_id))

        try:
            self._access.assert_account_access(acting_user, row.account_id, required)
        except NotFoundError:
            raise ObligationNotFoundError(str(obligation_id)) from None
        return row
