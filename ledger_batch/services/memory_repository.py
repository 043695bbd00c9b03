"""
InMemoryObligationRepository -- thread-safe claim protocol without a database.

Same contract as SqlObligationRepository.  A single lock guards the store;
the claimed-id set plays the part of row locks (claim_due skips claimed ids
instead of waiting, skip() waits like a blocking ``FOR UPDATE``).  Firings
are staged in the batch and applied on normal exit only, so an exception
inside the block leaves the store untouched.

Used for deterministic rollover tests and for running several schedulers
against one shared store from multiple threads.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from ledger_kernel.db.types import parse_amount, validate_currency
from ledger_kernel.domain.cadence import (
    advance_next_fire,
    is_due,
    normalize_timestamp,
    validate_interval_days,
)
from ledger_kernel.domain.dtos import TransactionInfo, TransactionKind
from ledger_kernel.exceptions import ClaimLostError, ObligationNotFoundError

from ledger_batch.domain.types import ClaimedObligation, FiredObligation
from ledger_batch.services.repository import ClaimBatch, ObligationRepository


@dataclass(frozen=True)
class StoredObligation:
    obligation_id: UUID
    account_id: UUID
    amount: Decimal
    currency_code: str
    kind: str
    description: str | None
    interval_days: int
    next_occurs_at: datetime
    is_enabled: bool = True

    def to_claim(self) -> ClaimedObligation:
        return ClaimedObligation(
            obligation_id=self.obligation_id,
            account_id=self.account_id,
            amount=self.amount,
            currency_code=self.currency_code,
            kind=self.kind,
            description=self.description,
            interval_days=self.interval_days,
            next_occurs_at=self.next_occurs_at,
        )


class _MemoryClaimBatch(ClaimBatch):

    def __init__(self, repo: InMemoryObligationRepository, claimed: tuple[ClaimedObligation, ...]):
        super().__init__(claimed)
        self._repo = repo
        self._open: set[UUID] = {c.obligation_id for c in claimed}
        self.staged: list[tuple[ClaimedObligation, TransactionInfo]] = []

    def fire(self, claim: ClaimedObligation, transaction_id: UUID) -> FiredObligation:
        if claim.obligation_id not in self._open:
            raise ClaimLostError(str(claim.obligation_id), claim.next_occurs_at.isoformat())
        self._open.discard(claim.obligation_id)

        if not self._repo._guard_holds(claim):
            raise ClaimLostError(str(claim.obligation_id), claim.next_occurs_at.isoformat())

        self.staged.append((
            claim,
            TransactionInfo(
                transaction_id=transaction_id,
                account_id=claim.account_id,
                amount=claim.amount,
                currency_code=claim.currency_code,
                kind=TransactionKind(claim.kind),
                description=claim.description,
                occurred_at=claim.next_occurs_at,
                source_obligation_id=claim.obligation_id,
            ),
        ))
        return self._fired(claim, transaction_id)


class InMemoryObligationRepository(ObligationRepository):
    """Dict-backed obligation store plus an append-only transaction list."""

    def __init__(self):
        self._lock = threading.Lock()
        self._released = threading.Condition(self._lock)
        self._obligations: dict[UUID, StoredObligation] = {}
        self._transactions: list[TransactionInfo] = []
        self._claimed: set[UUID] = set()

    # ------------------------------------------------------------------
    # Store management
    # ------------------------------------------------------------------

    def add(
        self,
        *,
        interval_days: int,
        next_occurs_at: datetime,
        amount: Decimal | int | str = Decimal("10.00"),
        currency_code: str = "USD",
        kind: TransactionKind | str = TransactionKind.EXPENSE,
        description: str | None = None,
        is_enabled: bool = True,
        account_id: UUID | None = None,
        obligation_id: UUID | None = None,
    ) -> UUID:
        row = StoredObligation(
            obligation_id=obligation_id or uuid4(),
            account_id=account_id or uuid4(),
            amount=parse_amount(amount),
            currency_code=validate_currency(currency_code),
            kind=TransactionKind.parse(kind).value,
            description=description,
            interval_days=validate_interval_days(interval_days),
            next_occurs_at=normalize_timestamp(next_occurs_at),
            is_enabled=is_enabled,
        )
        with self._lock:
            self._obligations[row.obligation_id] = row
        return row.obligation_id

    def get(self, obligation_id: UUID) -> StoredObligation:
        with self._lock:
            try:
                return self._obligations[obligation_id]
            except KeyError:
                raise ObligationNotFoundError(str(obligation_id)) from None

    def set_enabled(self, obligation_id: UUID, is_enabled: bool) -> None:
        with self._released:
            self._wait_unclaimed(obligation_id)
            row = self._require(obligation_id)
            self._obligations[obligation_id] = replace(row, is_enabled=is_enabled)

    def skip(self, obligation_id: UUID) -> StoredObligation:
        """Advance by one interval without a transaction; waits for any claim."""
        with self._released:
            self._wait_unclaimed(obligation_id)
            row = self._require(obligation_id)
            advanced = replace(
                row, next_occurs_at=advance_next_fire(row.next_occurs_at, row.interval_days),
            )
            self._obligations[obligation_id] = advanced
            return advanced

    def delete(self, obligation_id: UUID) -> None:
        with self._released:
            self._wait_unclaimed(obligation_id)
            self._require(obligation_id)
            del self._obligations[obligation_id]

    @property
    def transactions(self) -> tuple[TransactionInfo, ...]:
        with self._lock:
            return tuple(self._transactions)

    def transactions_for(self, obligation_id: UUID) -> list[TransactionInfo]:
        with self._lock:
            return sorted(
                (t for t in self._transactions if t.source_obligation_id == obligation_id),
                key=lambda t: t.occurred_at,
            )

    # ------------------------------------------------------------------
    # Claim protocol
    # ------------------------------------------------------------------

    @contextmanager
    def claim_due(self, now: datetime, limit: int) -> Iterator[ClaimBatch]:
        with self._lock:
            due = sorted(
                (
                    o for o in self._obligations.values()
                    if o.obligation_id not in self._claimed
                    and is_due(o.next_occurs_at, o.is_enabled, now)
                ),
                key=lambda o: (o.next_occurs_at, str(o.obligation_id)),
            )[:limit]
            ids = {o.obligation_id for o in due}
            self._claimed |= ids

        batch = _MemoryClaimBatch(self, tuple(o.to_claim() for o in due))
        try:
            yield batch
            self._apply(batch.staged)
        finally:
            with self._released:
                self._claimed -= ids
                self._released.notify_all()

    def _guard_holds(self, claim: ClaimedObligation) -> bool:
        with self._lock:
            row = self._obligations.get(claim.obligation_id)
            if row is None or row.next_occurs_at != claim.next_occurs_at:
                return False
            return not any(
                t.source_obligation_id == claim.obligation_id
                and t.occurred_at == claim.next_occurs_at
                for t in self._transactions
            )

    def _apply(self, staged: list[tuple[ClaimedObligation, TransactionInfo]]) -> None:
        with self._lock:
            for claim, txn in staged:
                row = self._obligations[claim.obligation_id]
                self._obligations[claim.obligation_id] = replace(
                    row,
                    next_occurs_at=advance_next_fire(claim.next_occurs_at, claim.interval_days),
                )
                self._transactions.append(txn)

    def _require(self, obligation_id: UUID) -> StoredObligation:
        row = self._obligations.get(obligation_id)
        if row is None:
            raise ObligationNotFoundError(str(obligation_id))
        return row

    def _wait_unclaimed(self, obligation_id: UUID) -> None:
        # Caller holds self._released.
        while obligation_id in self._claimed:
            self._released.wait()
