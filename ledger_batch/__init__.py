"""
ledger_batch -- Recurring obligation scheduler.

Turns due recurring obligations into ledger transactions, exactly once per
scheduled instant, with any number of schedulers sharing one store.

Architecture:
    ledger_batch/ is a top-level package.  Nothing in ledger_kernel imports
    from ledger_batch.

Invariants:
    - Claims are exclusive and never waited on (SKIP LOCKED).
    - Each firing writes one transaction and advances next_occurs_at by
      exactly one interval, atomically, guarded on the claimed value.
    - Clock injection: no wall-clock reads outside the Clock.
    - Graceful shutdown between items.
"""
