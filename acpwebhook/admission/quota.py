"""Global quota on concurrently bound access control policies.

The ledger is the only shared mutable state of the webhook. Every
reservation is applied immediately under the ledger lock and handed back as
a ``Transaction`` that the caller must either commit or roll back before
the review completes. Rolling back applies the inverse of what was
actually applied, so clamped releases undo cleanly.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from acpwebhook.admission.errors import InvariantViolation, QuotaExceeded
from acpwebhook.core.logging import get_logger, log_event
from acpwebhook.core.metrics import quota_capacity, quota_used

logger = get_logger(__name__)


class TxState(str, Enum):
    RESERVED = "Reserved"
    COMMITTED = "Committed"
    ROLLED_BACK = "RolledBack"


@dataclass
class Transaction:
    """A pending adjustment of one resource's reservation count."""

    resource_id: str
    amount: int
    applied: int
    ledger: "QuotaLedger" = field(repr=False, compare=False)
    state: TxState = TxState.RESERVED

    @property
    def is_open(self) -> bool:
        return self.state == TxState.RESERVED

    def commit(self) -> None:
        self.ledger.commit(self)

    def rollback(self) -> None:
        self.ledger.rollback(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self.is_open:
            return False

        if exc_type is None:
            self.commit()
        else:
            self.rollback()

        return False


class QuotaLedger:
    """Counts policy bindings per resource against a fixed capacity."""

    def __init__(self, capacity: int):
        if capacity < 0:
            raise ValueError(f"invalid quota capacity: {capacity}")

        self._capacity = capacity
        self._used = 0
        self._resources: Dict[str, int] = {}
        self._open = 0
        self._lock = threading.Lock()

        quota_capacity.set(capacity)
        quota_used.set(0)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def used(self) -> int:
        with self._lock:
            return self._used

    @property
    def open_transactions(self) -> int:
        """Number of transactions reserved but not yet closed."""
        with self._lock:
            return self._open

    def count(self, resource_id: str) -> int:
        with self._lock:
            return self._resources.get(resource_id, 0)

    def snapshot(self) -> Dict[str, int]:
        """Copy of the per-resource reservation counts."""
        with self._lock:
            return dict(self._resources)

    def reserve(
        self, resource_id: str, amount: int, per_resource_limit: Optional[int] = None
    ) -> Transaction:
        """
        Apply a signed adjustment and return the transaction to close.

        Positive amounts fail with QuotaExceeded when they would take the
        total over capacity. Negative amounts always succeed and are
        clamped so that the resource count never drops below zero.

        With per_resource_limit, a positive amount is clamped so that the
        resource count never exceeds the limit; a resource already at its
        limit reserves nothing and never fails.
        """
        with self._lock:
            wanted = amount
            if per_resource_limit is not None and amount > 0:
                current = self._resources.get(resource_id, 0)
                wanted = max(0, min(amount, per_resource_limit - current))

            if wanted > 0 and self._used + wanted > self._capacity:
                log_event(
                    logger,
                    "warning",
                    "quota_exceeded",
                    resource_id=resource_id,
                    used=self._used,
                    capacity=self._capacity,
                )
                raise QuotaExceeded(resource_id, self._used, self._capacity)

            applied = self._apply(resource_id, wanted)
            self._open += 1

        logger.debug(f"Reserved {applied} (requested {amount}) for {resource_id}")

        return Transaction(
            resource_id=resource_id, amount=amount, applied=applied, ledger=self
        )

    def commit(self, tx: Transaction) -> None:
        """Close the transaction, keeping its adjustment."""
        with self._lock:
            self._close(tx, TxState.COMMITTED)

    def rollback(self, tx: Transaction) -> None:
        """Close the transaction and undo its adjustment."""
        with self._lock:
            self._close(tx, TxState.ROLLED_BACK)
            self._apply(tx.resource_id, -tx.applied)

        logger.debug(f"Rolled back {tx.applied} for {tx.resource_id}")

    def _close(self, tx: Transaction, state: TxState) -> None:
        if tx.ledger is not self:
            raise InvariantViolation(
                f"transaction for {tx.resource_id} belongs to another ledger"
            )
        if tx.state != TxState.RESERVED:
            raise InvariantViolation(
                f"transaction for {tx.resource_id} already {tx.state.value}"
            )

        tx.state = state
        self._open -= 1

    def _apply(self, resource_id: str, delta: int) -> int:
        """Apply delta to a resource, clamped at zero. Caller holds the lock."""
        current = self._resources.get(resource_id, 0)
        delta = max(delta, -current)

        if current + delta:
            self._resources[resource_id] = current + delta
        else:
            self._resources.pop(resource_id, None)

        self._used += delta
        quota_used.set(self._used)

        return delta
