"""Write-through to the account store with an ordered retry queue.

Local ledger state is updated before a write is submitted. A write that fails
with PersistenceError stays queued and is retried, in submission order, before
the next write or on flush(). After max_attempts failures it is dropped and
logged; the local state is not rolled back.
"""

from collections import deque
from dataclasses import dataclass
from typing import Any

from eisc.core.exceptions import NotFoundError, PersistenceError
from eisc.core.logging import get_logger
from eisc.storage.base import AccountStore

log = get_logger(__name__)

OPERATIONS = ("insert_transaction", "update_transaction_status", "upsert_milestone")


@dataclass
class PendingWrite:
    op: str
    args: tuple[Any, ...]
    attempts: int = 0


class RetryQueue:
    def __init__(self, store: AccountStore, max_attempts: int = 5) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.max_attempts = max_attempts
        self._pending: deque[PendingWrite] = deque()

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def pending(self) -> list[PendingWrite]:
        return list(self._pending)

    async def submit(self, op: str, *args: Any) -> bool:
        """Queue a write and flush. True if everything, this write included, reached the store."""
        if op not in OPERATIONS:
            raise ValueError(f"Unknown store operation: {op}")
        self._pending.append(PendingWrite(op=op, args=args))
        return await self.flush() == 0

    async def flush(self) -> int:
        """Apply queued writes in order, stopping at the first failure. Returns how many remain."""
        while self._pending:
            write = self._pending[0]
            try:
                await getattr(self.store, write.op)(*write.args)
            except NotFoundError as e:
                # target row never reached the store (its insert was dropped)
                self._pending.popleft()
                log.error("store_write_orphaned", op=write.op, reason=e.message)
                continue
            except PersistenceError as e:
                write.attempts += 1
                if write.attempts >= self.max_attempts:
                    self._pending.popleft()
                    log.error("store_write_dropped", op=write.op, attempts=write.attempts, reason=e.message)
                    continue
                log.warning(
                    "persistence_failed",
                    op=write.op,
                    attempts=write.attempts,
                    queued=len(self._pending),
                    reason=e.message,
                )
                return len(self._pending)
            self._pending.popleft()
        return 0
