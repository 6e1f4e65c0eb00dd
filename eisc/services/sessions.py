"""Load a user's ledger into memory and keep one engine per user for the process."""

import asyncio
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Callable

from eisc.core.exceptions import PersistenceError
from eisc.core.logging import get_logger
from eisc.models.identity import Identity
from eisc.models.ledger import utcnow
from eisc.services.ledger import REGISTRATION_MILESTONE, LedgerEngine, LedgerRules
from eisc.storage.base import AccountStore
from eisc.storage.cache import LedgerCache, NullLedgerCache

log = get_logger(__name__)


async def load_ledger(
    identity: Identity,
    store: AccountStore,
    cache: LedgerCache | None = None,
    rules: LedgerRules | None = None,
    now: Callable[[], datetime] | None = None,
) -> LedgerEngine:
    """
    Build an engine from the store; fall back to the cache when the store is unreachable.
    New accounts get the registration milestone (idempotent through its fixed transaction id).
    """
    cache = cache or NullLedgerCache()
    user_id = identity.user_id
    try:
        transactions = await store.list_transactions(user_id)
        milestones = await store.list_milestones(user_id)
        source = "store"
    except PersistenceError as e:
        log.warning("ledger_store_unavailable", user_id=user_id, reason=e.message)
        snapshot = await cache.get(user_id)
        if snapshot is not None:
            transactions, milestones, source = snapshot.transactions, snapshot.milestones, "cache"
        else:
            transactions, milestones, source = [], {}, "empty"

    engine = LedgerEngine(
        user_id,
        store,
        transactions=transactions,
        completed_milestones=milestones,
        cache=cache,
        rules=rules,
        now=now,
    )
    log.info("ledger_loaded", user_id=user_id, source=source, transactions=len(transactions))
    if identity.is_new_user:
        await engine.complete_milestone(REGISTRATION_MILESTONE)
    await cache.set(user_id, engine.snapshot())
    return engine

class LedgerSessions:
    """
    In-process registry of open ledgers, keyed by user id.

    An open ledger is re-read from the store once refresh_interval has passed,
    so writes made by other processes (the bonus worker, another API replica)
    show up in its balance. At most max_open ledgers stay open; the least
    recently used one is closed first, unless it still has queued writes.
    """

    def __init__(
        self,
        store: AccountStore,
        cache: LedgerCache | None = None,
        rules: LedgerRules | None = None,
        now: Callable[[], datetime] | None = None,
        refresh_interval: timedelta = timedelta(seconds=60),
        max_open: int = 1000,
    ) -> None:
        self.store = store
        self.cache = cache or NullLedgerCache()
        self.rules = rules or LedgerRules()
        self.refresh_interval = refresh_interval
        self.max_open = max_open
        self._now = now
        self._engines: OrderedDict[str, LedgerEngine] = OrderedDict()
        self._refreshed_at: dict[str, datetime] = {}
        self._lock = asyncio.Lock()

    def _clock(self) -> datetime:
        return self._now() if self._now else utcnow()

    async def open(self, identity: Identity, refresh: bool = False) -> LedgerEngine:
        """Return the user's open ledger, loading it on first use. refresh=True forces a store read."""
        user_id = identity.user_id
        engine = self._engines.get(user_id)
        if engine is None:
            async with self._lock:
                engine = self._engines.get(user_id)
                if engine is None:
                    engine = await load_ledger(identity, self.store, self.cache, self.rules, self._now)
                    self._engines[user_id] = engine
                    self._refreshed_at[user_id] = self._clock()
                    await self._evict()
                    return engine
        self._engines.move_to_end(user_id)
        if refresh or self._clock() - self._refreshed_at[user_id] >= self.refresh_interval:
            await self.refresh(user_id)
        return engine

    async def refresh(self, user_id: str) -> int:
        """Merge the store's copy into the open ledger. Returns the number of changes picked up."""
        engine = self._engines.get(user_id)
        if engine is None:
            return 0
        try:
            transactions = await self.store.list_transactions(user_id)
            milestones = await self.store.list_milestones(user_id)
        except PersistenceError as e:
            log.warning("ledger_refresh_failed", user_id=user_id, reason=e.message)
            return 0
        self._refreshed_at[user_id] = self._clock()
        changed = engine.merge(transactions, milestones)
        if changed:
            log.info("ledger_refreshed", user_id=user_id, changes=changed)
            await self.cache.set(user_id, engine.snapshot())
        return changed

    async def _evict(self) -> None:
        for user_id in list(self._engines)[:-1]:
            if len(self._engines) <= self.max_open:
                return
            engine = self._engines[user_id]
            if len(engine.sync) and await engine.flush():
                continue
            self.close(user_id)
            log.info("ledger_evicted", user_id=user_id)

    def close(self, user_id: str) -> None:
        self._engines.pop(user_id, None)
        self._refreshed_at.pop(user_id, None)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._engines

    def __len__(self) -> int:
        return len(self._engines)
