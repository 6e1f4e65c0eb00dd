from abc import ABC, abstractmethod
from datetime import datetime
from functools import lru_cache

from eisc.core.config import get_settings
from eisc.models.ledger import Transaction, TransactionStatus


class AccountStore(ABC):
    """Durable per-user ledger storage. Every call is scoped by user_id.

    Implementations raise PersistenceError for any backend failure.
    """

    @abstractmethod
    async def insert_transaction(self, user_id: str, tx: Transaction) -> bool:
        """Append one transaction; return False if its id is already stored."""
        ...

    @abstractmethod
    async def update_transaction_status(self, user_id: str, tx_id: str, status: TransactionStatus) -> None:
        ...

    @abstractmethod
    async def list_transactions(self, user_id: str) -> list[Transaction]:
        """All transactions for user, newest first."""
        ...

    @abstractmethod
    async def upsert_milestone(
        self,
        user_id: str,
        key: str,
        completed: bool,
        completed_at: datetime | None,
    ) -> None:
        ...

    @abstractmethod
    async def list_milestones(self, user_id: str) -> dict[str, datetime | None]:
        """Completed milestone keys for user mapped to their completion time."""
        ...

    @abstractmethod
    async def list_user_ids(self) -> list[str]:
        """Every user that has at least one transaction."""
        ...


@lru_cache
def get_account_store() -> AccountStore:
    settings = get_settings()
    if settings.store_backend == "mongo":
        from eisc.storage.mongo import MongoAccountStore
        return MongoAccountStore()
    from eisc.storage.memory import InMemoryAccountStore
    return InMemoryAccountStore(seed_demo=settings.seed_demo_data)
