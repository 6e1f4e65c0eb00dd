"""In-process account store. Used for the demo mode and as an isolated store in tests."""

from datetime import datetime, timezone

from eisc.core.exceptions import NotFoundError
from eisc.models.ledger import (
    SYSTEM_COUNTERPARTY,
    Transaction,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
)
from eisc.storage.base import AccountStore

DEMO_USER_ID = "demo-user-001"


def _d(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


DEMO_TRANSACTIONS = [
    Transaction(
        id="tx-001",
        type=TransactionType.CREDIT,
        amount=1,
        description="Bono de registro",
        category=TransactionCategory.MILESTONE,
        status=TransactionStatus.COMPLETED,
        date=_d(2026, 2, 1, 10, 0),
        counterparty=SYSTEM_COUNTERPARTY,
    ),
    Transaction(
        id="tx-002",
        type=TransactionType.CREDIT,
        amount=2,
        description="Portafolio verificado",
        category=TransactionCategory.MILESTONE,
        status=TransactionStatus.COMPLETED,
        date=_d(2026, 2, 3, 14, 30),
        counterparty=SYSTEM_COUNTERPARTY,
    ),
    Transaction(
        id="tx-003",
        type=TransactionType.CREDIT,
        amount=2,
        description="Identidad verificada",
        category=TransactionCategory.MILESTONE,
        status=TransactionStatus.COMPLETED,
        date=_d(2026, 2, 5, 9, 15),
        counterparty=SYSTEM_COUNTERPARTY,
    ),
    Transaction(
        id="tx-004",
        type=TransactionType.DEBIT,
        amount=8,
        description="Diseño de Logo Profesional",
        category=TransactionCategory.SERVICE_PURCHASE,
        status=TransactionStatus.ESCROW,
        date=_d(2026, 2, 10, 16, 0),
        counterparty="Ana García",
        service_id="svc-001",
    ),
    Transaction(
        id="tx-005",
        type=TransactionType.CREDIT,
        amount=5,
        description="Consultoría Legal",
        category=TransactionCategory.SERVICE_COMPLETED,
        status=TransactionStatus.COMPLETED,
        date=_d(2026, 2, 11, 11, 0),
        counterparty="Roberto Silva",
        service_id="svc-002",
    ),
    Transaction(
        id="tx-006",
        type=TransactionType.DEBIT,
        amount=3,
        description="Revisión de Código React",
        category=TransactionCategory.SERVICE_PURCHASE,
        status=TransactionStatus.COMPLETED,
        date=_d(2026, 2, 12, 8, 0),
        counterparty="María López",
        service_id="svc-003",
    ),
]

# first_sale stays open: tx-005 predates the milestone, so it is never awarded for the demo account
DEMO_MILESTONES = {
    "registration": _d(2026, 2, 1, 10, 0),
    "portfolio": _d(2026, 2, 3, 14, 30),
    "identity": _d(2026, 2, 5, 9, 15),
}


class InMemoryAccountStore(AccountStore):
    def __init__(self, seed_demo: bool = False) -> None:
        self._transactions: dict[str, dict[str, Transaction]] = {}
        self._milestones: dict[str, dict[str, datetime | None]] = {}
        self._owners: dict[str, str] = {}  # tx_id -> user_id
        if seed_demo:
            self.seed(DEMO_USER_ID, DEMO_TRANSACTIONS, DEMO_MILESTONES)

    def seed(
        self,
        user_id: str,
        transactions: list[Transaction],
        milestones: dict[str, datetime | None] | None = None,
    ) -> None:
        for tx in transactions:
            self._transactions.setdefault(user_id, {})[tx.id] = tx
            self._owners[tx.id] = user_id
        self._milestones.setdefault(user_id, {}).update(milestones or {})

    async def insert_transaction(self, user_id: str, tx: Transaction) -> bool:
        if tx.id in self._owners:
            return False
        self._transactions.setdefault(user_id, {})[tx.id] = tx
        self._owners[tx.id] = user_id
        return True

    async def update_transaction_status(self, user_id: str, tx_id: str, status: TransactionStatus) -> None:
        txs = self._transactions.get(user_id, {})
        if tx_id not in txs:
            raise NotFoundError(f"Transaction {tx_id} not found")
        txs[tx_id] = txs[tx_id].model_copy(update={"status": status})

    async def list_transactions(self, user_id: str) -> list[Transaction]:
        txs = self._transactions.get(user_id, {}).values()
        return sorted(txs, key=lambda t: t.date, reverse=True)

    async def upsert_milestone(
        self,
        user_id: str,
        key: str,
        completed: bool,
        completed_at: datetime | None,
    ) -> None:
        user_milestones = self._milestones.setdefault(user_id, {})
        if completed:
            user_milestones[key] = completed_at
        else:
            user_milestones.pop(key, None)

    async def list_milestones(self, user_id: str) -> dict[str, datetime | None]:
        return dict(self._milestones.get(user_id, {}))

    async def list_user_ids(self) -> list[str]:
        return [uid for uid, txs in self._transactions.items() if txs]
