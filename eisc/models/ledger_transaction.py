from datetime import datetime

from beanie import Document, Indexed

from eisc.models.ledger import (
    Transaction,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
)


class LedgerTransaction(Document):
    """Stored ledger entry; tx_id is the ledger's own id, unique across users."""
    tx_id: Indexed(str, unique=True)
    user_id: str
    type: TransactionType
    amount: int
    status: TransactionStatus
    category: TransactionCategory
    description: str = ""
    counterparty: str = ""
    service_id: str | None = None
    date: datetime

    class Settings:
        name = "ledger_transactions"
        indexes = [
            [("user_id", 1), ("date", -1)],
            [("user_id", 1), ("category", 1)],
        ]

    @classmethod
    def from_transaction(cls, user_id: str, tx: Transaction) -> "LedgerTransaction":
        return cls(
            tx_id=tx.id,
            user_id=user_id,
            type=tx.type,
            amount=tx.amount,
            status=tx.status,
            category=tx.category,
            description=tx.description,
            counterparty=tx.counterparty,
            service_id=tx.service_id,
            date=tx.date,
        )

    def to_transaction(self) -> Transaction:
        return Transaction(
            id=self.tx_id,
            type=self.type,
            amount=self.amount,
            status=self.status,
            category=self.category,
            description=self.description,
            counterparty=self.counterparty,
            service_id=self.service_id,
            date=self.date,
        )
