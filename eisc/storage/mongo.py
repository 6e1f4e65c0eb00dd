"""MongoDB account store on Beanie documents. Requires init_db() before first use."""

from datetime import datetime

from pymongo.errors import DuplicateKeyError, PyMongoError

from eisc.core.exceptions import NotFoundError, PersistenceError
from eisc.models.ledger import Transaction, TransactionStatus
from eisc.models.ledger_transaction import LedgerTransaction
from eisc.models.milestone_record import MilestoneRecord
from eisc.storage.base import AccountStore


class MongoAccountStore(AccountStore):
    async def insert_transaction(self, user_id: str, tx: Transaction) -> bool:
        try:
            await LedgerTransaction.from_transaction(user_id, tx).insert()
        except DuplicateKeyError:
            return False
        except PyMongoError as e:
            raise PersistenceError(f"insert_transaction failed: {e}", details={"tx_id": tx.id}) from e
        return True

    async def update_transaction_status(self, user_id: str, tx_id: str, status: TransactionStatus) -> None:
        try:
            doc = await LedgerTransaction.find_one(
                LedgerTransaction.user_id == user_id,
                LedgerTransaction.tx_id == tx_id,
            )
            if not doc:
                raise NotFoundError(f"Transaction {tx_id} not found")
            doc.status = status
            await doc.save()
        except PyMongoError as e:
            raise PersistenceError(f"update_transaction_status failed: {e}", details={"tx_id": tx_id}) from e

    async def list_transactions(self, user_id: str) -> list[Transaction]:
        try:
            docs = (
                await LedgerTransaction.find(LedgerTransaction.user_id == user_id)
                .sort(-LedgerTransaction.date)
                .to_list()
            )
        except PyMongoError as e:
            raise PersistenceError(f"list_transactions failed: {e}") from e
        return [d.to_transaction() for d in docs]

    async def upsert_milestone(
        self,
        user_id: str,
        key: str,
        completed: bool,
        completed_at: datetime | None,
    ) -> None:
        try:
            record = await MilestoneRecord.find_one(
                MilestoneRecord.user_id == user_id,
                MilestoneRecord.key == key,
            )
            if not record:
                record = MilestoneRecord(user_id=user_id, key=key)
            record.completed = completed
            record.completed_at = completed_at
            await record.save()
        except PyMongoError as e:
            raise PersistenceError(f"upsert_milestone failed: {e}", details={"key": key}) from e

    async def list_milestones(self, user_id: str) -> dict[str, datetime | None]:
        try:
            records = await MilestoneRecord.find(
                MilestoneRecord.user_id == user_id,
                MilestoneRecord.completed == True,  # noqa: E712
            ).to_list()
        except PyMongoError as e:
            raise PersistenceError(f"list_milestones failed: {e}") from e
        return {r.key: r.completed_at for r in records}

    async def list_user_ids(self) -> list[str]:
        try:
            return await LedgerTransaction.distinct("user_id")
        except PyMongoError as e:
            raise PersistenceError(f"list_user_ids failed: {e}") from e
