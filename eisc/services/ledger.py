"""Credit ledger for one user: derived balances, credit line, escrow, milestones, monthly bonus.

Balances are never stored. They are folded from the transaction log on every
read. Every mutation changes local state first, with no await between the
balance check and the append, then writes through to the account store via
RetryQueue. A failed store write never undoes the local change.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable

from eisc.core.config import Settings
from eisc.core.exceptions import BadRequestError, InsufficientFundsError, NotFoundError
from eisc.core.logging import get_logger
from eisc.models.ledger import (
    SYSTEM_COUNTERPARTY,
    Balance,
    Milestone,
    Transaction,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
    default_milestones,
    utcnow,
)
from eisc.services.sync import RetryQueue
from eisc.storage.base import AccountStore
from eisc.storage.cache import LedgerCache, LedgerSnapshot, NullLedgerCache

log = get_logger(__name__)

MIN_CREDIT_LINE = -10
CREDIT_VALUE_USD = 10
MONTHLY_BONUS_CREDITS = 2
MONTHLY_BONUS_INTERVAL = timedelta(days=30)

FIRST_SALE_MILESTONE = "first_sale"
REGISTRATION_MILESTONE = "registration"


def compute_balance(
    transactions: Iterable[Transaction],
    min_credit_line: int = MIN_CREDIT_LINE,
    credit_value_usd: int = CREDIT_VALUE_USD,
) -> Balance:
    """Fold the log into a Balance. Pure; order of transactions does not matter."""
    total_earned = 0
    total_spent = 0
    in_escrow = 0
    for tx in transactions:
        if tx.type == TransactionType.CREDIT and tx.status == TransactionStatus.COMPLETED:
            total_earned += tx.amount
        elif tx.type == TransactionType.DEBIT and tx.status == TransactionStatus.COMPLETED:
            total_spent += tx.amount
        elif tx.type == TransactionType.DEBIT and tx.status == TransactionStatus.ESCROW:
            in_escrow += tx.amount

    available = total_earned - total_spent - in_escrow
    max_credit_line = abs(min_credit_line)
    debt_amount = max(0, -available)
    utilization = 0.0
    if available < 0 and max_credit_line:
        utilization = abs(available) / max_credit_line * 100

    return Balance(
        available=available,
        in_escrow=in_escrow,
        total_earned=total_earned,
        total_spent=total_spent,
        can_spend=available - min_credit_line,
        credit_line_utilization=utilization,
        debt_amount=debt_amount,
        credit_line=min_credit_line,
        max_credit_line=max_credit_line,
        credit_line_remaining=max_credit_line - debt_amount,
        is_using_credit_line=available < 0,
        available_usd=available * credit_value_usd,
        in_escrow_usd=in_escrow * credit_value_usd,
    )


def can_afford(balance: Balance, amount: int, min_credit_line: int = MIN_CREDIT_LINE) -> bool:
    return (balance.available - amount) >= min_credit_line


@dataclass(frozen=True)
class LedgerRules:
    min_credit_line: int = MIN_CREDIT_LINE
    credit_value_usd: int = CREDIT_VALUE_USD
    monthly_bonus_credits: int = MONTHLY_BONUS_CREDITS
    monthly_bonus_interval: timedelta = MONTHLY_BONUS_INTERVAL
    sync_max_attempts: int = 5

    @classmethod
    def from_settings(cls, settings: Settings) -> "LedgerRules":
        return cls(
            min_credit_line=settings.min_credit_line,
            credit_value_usd=settings.credit_value_usd,
            monthly_bonus_credits=settings.monthly_bonus_credits,
            monthly_bonus_interval=timedelta(days=settings.monthly_bonus_interval_days),
            sync_max_attempts=settings.sync_max_attempts,
        )


def milestone_tx_id(user_id: str, key: str) -> str:
    if key == REGISTRATION_MILESTONE:
        return f"tx-reg-{user_id}"
    return f"tx-ms-{user_id}-{key}"


def bonus_tx_id(user_id: str, ordinal: int) -> str:
    return f"tx-bonus-{user_id}-{ordinal}"


class LedgerEngine:
    """Single-writer ledger for one user's session."""

    def __init__(
        self,
        user_id: str,
        store: AccountStore,
        *,
        transactions: Iterable[Transaction] = (),
        completed_milestones: dict[str, datetime | None] | None = None,
        cache: LedgerCache | None = None,
        rules: LedgerRules | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.user_id = user_id
        self.rules = rules or LedgerRules()
        self.cache = cache or NullLedgerCache()
        self.sync = RetryQueue(store, max_attempts=self.rules.sync_max_attempts)
        self._now = now or utcnow
        self._transactions: dict[str, Transaction] = {tx.id: tx for tx in transactions}
        self._milestones = default_milestones()
        for key, completed_at in (completed_milestones or {}).items():
            if key in self._milestones:
                self._milestones[key] = self._milestones[key].model_copy(
                    update={"completed": True, "completed_at": completed_at}
                )

    # -- reads --

    @property
    def transactions(self) -> list[Transaction]:
        """Newest first."""
        return sorted(self._transactions.values(), key=lambda t: t.date, reverse=True)

    @property
    def milestones(self) -> dict[str, Milestone]:
        return dict(self._milestones)

    @property
    def balance(self) -> Balance:
        return compute_balance(
            self._transactions.values(),
            min_credit_line=self.rules.min_credit_line,
            credit_value_usd=self.rules.credit_value_usd,
        )

    def can_afford(self, amount: int) -> bool:
        return can_afford(self.balance, amount, self.rules.min_credit_line)

    def get_transaction(self, transaction_id: str) -> Transaction:
        tx = self._transactions.get(transaction_id)
        if tx is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return tx

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            transactions=self.transactions,
            milestones={k: m.completed_at for k, m in self._milestones.items() if m.completed},
        )

    def merge(
        self,
        transactions: Iterable[Transaction],
        completed_milestones: dict[str, datetime | None] | None = None,
    ) -> int:
        """
        Fold records read back from the store into the local log.
        Unknown ids are added, escrow that the store shows completed is completed,
        and completed milestones are marked. Nothing local is removed or reverted.
        Returns the number of changes.
        """
        changed = 0
        for tx in transactions:
            local = self._transactions.get(tx.id)
            if local is None:
                self._transactions[tx.id] = tx
                changed += 1
            elif local.status == TransactionStatus.ESCROW and tx.status == TransactionStatus.COMPLETED:
                self._transactions[tx.id] = local.model_copy(update={"status": TransactionStatus.COMPLETED})
                changed += 1
        for key, completed_at in (completed_milestones or {}).items():
            milestone = self._milestones.get(key)
            if milestone is not None and not milestone.completed:
                self._milestones[key] = milestone.model_copy(update={"completed": True, "completed_at": completed_at})
                changed += 1
        return changed

    # -- mutations --

    async def purchase(
        self,
        amount: int,
        description: str,
        counterparty: str,
        service_id: str | None = None,
    ) -> str:
        """Hold amount in escrow for a service. Raises InsufficientFundsError past the credit line."""
        if amount <= 0:
            raise BadRequestError("amount must be positive")
        balance = self.balance
        if not can_afford(balance, amount, self.rules.min_credit_line):
            log.info(
                "ledger_purchase_rejected",
                user_id=self.user_id,
                amount=amount,
                available=balance.available,
                credit_line=self.rules.min_credit_line,
            )
            raise InsufficientFundsError(
                details={
                    "available": balance.available,
                    "amount": amount,
                    "credit_line": self.rules.min_credit_line,
                }
            )
        tx = self._append(
            Transaction(
                id=f"tx-{uuid.uuid4().hex}",
                type=TransactionType.DEBIT,
                amount=amount,
                status=TransactionStatus.ESCROW,
                category=TransactionCategory.SERVICE_PURCHASE,
                description=description,
                counterparty=counterparty,
                service_id=service_id,
                date=self._now(),
            )
        )
        log.info("ledger_purchase", user_id=self.user_id, tx_id=tx.id, amount=amount, service_id=service_id)
        await self._write("insert_transaction", self.user_id, tx)
        return tx.id

    async def release_escrow(self, transaction_id: str) -> Transaction:
        """Finalize an escrowed debit. Calling it again on a completed transaction is a no-op."""
        tx = self.get_transaction(transaction_id)
        if tx.status != TransactionStatus.ESCROW:
            log.info("escrow_release_noop", user_id=self.user_id, tx_id=tx.id, status=tx.status.value)
            return tx
        released = tx.model_copy(update={"status": TransactionStatus.COMPLETED})
        self._transactions[tx.id] = released
        log.info("escrow_released", user_id=self.user_id, tx_id=tx.id, amount=tx.amount)
        await self._write("update_transaction_status", self.user_id, tx.id, TransactionStatus.COMPLETED)
        return released

    async def receive_payment(
        self,
        amount: int,
        description: str,
        payer: str,
        service_id: str | None = None,
    ) -> str:
        """Credit earnings for a delivered service. Never gated by the credit line."""
        if amount <= 0:
            raise BadRequestError("amount must be positive")
        first_sale = not any(
            t.category == TransactionCategory.SERVICE_COMPLETED for t in self._transactions.values()
        )
        tx = self._append(
            Transaction(
                id=f"tx-{uuid.uuid4().hex}",
                type=TransactionType.CREDIT,
                amount=amount,
                status=TransactionStatus.COMPLETED,
                category=TransactionCategory.SERVICE_COMPLETED,
                description=description,
                counterparty=payer,
                service_id=service_id,
                date=self._now(),
            )
        )
        log.info("ledger_payment_received", user_id=self.user_id, tx_id=tx.id, amount=amount)
        await self._write("insert_transaction", self.user_id, tx)
        if first_sale:
            await self.complete_milestone(FIRST_SALE_MILESTONE)
        return tx.id

    async def complete_milestone(self, key: str) -> str | None:
        """Award a milestone once. Returns the credit transaction id, or None if already completed."""
        milestone = self._milestones.get(key)
        if milestone is None:
            raise NotFoundError(f"Milestone {key} not found")
        if milestone.completed:
            return None

        now = self._now()
        self._milestones[key] = milestone.model_copy(update={"completed": True, "completed_at": now})
        tx_id = milestone_tx_id(self.user_id, key)
        tx = self._transactions.get(tx_id)
        if tx is None:
            tx = self._append(
                Transaction(
                    id=tx_id,
                    type=TransactionType.CREDIT,
                    amount=milestone.credits,
                    status=TransactionStatus.COMPLETED,
                    category=TransactionCategory.MILESTONE,
                    description=milestone.label,
                    counterparty=SYSTEM_COUNTERPARTY,
                    date=now,
                )
            )
            await self._write("insert_transaction", self.user_id, tx)
        log.info("milestone_completed", user_id=self.user_id, key=key, credits=milestone.credits)
        await self._write("upsert_milestone", self.user_id, key, True, now)
        return tx.id

    async def check_monthly_bonus(self, now: datetime | None = None) -> str | None:
        """Award the monthly bonus if none was granted within the interval. Returns the new id or None."""
        now = now or self._now()
        bonuses = [t for t in self._transactions.values() if t.category == TransactionCategory.MONTHLY_BONUS]
        if bonuses:
            last = max(t.date for t in bonuses)
            if now - last < self.rules.monthly_bonus_interval:
                return None
        tx_id = bonus_tx_id(self.user_id, len(bonuses) + 1)
        if tx_id in self._transactions:
            return None
        tx = self._append(
            Transaction(
                id=tx_id,
                type=TransactionType.CREDIT,
                amount=self.rules.monthly_bonus_credits,
                status=TransactionStatus.COMPLETED,
                category=TransactionCategory.MONTHLY_BONUS,
                description="Bono mensual",
                counterparty=SYSTEM_COUNTERPARTY,
                date=now,
            )
        )
        log.info("monthly_bonus_awarded", user_id=self.user_id, tx_id=tx.id, amount=tx.amount)
        await self._write("insert_transaction", self.user_id, tx)
        return tx.id

    async def flush(self) -> int:
        """Retry queued store writes. Returns how many are still pending."""
        remaining = await self.sync.flush()
        await self.cache.set(self.user_id, self.snapshot())
        return remaining

    # -- internals --

    def _append(self, tx: Transaction) -> Transaction:
        self._transactions[tx.id] = tx
        return tx

    async def _write(self, op: str, *args) -> None:
        await self.sync.submit(op, *args)
        await self.cache.set(self.user_id, self.snapshot())
