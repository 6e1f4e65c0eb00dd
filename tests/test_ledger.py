"""Ledger engine: credit line, escrow, milestones, monthly bonus."""

import pytest

from eisc.core.exceptions import BadRequestError, InsufficientFundsError, NotFoundError
from eisc.models.ledger import TransactionCategory, TransactionStatus, TransactionType
from eisc.services.ledger import LedgerEngine, LedgerRules

pytestmark = pytest.mark.asyncio


async def test_purchase_scenario(ledger, store):
    first = await ledger.purchase(8, "Logo", "Ana")
    balance = ledger.balance
    assert balance.available == -8
    assert balance.in_escrow == 8

    with pytest.raises(InsufficientFundsError) as exc:
        await ledger.purchase(5, "Consulting", "Roberto")
    assert exc.value.status_code == 402
    assert exc.value.details["available"] == -8
    assert len(ledger.transactions) == 1

    await ledger.release_escrow(first)
    balance = ledger.balance
    assert balance.available == -8
    assert balance.in_escrow == 0
    assert balance.total_spent == 8

    stored = await store.list_transactions("user-1")
    assert [(t.id, t.status) for t in stored] == [(first, TransactionStatus.COMPLETED)]


async def test_purchase_records_escrowed_debit(ledger):
    tx_id = await ledger.purchase(3, "Code review", "María", service_id="svc-003")
    tx = ledger.get_transaction(tx_id)
    assert tx.type == TransactionType.DEBIT
    assert tx.status == TransactionStatus.ESCROW
    assert tx.category == TransactionCategory.SERVICE_PURCHASE
    assert tx.counterparty == "María"
    assert tx.service_id == "svc-003"


async def test_purchase_rejects_non_positive_amount(ledger):
    with pytest.raises(BadRequestError):
        await ledger.purchase(0, "Nothing", "Nobody")
    assert ledger.transactions == []


async def test_credit_line_holds_after_every_purchase(ledger):
    for _ in range(10):
        if ledger.can_afford(3):
            await ledger.purchase(3, "Small job", "Someone")
        assert ledger.balance.available >= ledger.rules.min_credit_line
    assert ledger.balance.available == -9
    assert not ledger.can_afford(3)


async def test_release_escrow_conserves_available(ledger):
    await ledger.receive_payment(6, "Sale", "Buyer")
    tx_id = await ledger.purchase(4, "Logo", "Ana")
    before = ledger.balance
    await ledger.release_escrow(tx_id)
    after = ledger.balance
    assert after.available == before.available
    assert after.in_escrow == before.in_escrow - 4
    assert after.total_spent == before.total_spent + 4


async def test_release_escrow_twice_is_noop(ledger, store):
    tx_id = await ledger.purchase(2, "Logo", "Ana")
    await ledger.release_escrow(tx_id)
    balance = ledger.balance
    tx = await ledger.release_escrow(tx_id)
    assert tx.status == TransactionStatus.COMPLETED
    assert ledger.balance == balance


async def test_release_escrow_unknown_transaction(ledger):
    with pytest.raises(NotFoundError):
        await ledger.release_escrow("tx-missing")


async def test_receive_payment_ignores_credit_line(ledger):
    await ledger.purchase(10, "Big job", "Ana")
    assert ledger.balance.available == -10
    await ledger.receive_payment(3, "Sale", "Buyer")
    assert ledger.balance.available > -10


async def test_first_payment_completes_first_sale_milestone(ledger):
    await ledger.receive_payment(5, "Legal consulting", "Roberto", service_id="svc-002")
    assert ledger.milestones["first_sale"].completed
    milestone_txs = [t for t in ledger.transactions if t.category == TransactionCategory.MILESTONE]
    assert len(milestone_txs) == 1
    assert milestone_txs[0].amount == ledger.milestones["first_sale"].credits

    await ledger.receive_payment(5, "Another", "Roberto")
    milestone_txs = [t for t in ledger.transactions if t.category == TransactionCategory.MILESTONE]
    assert len(milestone_txs) == 1
    assert ledger.balance.total_earned == 10 + ledger.milestones["first_sale"].credits


async def test_complete_registration_milestone(ledger):
    assert ledger.milestones["registration"].credits == 1
    assert not ledger.milestones["registration"].completed
    before = ledger.balance.available

    tx_id = await ledger.complete_milestone("registration")

    assert ledger.milestones["registration"].completed
    tx = ledger.get_transaction(tx_id)
    assert tx_id == "tx-reg-user-1"
    assert tx.type == TransactionType.CREDIT
    assert tx.amount == 1
    assert tx.category == TransactionCategory.MILESTONE
    assert tx.status == TransactionStatus.COMPLETED
    assert ledger.balance.available == before + 1


async def test_complete_milestone_is_idempotent(ledger, store):
    first = await ledger.complete_milestone("portfolio")
    second = await ledger.complete_milestone("portfolio")
    assert first is not None
    assert second is None
    assert len(ledger.transactions) == 1
    assert await store.list_milestones("user-1") == {"portfolio": ledger.milestones["portfolio"].completed_at}


async def test_complete_unknown_milestone(ledger):
    with pytest.raises(NotFoundError):
        await ledger.complete_milestone("astronaut")


async def test_monthly_bonus_window(ledger, clock):
    first = await ledger.check_monthly_bonus()
    assert first is not None
    assert ledger.get_transaction(first).category == TransactionCategory.MONTHLY_BONUS

    clock.advance(days=29, hours=23)
    assert await ledger.check_monthly_bonus() is None

    clock.advance(hours=1)
    second = await ledger.check_monthly_bonus()
    assert second is not None and second != first

    bonuses = [t for t in ledger.transactions if t.category == TransactionCategory.MONTHLY_BONUS]
    assert len(bonuses) == 2


async def test_monthly_bonus_repeated_checks_award_once(ledger, clock):
    results = [await ledger.check_monthly_bonus(clock.now) for _ in range(5)]
    assert sum(r is not None for r in results) == 1
    assert ledger.balance.total_earned == ledger.rules.monthly_bonus_credits


async def test_monthly_bonus_uses_configured_amount(store, clock):
    ledger = LedgerEngine("user-2", store, rules=LedgerRules(monthly_bonus_credits=7), now=clock)
    await ledger.check_monthly_bonus()
    assert ledger.balance.available == 7


async def test_transactions_newest_first(ledger, clock):
    a = await ledger.receive_payment(1, "a", "x")
    clock.advance(minutes=1)
    b = await ledger.purchase(1, "b", "y")
    ids = [t.id for t in ledger.transactions]
    assert ids.index(b) < ids.index(a)


async def test_mutations_mirror_to_cache(ledger, cache):
    tx_id = await ledger.purchase(2, "Logo", "Ana")
    snapshot = await cache.get("user-1")
    assert [t.id for t in snapshot.transactions] == [tx_id]
