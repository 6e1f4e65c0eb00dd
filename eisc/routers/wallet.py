from fastapi import APIRouter, Depends, Query
from pydantic import AwareDatetime, BaseModel, Field

from eisc.core.pagination import paginate
from eisc.deps import get_ledger
from eisc.models.ledger import TransactionStatus, TransactionType
from eisc.services.ledger import LedgerEngine

router = APIRouter()


class PurchaseRequest(BaseModel):
    amount: int = Field(gt=0)
    description: str
    counterparty: str
    service_id: str | None = None


class PaymentRequest(BaseModel):
    amount: int = Field(gt=0)
    description: str
    payer: str
    service_id: str | None = None


class BonusCheckRequest(BaseModel):
    now: AwareDatetime | None = None


def _balance_body(ledger: LedgerEngine) -> dict:
    return {"balance": ledger.balance.model_dump(mode="json")}


@router.get("/balance")
async def wallet_balance(ledger: LedgerEngine = Depends(get_ledger)):
    """Balance derived from the full transaction log."""
    return _balance_body(ledger)


@router.get("/transactions")
async def wallet_transactions(
    ledger: LedgerEngine = Depends(get_ledger),
    type: TransactionType | None = None,
    status: TransactionStatus | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Transactions for current user (newest first)."""
    limit, offset = paginate(limit, offset)
    items = [
        t for t in ledger.transactions
        if (type is None or t.type == type) and (status is None or t.status == status)
    ]
    return {
        "items": [t.model_dump(mode="json") for t in items[offset:offset + limit]],
        "limit": limit,
        "offset": offset,
        "total": len(items),
    }


@router.get("/milestones")
async def wallet_milestones(ledger: LedgerEngine = Depends(get_ledger)):
    return {"milestones": {k: m.model_dump(mode="json") for k, m in ledger.milestones.items()}}


@router.post("/purchases")
async def wallet_purchase(body: PurchaseRequest, ledger: LedgerEngine = Depends(get_ledger)):
    """Escrow credits for a purchase; 402 when the credit line would be exceeded."""
    tx_id = await ledger.purchase(body.amount, body.description, body.counterparty, service_id=body.service_id)
    return {"transaction_id": tx_id, **_balance_body(ledger)}


@router.post("/escrow/{tx_id}/release")
async def wallet_release_escrow(tx_id: str, ledger: LedgerEngine = Depends(get_ledger)):
    tx = await ledger.release_escrow(tx_id)
    return {"transaction": tx.model_dump(mode="json"), **_balance_body(ledger)}


@router.post("/payments")
async def wallet_receive_payment(body: PaymentRequest, ledger: LedgerEngine = Depends(get_ledger)):
    tx_id = await ledger.receive_payment(body.amount, body.description, body.payer, service_id=body.service_id)
    return {"transaction_id": tx_id, **_balance_body(ledger)}


@router.post("/milestones/{key}/complete")
async def wallet_complete_milestone(key: str, ledger: LedgerEngine = Depends(get_ledger)):
    """Award a milestone once; repeated calls return transaction_id null."""
    tx_id = await ledger.complete_milestone(key)
    return {"transaction_id": tx_id, "milestone": ledger.milestones[key].model_dump(mode="json")}


@router.post("/bonus/check")
async def wallet_check_bonus(
    body: BonusCheckRequest | None = None,
    ledger: LedgerEngine = Depends(get_ledger),
):
    tx_id = await ledger.check_monthly_bonus(body.now if body else None)
    return {"awarded": tx_id is not None, "transaction_id": tx_id}


@router.post("/sync")
async def wallet_sync(ledger: LedgerEngine = Depends(get_ledger)):
    """Retry store writes that failed earlier."""
    remaining = await ledger.flush()
    return {"pending": remaining}
