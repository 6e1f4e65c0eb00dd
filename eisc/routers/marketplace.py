from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from eisc.deps import get_current_identity, get_ledger, get_marketplace
from eisc.models.identity import Identity
from eisc.models.marketplace import CATEGORIES
from eisc.services.ledger import LedgerEngine
from eisc.services.marketplace import Marketplace

router = APIRouter()


class PublishServiceRequest(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    price: int = Field(gt=0)
    category: str
    delivery_days: int = Field(default=3, gt=0)
    tags: list[str] = Field(default_factory=list)


class DisputeRequest(BaseModel):
    reason: str = Field(min_length=1)
    description: str = ""


@router.get("/categories")
async def marketplace_categories():
    return {"categories": [{"id": k, "label": v} for k, v in CATEGORIES.items()]}


@router.get("/services")
async def services_list(category: str | None = None, market: Marketplace = Depends(get_marketplace)):
    return {"services": [s.model_dump(mode="json") for s in market.list_services(category)]}


@router.post("/services")
async def service_publish(
    body: PublishServiceRequest,
    identity: Identity = Depends(get_current_identity),
    market: Marketplace = Depends(get_marketplace),
):
    svc = market.publish_service(
        identity,
        body.title,
        body.price,
        body.category,
        description=body.description,
        delivery_days=body.delivery_days,
        tags=body.tags,
    )
    return svc.model_dump(mode="json")


@router.post("/services/{service_id}/buy")
async def service_buy(
    service_id: str,
    identity: Identity = Depends(get_current_identity),
    ledger: LedgerEngine = Depends(get_ledger),
    market: Marketplace = Depends(get_marketplace),
):
    """Escrow the price and open a contract (402 past the credit line)."""
    contract = await market.buy_service(identity, ledger, service_id)
    return {"contract": contract.model_dump(mode="json"), "balance": ledger.balance.model_dump(mode="json")}


@router.get("/contracts")
async def contracts_list(
    identity: Identity = Depends(get_current_identity),
    market: Marketplace = Depends(get_marketplace),
):
    return {"contracts": [c.model_dump(mode="json") for c in market.list_contracts(identity.user_id)]}


@router.post("/contracts/{contract_id}/confirm")
async def contract_confirm(
    contract_id: str,
    identity: Identity = Depends(get_current_identity),
    ledger: LedgerEngine = Depends(get_ledger),
    market: Marketplace = Depends(get_marketplace),
):
    """Confirm delivery: completes the contract and releases its escrow."""
    contract = await market.confirm_delivery(identity, ledger, contract_id)
    return {"contract": contract.model_dump(mode="json"), "balance": ledger.balance.model_dump(mode="json")}


@router.post("/contracts/{contract_id}/disputes")
async def contract_dispute(
    contract_id: str,
    body: DisputeRequest,
    identity: Identity = Depends(get_current_identity),
    market: Marketplace = Depends(get_marketplace),
):
    dispute = market.open_dispute(identity, contract_id, body.reason, body.description)
    return dispute.model_dump(mode="json")


@router.get("/disputes")
async def disputes_list(
    identity: Identity = Depends(get_current_identity),
    market: Marketplace = Depends(get_marketplace),
):
    return {"disputes": [d.model_dump(mode="json") for d in market.list_disputes(identity.user_id)]}
