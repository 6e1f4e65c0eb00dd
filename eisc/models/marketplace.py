from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from eisc.models.ledger import utcnow


class Provider(BaseModel):
    id: str
    name: str
    rating: float = 0.0
    completed_jobs: int = 0


class ServiceListing(BaseModel):
    id: str
    title: str
    description: str = ""
    price: int = Field(gt=0)  # credits
    category: str
    provider: Provider
    tags: list[str] = Field(default_factory=list)
    delivery_days: int = Field(default=3, gt=0)
    status: str = "active"


class ContractStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DISPUTED = "disputed"


class Contract(BaseModel):
    id: str
    service_id: str
    service_title: str
    buyer_id: str
    provider: Provider
    amount: int
    status: ContractStatus = ContractStatus.IN_PROGRESS
    transaction_id: str
    start_date: datetime = Field(default_factory=utcnow)
    expected_delivery: datetime


class Dispute(BaseModel):
    id: str
    contract_id: str
    service_title: str
    provider: Provider
    amount: int
    reason: str
    description: str = ""
    status: str = "open"
    date: datetime = Field(default_factory=utcnow)


CATEGORIES = {
    "software": "Software & Tech",
    "design": "Diseño",
    "legal": "Legal",
    "marketing": "Marketing",
    "finance": "Finanzas",
    "consulting": "Consultoría",
    "writing": "Redacción",
    "education": "Educación",
}
