"""Ledger domain types: transactions, milestones, derived balance."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

SYSTEM_COUNTERPARTY = "Sistema EISC"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class TransactionStatus(str, Enum):
    PENDING = "pending"  # reserved, no code path produces it
    ESCROW = "escrow"
    COMPLETED = "completed"


class TransactionCategory(str, Enum):
    MILESTONE = "milestone"
    SERVICE_PURCHASE = "service_purchase"
    SERVICE_COMPLETED = "service_completed"
    MONTHLY_BONUS = "monthly_bonus"


class Transaction(BaseModel):
    """One ledger entry. Frozen: status changes produce a new copy."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: TransactionType
    amount: int = Field(gt=0)
    status: TransactionStatus
    category: TransactionCategory
    description: str = ""
    counterparty: str = ""
    service_id: str | None = None
    date: datetime = Field(default_factory=utcnow)


class Milestone(BaseModel):
    key: str
    label: str
    credits: int = Field(gt=0)
    completed: bool = False
    completed_at: datetime | None = None


# key -> (label, credits)
MILESTONE_CATALOG: dict[str, tuple[str, int]] = {
    "registration": ("Registro completado", 1),
    "portfolio": ("Portafolio subido", 2),
    "identity": ("Identidad verificada", 2),
    "first_sale": ("Primera venta", 2),
}


def default_milestones() -> dict[str, Milestone]:
    """Fresh, uncompleted milestone map for a new account."""
    return {
        key: Milestone(key=key, label=label, credits=credits)
        for key, (label, credits) in MILESTONE_CATALOG.items()
    }


class Balance(BaseModel):
    available: int = 0
    in_escrow: int = 0
    total_earned: int = 0
    total_spent: int = 0
    can_spend: int = 0
    credit_line_utilization: float = 0.0
    debt_amount: int = 0
    credit_line: int = 0
    max_credit_line: int = 0
    credit_line_remaining: int = 0
    is_using_credit_line: bool = False
    available_usd: int = 0
    in_escrow_usd: int = 0
