from eisc.models.ledger_transaction import LedgerTransaction
from eisc.models.milestone_record import MilestoneRecord

__all__ = [
    "LedgerTransaction",
    "MilestoneRecord",
]
