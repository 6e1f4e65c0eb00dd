from datetime import datetime

from beanie import Document
from pymongo import ASCENDING, IndexModel


class MilestoneRecord(Document):
    """Completion flag per user and milestone key. Definitions live in MILESTONE_CATALOG."""
    user_id: str
    key: str
    completed: bool = False
    completed_at: datetime | None = None

    class Settings:
        name = "milestones"
        indexes = [
            IndexModel([("user_id", ASCENDING), ("key", ASCENDING)], unique=True),
        ]
