import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from eisc.core.config import get_settings
from eisc.models.ledger_transaction import LedgerTransaction
from eisc.models.milestone_record import MilestoneRecord

DOCUMENT_MODELS = [
    LedgerTransaction,
    MilestoneRecord,
]


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


async def init_db() -> None:
    settings = get_settings()
    # tz_aware so stored dates compare against timezone-aware ledger dates
    kwargs = {"tz_aware": True}
    if _use_tls(settings.mongodb_uri):
        kwargs["tlsCAFile"] = certifi.where()
    client = AsyncIOMotorClient(settings.mongodb_uri, **kwargs)
    database = client[settings.mongodb_db_name]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
