"""ARQ job definitions."""

from datetime import timedelta
from typing import Any

from arq.connections import RedisSettings

from eisc.core.config import get_settings
from eisc.core.logging import get_logger
from eisc.models.identity import Identity
from eisc.services.ledger import LedgerRules
from eisc.services.sessions import LedgerSessions

log = get_logger(__name__)


async def run_monthly_bonuses(sessions: LedgerSessions, now=None) -> dict[str, int]:
    """
    Award bonuses that are due, through the open ledgers of `sessions`.
    Each ledger is re-read from the store first, so a session that stays open
    in the same process sees the award and nothing writes behind its back.
    """
    awarded = 0
    pending = 0
    user_ids = await sessions.store.list_user_ids()
    for user_id in user_ids:
        ledger = await sessions.open(Identity(user_id=user_id, display_name=user_id), refresh=True)
        if await ledger.check_monthly_bonus(now):
            awarded += 1
        pending += await ledger.flush()
    log.info("monthly_bonuses_done", users=len(user_ids), awarded=awarded, pending=pending, open=len(sessions))
    return {"users": len(user_ids), "awarded": awarded, "pending": pending}


async def award_monthly_bonuses(ctx: dict[str, Any]) -> dict[str, int]:
    """Cron job: monthly bonus sweep over all accounts."""
    log.info("job_start", job="award_monthly_bonuses", job_id=ctx.get("job_id"))
    try:
        return await run_monthly_bonuses(ctx["sessions"])
    except Exception as e:
        log.exception("job_failed", job="award_monthly_bonuses", job_id=ctx.get("job_id"), reason=str(e))
        raise


async def startup(ctx: dict) -> None:
    from eisc.storage.base import get_account_store
    from eisc.storage.cache import get_ledger_cache
    settings = get_settings()
    if settings.store_backend == "mongo":
        from eisc.db.init import init_db
        await init_db()
    ctx["sessions"] = LedgerSessions(
        get_account_store(),
        get_ledger_cache(),
        LedgerRules.from_settings(settings),
        refresh_interval=timedelta(seconds=settings.session_refresh_seconds),
        max_open=settings.max_open_ledgers,
    )


async def shutdown(ctx: dict) -> None:
    pass


def get_redis_settings() -> RedisSettings:
    from urllib.parse import urlparse
    s = get_settings()
    u = urlparse(s.redis_url)
    return RedisSettings(
        host=u.hostname or "localhost",
        port=u.port or 6379,
        password=u.password,
        database=int(u.path.lstrip("/") or 0),
    )
