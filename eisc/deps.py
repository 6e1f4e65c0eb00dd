"""Shared FastAPI dependencies. Each provider is cached per process and overridable in tests."""

from datetime import timedelta
from functools import lru_cache

from fastapi import Depends, Request

from eisc.core.config import get_settings
from eisc.core.exceptions import UnauthorizedError
from eisc.core.logging import bind_user_id
from eisc.core.security import load_session_cookie
from eisc.models.identity import Identity
from eisc.services.identity import UserDirectory
from eisc.services.ledger import LedgerEngine, LedgerRules
from eisc.services.marketplace import Marketplace
from eisc.services.sessions import LedgerSessions
from eisc.storage.base import get_account_store
from eisc.storage.cache import get_ledger_cache

SESSION_COOKIE_NAME = "eisc_session"


@lru_cache
def get_user_directory() -> UserDirectory:
    return UserDirectory(seed_demo=get_settings().seed_demo_data)


@lru_cache
def get_marketplace() -> Marketplace:
    return Marketplace(seed_demo=get_settings().seed_demo_data)


@lru_cache
def get_ledger_sessions() -> LedgerSessions:
    settings = get_settings()
    return LedgerSessions(
        store=get_account_store(),
        cache=get_ledger_cache(),
        rules=LedgerRules.from_settings(settings),
        refresh_interval=timedelta(seconds=settings.session_refresh_seconds),
        max_open=settings.max_open_ledgers,
    )


async def get_current_identity(request: Request) -> Identity:
    """Dependency: load identity from the signed session cookie."""
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if not cookie:
        raise UnauthorizedError("Not authenticated")
    payload = load_session_cookie(cookie)
    if not payload or not payload.get("user_id"):
        raise UnauthorizedError("Invalid or expired session")
    identity = Identity.model_validate(payload)
    bind_user_id(identity.user_id)
    return identity


async def get_ledger(
    identity: Identity = Depends(get_current_identity),
    sessions: LedgerSessions = Depends(get_ledger_sessions),
) -> LedgerEngine:
    """Dependency: the caller's ledger, loaded on first use."""
    return await sessions.open(identity)
