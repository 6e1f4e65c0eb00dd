import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# In-memory backends only
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("CACHE_BACKEND", "memory")
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")


class Clock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> Clock:
    return Clock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    from eisc.storage.memory import InMemoryAccountStore
    return InMemoryAccountStore()


@pytest.fixture
def cache():
    from eisc.storage.cache import MemoryLedgerCache
    return MemoryLedgerCache()


@pytest.fixture
def ledger(store, cache, clock):
    from eisc.services.ledger import LedgerEngine, LedgerRules
    return LedgerEngine("user-1", store, cache=cache, rules=LedgerRules(min_credit_line=-10), now=clock)


@pytest.fixture
def sessions(store, cache, clock):
    from eisc.services.sessions import LedgerSessions
    return LedgerSessions(store, cache, now=clock)


@pytest.fixture
def demo_store():
    from eisc.storage.memory import InMemoryAccountStore
    return InMemoryAccountStore(seed_demo=True)


@pytest_asyncio.fixture
async def client(demo_store, cache, clock) -> AsyncGenerator[AsyncClient, None]:
    """API client wired to isolated demo-seeded stores."""
    from eisc.deps import get_ledger_sessions, get_marketplace, get_user_directory
    from eisc.main import app
    from eisc.services.identity import UserDirectory
    from eisc.services.marketplace import Marketplace
    from eisc.services.sessions import LedgerSessions

    sessions = LedgerSessions(demo_store, cache, now=clock)
    directory = UserDirectory(seed_demo=True)
    market = Marketplace(seed_demo=True, now=clock)
    app.dependency_overrides[get_ledger_sessions] = lambda: sessions
    app.dependency_overrides[get_user_directory] = lambda: directory
    app.dependency_overrides[get_marketplace] = lambda: market
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(client: AsyncClient):
    """Set a signed session cookie on the client for the given user."""
    from eisc.core.security import create_session_cookie
    from eisc.deps import SESSION_COOKIE_NAME

    def _login(user_id: str, display_name: str = "Test", is_new_user: bool = False) -> None:
        cookie = create_session_cookie(
            {"user_id": user_id, "display_name": display_name, "email": "", "is_new_user": is_new_user}
        )
        client.cookies.set(SESSION_COOKIE_NAME, cookie)

    return _login
