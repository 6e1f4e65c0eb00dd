from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:3000", "http://localhost:5173"]


def _parse_cors_origins(v: Any) -> List[str]:
    if v is None or v == "":
        return _DEFAULT_CORS.copy()
    if isinstance(v, list):
        return [x for x in v if isinstance(x, str) and x.strip()]
    s = str(v).strip()
    if s.startswith("["):
        import json
        try:
            out = json.loads(s)
        except ValueError:
            return _DEFAULT_CORS.copy()
        return [x for x in out if isinstance(x, str) and x.strip()] or _DEFAULT_CORS.copy()
    return [x.strip() for x in s.split(",") if x.strip()] or _DEFAULT_CORS.copy()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")
    secret_key: str = Field(default="change-me-in-production-min-32-chars")

    # Account store: "memory" | "mongo"
    store_backend: str = Field(default="memory", alias="STORE_BACKEND")
    seed_demo_data: bool = Field(default=True, alias="SEED_DEMO_DATA")

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="eisc", alias="MONGODB_DB_NAME")

    # Local ledger cache: "memory" | "redis" | "none"
    cache_backend: str = Field(default="memory", alias="CACHE_BACKEND")
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    cache_ttl_seconds: int = 7 * 24 * 3600

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors_origins(getattr(self, "cors_origins_raw", None))

    # Ledger rules (credits)
    min_credit_line: int = Field(default=-10, le=0)
    credit_value_usd: int = 10
    monthly_bonus_credits: int = Field(default=2, gt=0)
    monthly_bonus_interval_days: int = Field(default=30, gt=0)

    # Store write retries
    sync_max_attempts: int = Field(default=5, ge=1)

    # Open ledger sessions: re-read from the store after this many seconds; LRU bound
    session_refresh_seconds: int = Field(default=60, ge=0)
    max_open_ledgers: int = Field(default=1000, ge=1)


@lru_cache
def get_settings() -> Settings:
    return Settings()
