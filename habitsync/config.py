from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = Field(
        "sqlite+aiosqlite:///./habitsync.db",
        description="SQLAlchemy async URL, e.g., postgresql+asyncpg://...",
    )

    # Local cache: file | redis | memory
    CACHE_BACKEND: str = "file"
    CACHE_DIR: str = ".habitsync_cache"
    CACHE_KEY: str = "cached_habits"
    REDIS_URL: str = "redis://redis:6379/0"

    # IANA zone used for "today", the anchor and stat dates
    CALENDAR_TIMEZONE: str = "UTC"

    STATS_DEFAULT_LIMIT: int = 30

settings = Settings()
