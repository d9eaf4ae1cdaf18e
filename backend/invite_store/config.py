"""Application configuration via pydantic-settings.

Reads from environment variables and .env file.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Infrastructure
    redis_url: str = "redis://localhost:6379"
    database_url: str = "sqlite:///./data/invitations.db"
    store_timeout: float = 5.0  # seconds a connection waits on a locked database

    # Code lookup cache
    lookup_cache_ttl: int = 3600
    lookup_tombstone_ttl: int = 60  # how long an evicted code stays unfillable

    # Retry budgets: reads fail fast, writes absorb transient failure
    read_attempts: int = 1
    write_attempts: int = 5
    retry_base_delay: float = 0.1
    retry_max_delay: float = 2.0

    # Paging
    delete_page_size: int = 100
    max_list_page_size: int = Field(default=500, ge=1, le=500)

    log_level: str = "INFO"

    @property
    def cache_enabled(self) -> bool:
        return self.lookup_cache_ttl > 0


settings = Settings()
