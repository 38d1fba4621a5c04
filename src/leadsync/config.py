from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./leadsync.db"
    redis_url: str = "redis://localhost:6379/0"

    # Task queue
    queue_backend: str = "memory"  # "memory" or "redis"
    queue_stream: str = "leadsync:sync-external-leads"
    queue_group: str = "leadsync-workers"
    worker_concurrency: int = 2
    embedded_worker: bool = True

    # Sync
    sync_source: str = "randomuser-api"
    sync_batch_size: int = 10
    sync_max_attempts: int = 3
    sync_backoff_seconds: float = 2.0
    sync_schedule_enabled: bool = True
    sync_cron_minute: int = 0
    source_timeout_seconds: float = 30.0

    randomuser_base_url: str = "https://randomuser.me/api/"
    randomuser_nationality: str = "us"

    # AI summaries
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5"

    # Cache
    cache_backend: str = "memory"  # "memory" or "redis"
    cache_ttl_seconds: int = 300
    summary_cache_ttl_seconds: int = 86400

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
