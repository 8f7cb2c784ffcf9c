"""Application settings and configuration management."""
from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite:///./signal_feed.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 10
    AUTO_CREATE_TABLES: bool = False

    # Redis (only used by the redis notifier backend)
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379

    # Change notifier
    NOTIFIER_BACKEND: str = "local"
    NOTIFY_CHANNEL: str = "signal_feed:changes"
    NOTIFY_SEND_TIMEOUT: float = 5.0

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    DEFAULT_PAGE_LIMIT: int = 10
    MAX_PAGE_LIMIT: int = 100

    # Viewer client
    FEED_BASE_URL: str = "http://localhost:8000"
    FEED_WS_URL: str = "ws://localhost:8000/ws"
    CLIENT_PAGE_SIZE: int = 10
    CLIENT_FETCH_TIMEOUT: float = 10.0
    CLIENT_RELOAD_MODE: str = "incremental"
    CATCH_UP_MAX_PAGES: int = 5

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Environment
    ENV: str = "development"

    class Config:
        env_file = ".env"

@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
