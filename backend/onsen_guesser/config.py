from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./onsen_guesser.db"
    STORAGE_TIMEOUT_SEC: float = 10.0
    AUTO_CREATE_TABLES: bool = True
    SEED_SAMPLE_DATA: bool = False

    # Game Configuration
    ROUNDS_PER_GAME: int = 5
    MAX_ROUNDS_PER_GAME: int = 20
    ROUND_TIME_LIMIT_SEC: int = 60  # Enforced by the client, reported only

    # Rankings
    DEFAULT_RANKING_LIMIT: int = 10
    MAX_RANKING_LIMIT: int = 100
    WEEKLY_WINDOW_DAYS: int = 7

    # Server
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
