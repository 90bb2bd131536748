from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional
from pydantic_settings import BaseSettings
from pydantic import ConfigDict


DEFAULT_MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "db" / "migrations"


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"
    VERSION: str = "0.1.0"
    PROJECT_NAME: str = "backoffice-jobs"

    DEBUG: bool = False

    # Database settings
    DATABASE_URL: Optional[str] = None
    SQLITE_PATH: str = "data/backoffice.db"
    DATABASE_SSL: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_CONNECT_RETRIES: int = 5
    DB_CONNECT_RETRY_DELAY: float = 3.0
    MIGRATIONS_DIR: Optional[str] = None

    # Worker Configuration
    WORKER_ID: Optional[str] = None
    WORKER_POLL_INTERVAL: float = 5.0
    WORKER_BATCH_SIZE: int = 5
    JOB_TIMEOUT: float = 30.0
    JOB_TIMEOUTS: Dict[str, float] = {}
    RETRY_BACKOFF_BASE: int = 4
    RETRY_BACKOFF_UNIT_SECONDS: float = 60.0
    RETRY_MAX_DELAY_SECONDS: float = 7 * 24 * 3600.0
    STALE_JOB_TIMEOUT: float = 600.0
    HEARTBEAT_INTERVAL: float = 30.0
    HEARTBEAT_STALE_AFTER: float = 90.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # CORS settings
    CORS_ORIGINS: List[str] = ["*"]
    CORS_METHODS: List[str] = ["*"]
    CORS_HEADERS: List[str] = ["*"]
    ALLOW_CREDENTIALS: bool = True

    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_postgres(self) -> bool:
        return bool(self.DATABASE_URL) and self.DATABASE_URL.startswith("postgres")

    @property
    def async_database_url(self) -> str:
        """SQLAlchemy async URL for whichever backend is configured."""
        if self.is_postgres:
            _, _, rest = self.DATABASE_URL.partition("://")
            return f"postgresql+asyncpg://{rest}"
        return f"sqlite+aiosqlite:///{self.SQLITE_PATH}"

    @property
    def migrations_path(self) -> Path:
        if self.MIGRATIONS_DIR:
            return Path(self.MIGRATIONS_DIR)
        return DEFAULT_MIGRATIONS_DIR


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
