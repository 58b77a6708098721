from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Basic settings
    PROJECT_NAME: str = "Reservo"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./reservo.db"
    DATABASE_POOL_PRE_PING: bool = True
    DATABASE_STATEMENT_TIMEOUT_MS: Optional[int] = 5000
    SQLITE_BUSY_TIMEOUT_SECONDS: float = 5.0

    # Booking engine
    SLOT_GRANULARITY_MINUTES: int = 30

    # Availability cache (disabled when REDIS_URL is unset or TTL is 0)
    REDIS_URL: Optional[str] = None
    AVAILABILITY_CACHE_TTL_SECONDS: int = 0

    # CORS
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:8080"]

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",")]
        return v

    @field_validator("SLOT_GRANULARITY_MINUTES")
    @classmethod
    def validate_granularity(cls, v):
        if v <= 0:
            raise ValueError("SLOT_GRANULARITY_MINUTES must be positive")
        return v

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    model_config = {"env_file": ".env", "case_sensitive": True, "extra": "ignore"}

    @property
    def availability_cache_enabled(self) -> bool:
        return bool(self.REDIS_URL) and self.AVAILABILITY_CACHE_TTL_SECONDS > 0


# Global settings instance
settings = Settings()
