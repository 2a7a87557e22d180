from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./yard.db"

    # Database Connection Pool Settings (ignored for SQLite)
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # App Settings
    APP_NAME: str = "Container Yard Allocation Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Allocation
    ALLOCATION_MAX_ATTEMPTS: int = 3  # Compare-and-commit attempts per event

    # Cost model: "fixed", "coordinate" or "random"
    COST_MODEL: str = "coordinate"
    DEFAULT_CRANE_ID: str = "RTG-AUTO-01"
    COST_RANDOM_SEED: int | None = None

    # Demo yard geometry used by scripts/seed_yard.py
    SEED_YARD: str = "Y1"
    SEED_BLOCKS: list[str] = ["A", "B"]
    SEED_MAX_BAY: int = 5
    SEED_MAX_ROW: int = 4
    SEED_MAX_TIER: int = 4
    SEED_OCCUPANCY: float = 0.7  # Share of stacks holding at least one container

    @field_validator('CORS_ORIGINS', 'SEED_BLOCKS', mode='before')
    @classmethod
    def parse_string_list(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [item.strip() for item in v.split(',')]
        return v

    @field_validator('COST_MODEL')
    @classmethod
    def validate_cost_model(cls, v: str) -> str:
        value = v.lower()
        if value not in ("fixed", "coordinate", "random"):
            raise ValueError(f"Unknown COST_MODEL '{v}'. Valid: fixed, coordinate, random")
        return value

    @property
    def cors_origins_list(self) -> list[str]:
        return list(self.CORS_ORIGINS)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
