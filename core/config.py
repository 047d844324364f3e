"""Configuration settings for the meal plan generation service.

Values are read from the environment (or a local `.env` file) once per
process. Administrator-managed model routing is NOT configured here; it lives
in the database and is re-read on every request by `services.model_router`.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    APP_NAME: str = "Meal Plan Generation API"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None

    # Read/write partitioning: point READ_DATABASE_URL at a replica in production.
    WRITE_DATABASE_URL: str = "sqlite:///meal_plans.db"
    READ_DATABASE_URL: Optional[str] = None
    DATABASE_POOL_TIMEOUT_SECONDS: int = 30

    GEMINI_API_KEY: Optional[str] = None
    DEFAULT_MODEL_ID: str = "gemini-2.5-flash"
    DEFAULT_MODEL_PROVIDER: str = "google"
    AI_REQUEST_TIMEOUT_SECONDS: float = 120.0
    AI_TRANSPORT_TIMEOUT_SECONDS: float = 150.0
    AI_TEMPERATURE: float = 0.1
    AI_MAX_OUTPUT_TOKENS: int = 8000

    DAILY_GENERATION_CAP: int = 10
    MEAL_COUNT_CONFIDENCE_THRESHOLD: float = 0.7
    # Monday=0 ... Saturday=5
    WEEK_ANCHOR_WEEKDAY: int = 5
    PLAN_REPLACE_ATOMIC: bool = True

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }

    @property
    def read_database_url(self) -> str:
        return self.READ_DATABASE_URL or self.WRITE_DATABASE_URL


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
