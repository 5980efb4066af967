# src/engineer_capacity/utils/config.py
"""
Ledger settings, read from the environment and the project-root .env file.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    DATABASE_URL: str = "sqlite:///engineer_capacity.db"
    SQL_ECHO: bool = False

    # Capacity given to engineers created without one
    DEFAULT_MAX_CAPACITY: int = 100

    FORECAST_WEEKS: int = 12

    # Utilization ratio at which an engineer is reported AT CAPACITY
    AT_CAPACITY_THRESHOLD: float = 0.9

    def __repr__(self):
        return f"<Settings db={self.DATABASE_URL} default_max={self.DEFAULT_MAX_CAPACITY}>"


# Singleton
config = Settings()
