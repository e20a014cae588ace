from __future__ import annotations

import os
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)
    """Runtime configuration, read from FUE_* environment variables or .env."""

    app_name: str = os.getenv("FUE_APP_NAME", "FuE-Zeiterfassung")
    sqlite_path: Path = Path(os.getenv("FUE_SQLITE_PATH", "./data/fue_zeiterfassung.db"))
    session_secret: str = os.getenv("FUE_SESSION_SECRET", "fue-zeiterfassung-secret-key")
    fzul_template_path: Path = Path(os.getenv("FUE_FZUL_TEMPLATE", "./templates/FZul_Vorlage.xlsx"))
    fzul_template_required: bool = os.getenv("FUE_FZUL_TEMPLATE_REQUIRED", "false").lower() == "true"
    default_federal_state: str = os.getenv("FUE_DEFAULT_STATE", "DE-NW")
    default_weekly_hours: float = float(os.getenv("FUE_DEFAULT_WEEKLY_HOURS", "40"))
    default_funding_rate: float = float(os.getenv("FUE_DEFAULT_FUNDING_RATE", "50"))
    default_hourly_rate: float = float(os.getenv("FUE_DEFAULT_HOURLY_RATE", "50"))
    log_level: str = os.getenv("FUE_LOG_LEVEL", "INFO")

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return (value or "INFO").upper()


settings = Settings()

settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
