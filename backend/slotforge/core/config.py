from functools import lru_cache
import json
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    # Resolve to backend/.env so `uvicorn --app-dir backend` works from any cwd.
    model_config = SettingsConfigDict(env_file=str(BACKEND_ENV_FILE), env_file_encoding="utf-8")

    project_name: str = "SlotForge API"
    api_prefix: str = "/api"

    database_url: str = "sqlite+pysqlite:///./slotforge.db"
    auto_create_schema: bool = True

    log_level: str = "INFO"

    # Wall-clock zone of every time slot; occurrences are stored in UTC.
    schedule_timezone: str = "UTC"
    default_weeks_ahead: int = 4
    max_weeks_ahead: int = 52
    session_window_weeks: int = 4
    unassigned_tutor_label: str = "Non assigné"

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return [str(item).strip() for item in parsed if str(item).strip()]
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("default_weeks_ahead", "max_weeks_ahead", "session_window_weeks")
    @classmethod
    def require_positive_horizon(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Week horizons must be positive integers")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
