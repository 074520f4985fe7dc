"""DonorConnect configuration via environment / .env file."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DATA_DIR = Path.home() / ".donorconnect"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Remote API ---
    API_BASE_URL: str = "http://localhost:3000"
    AI_ENDPOINT_PATH: str = "/api/ai"
    DONORS_BULK_PATH: str = "/api/donors/bulk"

    # --- Organisation ---
    DEFAULT_ORG_ID: str = "default-org"
    ORG_ID_FILE: Path = _DATA_DIR / "current_org"

    # --- Simulation ---
    SIMULATION_BACKEND: Literal["remote", "local"] = "remote"
    SIMULATION_SETTINGS_FILE: Path = _DATA_DIR / "simulation_settings.json"
    LOCAL_CYCLE_SECONDS: float = 10.0
    BULK_BATCH_SIZE: int = 25

    # --- Activity polling ---
    ACTIVITY_POLL_INTERVAL: float = 10.0
    ACTIVITY_LIMIT: int = 20

    # --- Notifications ---
    NOTIFICATION_MAX: int = 20
    NOTIFICATION_NORMAL_TTL: float = 5.0
    NOTIFICATION_IMPORTANT_TTL: float = 10.0
    LARGE_GIFT_THRESHOLD: float = 1000.0
    RENOTIFY_ON_RESTART: bool = False

    # --- CORS ---
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    @field_validator("API_BASE_URL")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("AI_ENDPOINT_PATH", "DONORS_BULK_PATH")
    @classmethod
    def _leading_slash(cls, v: str) -> str:
        return v if v.startswith("/") else f"/{v}"

    @field_validator("BULK_BATCH_SIZE", "ACTIVITY_LIMIT", "NOTIFICATION_MAX")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v


settings = Settings()
