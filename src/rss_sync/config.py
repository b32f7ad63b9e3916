from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class Settings(BaseSettings):
    sync_log_path: Path = Path("./logs/sync-cron.jsonl")
    enable_auto_sync: bool = False
    sync_cron_schedule: str = "0 2,14 * * *"  # 2am and 2pm
    next_public_base_url: str = "http://localhost:3000"
    sync_timezone: str = "America/Toronto"
    cron_health_path: Path = Path("./logs/cron-health.json")
    sync_request_timeout: float = Field(default=30.0, gt=0)
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # .env is shared with the app server

    @field_validator("enable_auto_sync", mode="before")
    @classmethod
    def _only_literal_true(cls, value):
        # Only the exact string "true" turns scheduling on.
        if isinstance(value, bool):
            return value
        return value == "true"

    @field_validator("log_level", mode="before")
    @classmethod
    def _known_log_level(cls, value) -> str:
        level = str(value).strip().upper()
        return level if level in LOG_LEVELS else "INFO"

    @field_validator("sync_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("next_public_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.sync_timezone)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
