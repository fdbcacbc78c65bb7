"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Service configuration. All values come from environment variables."""

    # Database
    database_path: Path = Field(default=Path("data/notifications.db"))
    database_busy_timeout_ms: int = Field(default=5000)

    # HTTP / WebSocket server
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=3001)

    # Scheduler: cron expressions are evaluated in this zone
    scheduler_timezone: str = Field(default="UTC")

    # Realtime: close the previous socket when a user registers again
    realtime_close_superseded: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)


settings = Settings()
