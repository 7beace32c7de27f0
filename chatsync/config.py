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
    """chatsync configuration. All values come from environment variables."""

    # Backend (n8n webhooks)
    api_base_url: str = Field(default="http://localhost:5678")
    request_timeout_seconds: float = Field(default=15.0, gt=0)

    # Polling
    poll_interval_seconds: float = Field(default=5.0, gt=0)

    # Timeline
    provisional_ttl_seconds: float = Field(default=120.0, gt=0)
    reply_timeout_seconds: float = Field(default=60.0, gt=0)
    optimistic_echo: bool = Field(default=False)

    # Presentation
    assistant_name: str = Field(default="Aiko")

    # Session store
    user_file: Path = Field(default=Path("data/user.json"))

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="CHATSYNC_", env_file=_env_file(), env_file_encoding="utf-8"
    )

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

    @property
    def base_url(self) -> str:
        """API base URL without a trailing slash."""
        return self.api_base_url.rstrip("/")


settings = Settings()
