"""Client settings loaded from environment variables."""

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """SakuraFM client configuration. Values come from SAKURA_* environment variables."""

    # Hosts
    clerk_url: str = Field(default="https://clerk.sakura.fm")
    frontend_url: str = Field(default="https://www.sakura.fm")
    api_url: str = Field(default="https://api.sakura.fm")

    # Clerk query parameters
    clerk_api_version: str = Field(default="2021-02-05")
    clerk_js_version: str = Field(default="5.34.1")

    # Session
    cookie_refresh_interval: float = Field(default=60.0)
    request_timeout: float = Field(default=30.0)
    user_agent: str = Field(default="")

    # Chat
    default_locale: str = Field(default="en")

    # Email-link login polling
    login_poll_attempts: int = Field(default=12)
    login_poll_interval: float = Field(default=5.0)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="SAKURA_",
        env_file=_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
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

    def clerk_params(self) -> dict[str, str]:
        """Query parameters Clerk expects on every frontend API call."""
        return {
            "__clerk_api_version": self.clerk_api_version,
            "_clerk_js_version": self.clerk_js_version,
        }


settings = Settings()
