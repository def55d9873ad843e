"""Application configuration via environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tiktok_publisher.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format",
    )

    # TikTok OAuth
    tiktok_client_key: str | None = Field(default=None, description="TikTok Client Key")
    tiktok_client_secret: str | None = Field(default=None, description="TikTok Client Secret")
    tiktok_redirect_uri: str = Field(
        default="http://localhost:8085/tiktok/callback",
        description="TikTok OAuth redirect URI",
    )
    tiktok_scopes: list[str] = Field(
        default_factory=lambda: ["user.info.basic", "video.publish"],
        description="OAuth scopes requested at login",
    )

    # HTTP
    http_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for every TikTok API request",
    )

    # Publishing
    publish_max_attempts: int = Field(
        default=10,
        description="Maximum number of publish status checks before giving up",
    )
    publish_poll_interval: float = Field(
        default=2.0,
        description="Seconds to wait between publish status checks",
    )

    # Token storage
    token_refresh_margin_seconds: int = Field(
        default=3600,
        description="Refresh the access token when it expires within this many seconds",
    )
    credentials_path: Path = Field(
        default=Path.home() / ".tiktok-publisher" / "credentials.json",
        description="File holding the persisted access token, expiry and refresh token",
    )
    token_encryption_key: str | None = Field(
        default=None,
        description="Fernet key used to encrypt stored tokens at rest (optional)",
    )

    def require_client_credentials(self) -> tuple[str, str]:
        """Return (client_key, client_secret) or raise if either is missing."""
        if not self.tiktok_client_key or not self.tiktok_client_secret:
            raise ConfigurationError(
                "TIKTOK_CLIENT_KEY and TIKTOK_CLIENT_SECRET environment variables are required. "
                "Create an app at https://developers.tiktok.com/apps and enable Login Kit + "
                "Content Posting API."
            )
        return self.tiktok_client_key, self.tiktok_client_secret


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
