"""Application configuration via environment variables with Pydantic validation.

Process-level settings (paths, credentials, webhook URLs, logging) come from
environment variables with .env file support. The maintenance behaviour
options live in a YAML file, see calmaint.maintenance.loader.
The app fails loudly at startup if required values are missing or invalid.
"""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """calmaint settings. All values sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Files
    maintenance_config_path: str = "./config/maintenance.yaml"
    state_file_path: str = "./data/maintenance-state.json"

    # Authentication — required, app will not start without these
    api_key: str
    admin_api_key: str

    # API server
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # Notifications — both optional, notifications sent to whichever is configured
    discord_webhook_url: AnyHttpUrl | None = None
    slack_webhook_url: AnyHttpUrl | None = None

    # Google Calendar feed — polling is disabled without an API key
    google_calendar_api_key: str | None = None
    google_calendar_id: str = "primary"
    calendar_lookahead_days: int = 30
    calendar_max_results: int = 10
    calendar_timezone: str | None = None  # all-day events; None = system local

    # Rendering
    display_timezone: str = "UTC"

    # Scheduling
    initial_poll_delay_seconds: float = 60.0
    shutdown_grace_seconds: float = 5.0

    # HTTP client
    httpx_timeout_seconds: float = 10.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("api_key", "admin_api_key")
    @classmethod
    def api_keys_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("API keys must not be empty — set API_KEY and ADMIN_API_KEY")
        if len(v.strip()) < 32:
            raise ValueError("API keys must be at least 32 characters")
        return v

    @field_validator("display_timezone", "calendar_timezone")
    @classmethod
    def timezone_known(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone '{v}'") from exc
        return v

    @field_validator("calendar_lookahead_days", "calendar_max_results")
    @classmethod
    def positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @property
    def display_zone(self) -> ZoneInfo:
        """The zone used when rendering times for humans."""
        return ZoneInfo(self.display_timezone)

    @property
    def calendar_zone(self) -> ZoneInfo | None:
        """The zone all-day calendar entries are pinned to (None = system local)."""
        return ZoneInfo(self.calendar_timezone) if self.calendar_timezone else None


def get_settings() -> Settings:
    """Create and return a validated Settings instance.

    Raises ValidationError with clear messages if required env vars are missing.
    """
    return Settings()  # type: ignore[call-arg]
