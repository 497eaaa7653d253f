"""Application configuration.

Configuration is read from a YAML file and from environment variables using
pydantic-settings. Values given in the YAML file take precedence over the
environment; secrets (API keys) are usually left out of the file and supplied
via the environment instead.

## Config file lookup

1. Path passed with ``--config``
2. ``./config.yaml``
3. ``~/.connpass-watcher/config.yaml``

If no file is found the defaults are used, which still require a connpass
API key from the environment.

## Environment Variables

- CONNPASS_API_KEY: connpass API key (used when ``connpass.api_key`` is empty)
- ANTHROPIC_API_KEY / OPENAI_API_KEY / GOOGLE_API_KEY / OPENROUTER_API_KEY:
  LLM credentials (used when ``llm.api_key`` is empty)
- LOG_LEVEL: Logging level (default: INFO)
- Nested values use ``__`` as delimiter, e.g. ``LLM__PROVIDER=ollama``

## Example config.yaml

```yaml
connpass:
  prefectures: [tokyo, kanagawa]
  weeks_ahead: 2
interests:
  keywords: [Python, Rust, LLM]
  exclude_keywords: [もくもく会]
  profile: |
    Backend engineer interested in Python and distributed systems.
  min_participants: 50
llm:
  provider: anthropic
google_calendar:
  calendar_id: primary
schedule:
  cron: "0 9 * * *"
```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_DIR_NAME = ".connpass-watcher"
CONFIG_FILENAME = "config.yaml"
DB_FILENAME = "events.db"

LLMProviderName = Literal["anthropic", "openai", "google", "ollama", "openrouter"]


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or is invalid."""


class ConnpassSettings(BaseModel):
    """Events source settings.

    Search window priority: hours_ahead > weeks_ahead > months_ahead.
    """

    api_key: str = ""
    prefectures: list[str] = Field(default=["tokyo"])
    include_online: bool = True
    months_ahead: int | None = Field(default=None, ge=1, le=12)
    weeks_ahead: int | None = Field(default=None, ge=1, le=52)
    hours_ahead: int | None = Field(default=None, ge=1, le=168)


class InterestSettings(BaseModel):
    """Interest matching settings."""

    keywords: list[str] = Field(default_factory=list)
    # Events whose title contains one of these are skipped entirely
    exclude_keywords: list[str] = Field(default_factory=list)
    profile: str | None = None
    # Events with at least this many accepted participants count as popular
    min_participants: int = Field(default=50, ge=0)


class LLMSettings(BaseModel):
    """LLM classifier settings."""

    enabled: bool = True
    provider: LLMProviderName = "anthropic"
    model: str | None = None
    api_key: str | None = None
    base_url: str | None = None


class GoogleCalendarSettings(BaseModel):
    """Google Calendar sync settings.

    Color IDs: 1 Lavender, 2 Sage, 3 Grape, 4 Flamingo, 5 Banana,
    6 Tangerine, 7 Peacock, 8 Graphite, 9 Blueberry, 10 Basil, 11 Tomato.
    """

    enabled: bool = True
    calendar_id: str = "primary"
    color_speaker: str = "9"
    color_popular: str = "6"
    timezone: str = "Asia/Tokyo"


class ScheduleSettings(BaseModel):
    """Daemon schedule settings."""

    cron: str | None = None


class RateLimitSettings(BaseModel):
    """Minimum spacing (seconds) and concurrency per external dependency."""

    connpass_min_interval: float = Field(default=2.0, ge=0)
    connpass_max_concurrent: int = Field(default=1, ge=1)
    calendar_min_interval: float = Field(default=0.5, ge=0)
    calendar_max_concurrent: int = Field(default=2, ge=1)
    # None selects a provider-specific default
    llm_min_interval: float | None = Field(default=None, ge=0)
    llm_max_concurrent: int = Field(default=1, ge=1)


class Settings(BaseSettings):
    """Application settings loaded from the config file and environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "connpass-watcher"
    app_version: str = "0.1.0"
    log_level: str = "INFO"
    app_dir: Path = Field(default_factory=lambda: Path.home() / APP_DIR_NAME)

    # Database (defaults to <app_dir>/events.db)
    database_url: str | None = None
    database_echo: bool = False  # Log SQL queries

    # Sections
    connpass: ConnpassSettings = Field(default_factory=ConnpassSettings)
    interests: InterestSettings = Field(default_factory=InterestSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    google_calendar: GoogleCalendarSettings = Field(default_factory=GoogleCalendarSettings)
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    rate_limits: RateLimitSettings = Field(default_factory=RateLimitSettings)

    # Credentials picked up from the environment
    connpass_api_key: str | None = None
    anthropic_api_key: str | None = None
    openai_api_key: str | None = None
    google_api_key: str | None = None
    openrouter_api_key: str | None = None

    @model_validator(mode="after")
    def resolve_connpass_api_key(self) -> Settings:
        """Fall back to CONNPASS_API_KEY and require a key to be present."""
        if not self.connpass.api_key and self.connpass_api_key:
            self.connpass.api_key = self.connpass_api_key
        if not self.connpass.api_key:
            raise ValueError(
                "connpass API key is required "
                "(set connpass.api_key or CONNPASS_API_KEY)"
            )
        return self

    @property
    def resolved_database_url(self) -> str:
        """Database URL, defaulting to a SQLite file in the app directory."""
        if self.database_url:
            return self.database_url
        return f"sqlite+aiosqlite:///{self.app_dir / DB_FILENAME}"

    @property
    def llm_api_key(self) -> str | None:
        """API key for the configured LLM provider."""
        if self.llm.api_key:
            return self.llm.api_key
        return {
            "anthropic": self.anthropic_api_key,
            "openai": self.openai_api_key,
            "google": self.google_api_key,
            "openrouter": self.openrouter_api_key,
        }.get(self.llm.provider)


def find_config_path() -> Path | None:
    """Return the first existing default config file, if any."""
    candidates = [
        Path.cwd() / CONFIG_FILENAME,
        Path.home() / APP_DIR_NAME / CONFIG_FILENAME,
    ]
    for path in candidates:
        if path.exists():
            return path
    return None


def _format_validation_error(error: ValidationError) -> str:
    lines = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "config"
        lines.append(f"  - {location}: {item['msg']}")
    return "\n".join(lines)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and the environment.

    Args:
        config_path: Explicit config file. When omitted the default
            locations are searched.

    Returns:
        Validated Settings

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    path = Path(config_path) if config_path else find_config_path()

    data: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file must contain a mapping: {path}")

    try:
        return Settings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config:\n{_format_validation_error(e)}") from e
