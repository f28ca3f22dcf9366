"""Pydantic configuration models for PersonaBook.

This module defines all configuration models used throughout PersonaBook.
For loading and merging logic, see loader.py.
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class DatabaseConfig(BaseModel):
    """Persistent store configuration."""

    path: Path = Field(default=Path("personabook.db"), description="SQLite database file")
    timeout_seconds: float = Field(default=10.0, description="Upper bound for a single store call")


class CacheConfig(BaseModel):
    """User state cache configuration."""

    ttl_seconds: float = Field(default=300.0, description="Freshness window for cached user state")
    cleanup_interval_seconds: int = Field(default=600, description="Seconds between stale entry evictions")


class LimitsConfig(BaseModel):
    """Serialized size ceilings for user state fields."""

    history_max_bytes: int = Field(default=5 * 1024, description="Conversation history ceiling")
    preferences_max_bytes: int = Field(default=1024, description="Preferences map ceiling")
    session_max_bytes: int = Field(default=16 * 1024, description="Current session ceiling")
    session_history_keep: int = Field(
        default=20,
        description="Messages kept (besides the system prompt) when trimming an oversized session",
    )


class BookingConfig(BaseModel):
    """Reservation lifecycle settings."""

    hold_minutes: int = Field(default=5, description="Minutes an unpaid booking stays valid")
    timezone: str = Field(default="UTC", description="Timezone used to display and parse slot times")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Validate timezone is a valid IANA timezone identifier."""
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, KeyError):
            raise ValueError(
                f"Invalid timezone '{v}'. Use IANA timezone identifiers "
                f"(e.g., 'America/Denver', 'Europe/London', 'UTC')."
            )
        return v


class SweeperConfig(BaseModel):
    """Background sweeper configuration."""

    enabled: bool = Field(default=True, description="Run the periodic booking/session sweep")
    interval_seconds: int = Field(default=60, description="Seconds between sweeps")


class PaymentsConfig(BaseModel):
    """Invoice settings passed to the payment provider."""

    provider_token: str = Field(default="", description="Provider token (empty for Telegram Stars)")
    currency: str = Field(default="XTR", description="ISO currency code or XTR")
    minor_units_per_unit: int = Field(default=100, description="Multiplier from price units to invoice amount")


class LLMConfig(BaseModel):
    """Chat model backend configuration."""

    base_url: str | None = Field(default=None, description="OpenAI-compatible endpoint")
    api_key: str | None = Field(default=None, description="API key for the model provider")
    default_temperature: float = Field(default=0.3, description="Temperature when the user has not set one")
    timeout_seconds: float = Field(default=60.0, description="Request timeout")


class ChannelConfig(BaseModel):
    """Chat platform binding."""

    type: str = Field(default="telegram", description="Channel type")
    token: str | None = Field(default=None, description="Bot token")
    allowed_users: list[int] = Field(default_factory=list, description="Allowed user IDs")
    allow_all: bool = Field(default=True, description="Allow every user (public bot)")
    concurrent_updates: int = Field(
        default=64, ge=1, description="Updates handled in parallel (1 processes them one at a time)"
    )


class PersonaConfig(BaseModel):
    """A persona entry overriding the built-in catalog."""

    id: str
    name: str
    model: str
    description: str = ""
    specialty: str = ""
    greeting: str = ""
    prompt: str = ""
    price_per_minute: float = Field(default=0.1, ge=0)


class LoggingConfig(BaseModel):
    """Configuration for logging system."""

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")
    directory: str = Field(default="logs", description="Directory for log files")
    max_size_mb: int = Field(default=10, description="Maximum log file size in MB before rotation")
    backup_count: int = Field(default=5, description="Number of backup log files to keep")


class Config(BaseModel):
    """Root configuration for PersonaBook."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    booking: BookingConfig = Field(default_factory=BookingConfig)
    sweeper: SweeperConfig = Field(default_factory=SweeperConfig)
    payments: PaymentsConfig = Field(default_factory=PaymentsConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    channel: ChannelConfig = Field(default_factory=ChannelConfig)
    personas: list[PersonaConfig] = Field(default_factory=list, description="Persona catalog override")
    default_persona: str | None = Field(default=None, description="Fallback persona id")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging configuration")

    model_config = {"extra": "allow"}
