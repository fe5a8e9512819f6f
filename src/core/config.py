"""Configuration management for hearth."""

from pathlib import Path
from typing import Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage Configuration
    sqlite_db_path: str = Field(default="data/hearth.db", description="Path to the SQLite database file")

    # OpenRouter Configuration
    openrouter_api_key: str | None = Field(default=None, description="OpenRouter API key for LLM access")

    # Twilio Configuration
    twilio_account_sid: str | None = Field(default=None, description="Twilio account SID")
    twilio_auth_token: str | None = Field(default=None, description="Twilio auth token (also signs webhooks)")
    twilio_whatsapp_number: str | None = Field(
        default=None, description="Sender number enabled for WhatsApp (e.g., +14155238886)"
    )
    twilio_api_base_url: str = Field(default="https://api.twilio.com", description="Twilio REST API base URL")
    twilio_validate_signature: bool = Field(
        default=False, description="Reject inbound webhooks without a valid X-Twilio-Signature"
    )

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    # Assistant Identity
    bot_name: str = Field(default="Hearth", description="Name the assistant uses for itself")
    bot_description: str = Field(default="helpful household assistant", description="Short role description")
    default_user_name: str = Field(default="New User", description="Display name given to newly created users")
    default_list_name: str = Field(default="General", description="Fallback shopping list name")

    # Debounce Configuration
    debounce_window_ms: int = Field(
        default=5000, gt=0, description="Quiet period after the last message before a burst is processed"
    )
    debounce_jitter_ms: int = Field(
        default=500, ge=0, description="Timer tolerance when deciding whether a settle check was superseded"
    )
    processing_timeout_seconds: float = Field(
        default=60.0, gt=0, description="Deadline for dispatching a burst and sending replies"
    )
    buffer_sweep_enabled: bool = Field(default=True, description="Periodically settle buffers orphaned by restarts")
    buffer_sweep_interval_seconds: int = Field(default=60, gt=0, description="Interval between buffer sweeps")
    buffer_sweep_grace_ms: int = Field(
        default=10_000, ge=0, description="Extra age beyond the debounce window before a buffer counts as orphaned"
    )

    # Tool Behaviour
    pantry_auto_restock: bool = Field(
        default=True, description="Add pantry items to the shopping list when they are marked finished"
    )
    max_tool_rounds: int = Field(default=3, ge=1, description="Maximum model round-trips that may request tools")

    # Notification Configuration
    notification_concurrency: int = Field(default=5, ge=1, description="Maximum concurrent outbound notifications")

    # AI Model Configuration
    model_id: str = Field(
        default="google/gemini-2.5-flash",
        description="Model ID for OpenRouter",
    )
    model_provider: str | None = Field(
        default=None, description="Restrict OpenRouter routing to a single upstream provider (optional)"
    )

    @model_validator(mode="after")
    def validate_debounce_timing(self) -> Self:
        """Ensure the debounce values leave room for a settle check to win."""
        if self.debounce_jitter_ms >= self.debounce_window_ms:
            msg = "DEBOUNCE_JITTER_MS must be smaller than DEBOUNCE_WINDOW_MS"
            raise ValueError(msg)
        if self.debounce_window_ms / 1000 >= self.processing_timeout_seconds:
            msg = "DEBOUNCE_WINDOW_MS must be shorter than PROCESSING_TIMEOUT_SECONDS"
            raise ValueError(msg)
        return self

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30

    # HTTP Status Codes
    HTTP_OK: int = 200
    HTTP_BAD_REQUEST: int = 400
    HTTP_FORBIDDEN: int = 403
    HTTP_SERVER_ERROR: int = 500

    # Rate Limiting
    MAX_REQUESTS_PER_MINUTE: int = 60

    # Twilio expects TwiML back from the inbound webhook
    TWIML_EMPTY_RESPONSE: str = "<Response></Response>"

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 100

    # Replies
    FALLBACK_REPLY: str = "I'm sorry, I had trouble processing your request."

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
