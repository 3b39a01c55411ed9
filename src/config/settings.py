"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK (Junior Developer Guide) ───────────────────────
#
# pydantic-settings reads configuration from two sources, in priority order:
#
#   1. **Environment variables** - e.g., PERPLEXITY_API_KEY=pplx-abc123
#   2. **.env file** - key=value lines in the project root .env file
#
# Field `perplexity_api_key` maps to env var `PERPLEXITY_API_KEY`
# automatically.  Defaults below apply when neither source sets a value.
#
# Empty-string keys mean "not configured".  Providers do not fail at
# construction time; they raise ConfigurationError on first use so the API
# can still boot (and serve CRUD endpoints) without discovery credentials.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Event digest application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # === AI search endpoint (Perplexity, OpenAI-compatible) ===
    perplexity_api_key: str = ""
    perplexity_base_url: str = "https://api.perplexity.ai"
    discovery_model: str = "sonar-reasoning-pro"
    source_discovery_model: str = "sonar"
    profile_model: str = "sonar-reasoning-pro"
    discovery_timeout_seconds: float = 60.0
    # 1 = one source crawl after another.
    source_discovery_concurrency: int = 1

    # === Persistence ===
    database_path: str = "data/events.db"

    # === Email delivery (Resend) ===
    resend_api_key: str = ""
    resend_base_url: str = "https://api.resend.com"
    from_email: str = ""
    frontend_url: str = "http://localhost:3000"

    # === Newsletters ===
    newsletter_limit_per_user: int = 5
    weekly_batch_size: int = 10
    weekly_batch_delay_seconds: float = 60.0

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def is_discovery_configured(self) -> bool:
        """Return True when an API key for the AI search endpoint is set."""
        return bool(self.perplexity_api_key)

    def is_email_configured(self) -> bool:
        """Return True when both the Resend key and a sender address are set."""
        return bool(self.resend_api_key and self.from_email)
