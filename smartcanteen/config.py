"""
SmartCanteen configuration
"""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from smartcanteen.errors import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    SERVICE_NAME: str = "smartcanteen"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["*"]

    # ── Storage ──────────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./smartcanteen.db"
    SEED_DEMO_DATA: bool = True  # load the starter menu and ledger into an empty store

    @property
    def database_url(self) -> str:
        # Supabase/Heroku sometimes return postgres://, SQLAlchemy requires postgresql://
        if self.DATABASE_URL.startswith("postgres://"):
            return self.DATABASE_URL.replace("postgres://", "postgresql://", 1)
        return self.DATABASE_URL

    # ── Text-generation service ──────────────────────────────
    FORECAST_PROVIDER: str = "anthropic"  # anthropic | offline
    ANTHROPIC_API_KEY: str = ""
    FORECAST_MODEL: str = "claude-sonnet-4-5-20250929"
    FORECAST_MAX_TOKENS: int = 2048
    FORECAST_TIMEOUT_SECONDS: float = 20.0
    FORECAST_HISTORY_WINDOW: int = 10

    # ── Canteen rules ────────────────────────────────────────
    FLASH_SALE_WINDOW_MINUTES: int = 10
    NOTIFICATION_LIMIT: int = 10
    SURPLUS_MARGIN: int = 3

    @property
    def ai_enabled(self) -> bool:
        return self.FORECAST_PROVIDER == "anthropic"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def validate_settings(settings: Settings) -> None:
    """Refuse to start with a configuration that can never work."""
    if settings.FORECAST_PROVIDER not in ("anthropic", "offline"):
        raise ConfigurationError(
            f"FORECAST_PROVIDER must be 'anthropic' or 'offline', got {settings.FORECAST_PROVIDER!r}"
        )
    if settings.ai_enabled and not settings.ANTHROPIC_API_KEY:
        raise ConfigurationError(
            "ANTHROPIC_API_KEY is required when FORECAST_PROVIDER=anthropic "
            "(set FORECAST_PROVIDER=offline to run on the built-in forecaster only)"
        )
    if settings.FORECAST_HISTORY_WINDOW < 1:
        raise ConfigurationError("FORECAST_HISTORY_WINDOW must be at least 1")
