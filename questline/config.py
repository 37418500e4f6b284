"""Application configuration loaded from environment variables and .env file."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Values are loaded from environment variables first,
    then from a .env file in the project root as fallback.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    DATABASE_URL: str = "sqlite:///./dev.db"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    DEFAULT_TIMEZONE: str = "UTC"
    CONTENT_PATH: str = "questline/data/content.json"

    # Completion / day close
    QUALIFYING_THRESHOLD: float = 0.8
    DEFAULT_PARTIAL_MIN_PERCENT: float = 50.0
    ROTATING_UNLOCK_DAYS: int = 7

    # Streak & grace
    GRACE_TOKEN_EARN_DAYS: int = 7
    MAX_GRACE_TOKENS: int = 3
    RECOVERY_WINDOW_DAYS: int = 1

    # Debuff after a bad day
    DEBUFF_MIN_MISSED_CORE: int = 2
    DEBUFF_HOURS: int = 24
    DEBUFF_MULTIPLIER: float = 0.9

    # XP modifiers (each toggle-able)
    STREAK_BONUS_ENABLED: bool = True
    WEEKEND_BONUS_ENABLED: bool = True
    WEEKEND_MULTIPLIER: float = 1.10
    SEASONAL_BONUS_ENABLED: bool = True
    HARD_MODE_ENABLED: bool = True
    HARD_MODE_MULTIPLIER: float = 1.5
    HARD_MODE_UNLOCK_LEVEL: int = 25
    DEBUFF_ENABLED: bool = True

    # Level curve / base amount
    LEVEL_BASE_XP: int = 100
    LEVEL_EXPONENT: float = 1.5
    STAT_BONUS_XP_SCALE: float = 0.0


settings = Settings()
