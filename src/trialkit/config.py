"""
Configuration settings for trialkit.

All settings are loaded from environment variables (prefix ``TRIALKIT_``)
with sensible defaults. A ``.env`` file in the working directory is honoured
for local development.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from trialkit import naming


class Settings(BaseSettings):
    """Plugin settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_prefix="TRIALKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    # === Logging ===
    LOG_LEVEL: str = "ERROR"  # Plugin stays quiet unless asked
    ENVIRONMENT: str = "development"  # "production" switches to JSON logs
    
    # === Retry defaults (used when a marker omits them) ===
    DEFAULT_NAME_TEMPLATE: str = naming.DEFAULT_NAME_TEMPLATE
    DEFAULT_MIN_SUCCESS: int = 1
    DEFAULT_SUSPEND_FOR_MS: int = 0
    
    # === Feature Flags ===
    STOPWATCH_ENABLED: bool = True
