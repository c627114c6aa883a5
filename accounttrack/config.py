"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from pydantic_settings import BaseSettings, SettingsConfigDict


class AccountTrackConfig(BaseSettings):
    """AccountTrack approval service configuration"""

    model_config = SettingsConfigDict(
        env_prefix="ACCOUNTTRACK_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage configuration
    use_sqlite: bool = True
    database_path: str = "accounttrack.db"

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Business rules configuration
    high_value_threshold: Decimal = Decimal("100000")  # strictly greater than requires approval
    default_reviewer_id: str = "1"

    # Identifier allocation
    identifier_suffix_digits: int = 4
    identifier_max_attempts: int = 50

    # Feature flags
    enable_audit_logging: bool = True


# Global configuration instance
config = AccountTrackConfig()


def get_config() -> AccountTrackConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> AccountTrackConfig:
    """Reload configuration from environment"""
    global config
    config = AccountTrackConfig()
    return config
