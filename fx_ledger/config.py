"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerConfig(BaseSettings):
    """FX ledger configuration"""

    model_config = SettingsConfigDict(
        env_prefix="FXLEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Storage configuration
    database_path: str = "fx_ledger.db"
    settings_path: str = "fx_ledger_settings.db"  # Local key-value settings, separate from the ledger
    use_in_memory_storage: bool = False

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Exchange rate defaults (TZS per unit of foreign currency)
    default_cny_rate: str = "376"
    default_usdt_rate: str = "2380"

    # Backup metadata
    app_version: str = "1.0"
    backup_format_version: str = "1.0"
    device_info: str = ""  # Empty = derived from the host platform

    # Migration configuration
    auto_migrate: bool = True

    # API configuration
    api_host: str = "127.0.0.1"
    api_port: int = 8090


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
