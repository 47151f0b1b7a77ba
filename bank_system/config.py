"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings


class BankConfig(BaseSettings):
    """Bank system configuration"""

    # Database configuration
    database_url: str = "sqlite:///bank_system.db"  # memory://, sqlite:///path, postgresql://...
    database_pool_size: int = 5
    lock_timeout_seconds: float = 5.0  # Bound on waiting for account/database locks

    # Business rules configuration
    recent_transactions_limit: int = 10
    customer_list_limit: int = 20
    default_account_type: str = "SAVINGS"

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # API configuration
    api_host: str = "127.0.0.1"
    api_port: int = 8090

    class Config:
        env_prefix = "BANK_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = BankConfig()


def get_config() -> BankConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BankConfig:
    """Reload configuration from environment"""
    global config
    config = BankConfig()
    return config
