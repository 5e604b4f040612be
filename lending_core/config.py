"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class LendingConfig(BaseSettings):
    """Lending engine configuration"""
    
    # Database configuration
    database_url: str = "sqlite:///lending.db"
    use_sqlite: bool = False
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    # Loan period discretization
    period_in_seconds: int = 86400
    negative_time_offset: int = 3 * 3600  # periods roll over at 03:00 UTC
    
    # Fixed-point scaling
    interest_rate_factor: int = 10 ** 9
    accuracy_factor: int = 10000
    
    # Business rules
    cooldown_in_periods: int = 3
    interest_formula: str = "compound"  # compound or simple
    track_credit_line_balances: bool = False
    
    class Config:
        env_prefix = "LENDING_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = LendingConfig()


def get_config() -> LendingConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LendingConfig:
    """Reload configuration from environment"""
    global config
    config = LendingConfig()
    return config
