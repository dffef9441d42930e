"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class LoanEngineConfig(BaseSettings):
    """Loan engine and host application configuration"""
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    # Payment submission
    payment_timeout_seconds: float = 5.0
    default_payment_method: str = "bank"
    
    # Business rules configuration
    money_precision: int = 2
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    
    class Config:
        env_prefix = "LOAN_ENGINE_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = LoanEngineConfig()
