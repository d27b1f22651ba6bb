"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import List


class FinPayConfig(BaseSettings):
    """FinPay service configuration"""
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    cors_allow_origins: List[str] = ["*"]
    
    # Security configuration
    jwt_secret: str = "change-me-in-production-finpay-secret"
    jwt_expiry_hours: int = 24
    jwt_algorithm: str = "HS256"
    
    # scrypt cost parameters for credential hashing
    password_hash_n: int = 16384
    password_hash_r: int = 8
    password_hash_p: int = 1
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    
    # Business rules configuration
    starting_balance: int = 1000
    seed_demo_accounts: bool = True
    demo_password: str = "password123"
    
    class Config:
        env_prefix = "FINPAY_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = FinPayConfig()


def get_config() -> FinPayConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> FinPayConfig:
    """Reload configuration from environment"""
    global config
    config = FinPayConfig()
    return config
