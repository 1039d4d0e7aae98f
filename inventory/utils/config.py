"""
Configuration management using pydantic-settings

Loads configuration from environment variables and .env file
"""

import logging

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database Configuration
    DB_PATH: str = Field(
        default="inventory.db",
        description="Path of the embedded SQLite database file"
    )

    # Item Configuration
    SERIAL_PREFIX: str = Field(
        default="AA",
        pattern=r"^[A-Z]{2}$",
        description="Two-letter prefix used for the first serial number"
    )

    # Legacy migration defaults
    DEFAULT_REFERENCE_NAME: str = Field(
        default="Unknown",
        description="Name given to reference rows created for blank legacy values"
    )
    DEFAULT_PHONE_NUMBER: str = Field(
        default="0000000000",
        description="Phone number given to persons created during migration"
    )

    # Application Settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance"""
    return settings


def configure_logging(level: str = None):
    """Apply LOG_LEVEL to the root logger"""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
