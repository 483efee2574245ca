"""
Configuration settings for the task recommender service

Manages all configuration parameters including:
- Model store backend selection
- Bandit and reward tuning
- Calibration collaborator (OpenAI) access
- API and logging settings
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from taskweave.config.config import BanditConfig, RewardConfig

# Load environment variables from .env file
load_dotenv()

MODEL_STORE_BACKENDS = ("memory", "file", "redis", "sql")


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=(),
    )

    # Model store settings
    model_store_backend: str = Field(
        default="file",
        description="Where per-user bandit models live: memory, file, redis or sql"
    )
    model_store_path: str = Field(
        default="data/models",
        description="Directory for the file backend"
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis URL for the redis backend"
    )
    redis_key_prefix: str = Field(
        default="taskweave:linucb",
        description="Key prefix for model documents in Redis"
    )
    database_url: str = Field(
        default="sqlite:///data/taskweave.db",
        description="SQLAlchemy URL for the sql backend"
    )

    # Contextual bandit settings
    bandit_alpha: float = Field(
        default=0.5,
        description="Exploration parameter for the LinUCB score"
    )
    reward_completion_success: float = Field(default=1.0)
    reward_completion_failure: float = Field(default=-0.2)
    reward_rejection: float = Field(default=-0.5)

    # Calibration collaborator settings
    openai_api_key: Optional[str] = Field(
        default=None,
        description="API key for synthetic calibration scenarios"
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="Model used to generate calibration scenarios"
    )
    calibration_scenarios: int = Field(
        default=30,
        description="Number of synthetic scenarios requested per calibration"
    )

    # API settings
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Logging settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[str] = Field(default=None, description="Log file path")

    def bandit_config(self) -> BanditConfig:
        """Build the bandit configuration with the tunable values applied."""
        return BanditConfig(
            alpha=self.bandit_alpha,
            rewards=RewardConfig(
                completion_success=self.reward_completion_success,
                completion_failure=self.reward_completion_failure,
                rejection=self.reward_rejection,
            ),
        )


# Global settings instance
_settings = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


class DevelopmentSettings(Settings):
    """Development environment settings."""
    debug: bool = True
    log_level: str = "DEBUG"


class ProductionSettings(Settings):
    """Production environment settings."""
    debug: bool = False
    log_level: str = "WARNING"
    model_store_backend: str = "redis"


class TestingSettings(Settings):
    """Testing environment settings."""
    debug: bool = True
    log_level: str = "DEBUG"
    model_store_backend: str = "memory"
    openai_api_key: Optional[str] = None


def get_environment_settings(environment: str = None) -> Settings:
    """Get settings for a specific environment."""
    if environment is None:
        environment = os.getenv("ENVIRONMENT", "development")

    if environment == "production":
        return ProductionSettings()
    elif environment == "testing":
        return TestingSettings()
    else:
        return DevelopmentSettings()


def validate_settings(settings: Settings) -> bool:
    """Validate configuration settings."""
    errors = []

    if settings.model_store_backend not in MODEL_STORE_BACKENDS:
        errors.append(f"Model store backend must be one of {', '.join(MODEL_STORE_BACKENDS)}")

    if not (0 <= settings.bandit_alpha <= 10):
        errors.append("Bandit alpha must be between 0 and 10")

    if settings.reward_rejection > 0:
        errors.append("Rejection reward must not be positive")

    if settings.calibration_scenarios <= 0:
        errors.append("Calibration scenario count must be positive")

    if not (1 <= settings.api_port <= 65535):
        errors.append("Invalid API port number")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
