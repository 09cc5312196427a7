# FILE: cbt_engine/config.py
"""
Configuration management for the CBT exam attempt engine
Loads from environment variables with validation
"""
from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True
    )

    # Backend server
    backend_host: str = Field(default="0.0.0.0", alias="BACKEND_HOST")
    backend_port: int = Field(default=8000, alias="BACKEND_PORT")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Data paths
    data_dir: str = Field(default="./data", alias="DATA_DIR")
    exams_dir: str = Field(default="./data/exams", alias="EXAMS_DIR")
    orderings_dir: str = Field(default="./data/orderings", alias="ORDERINGS_DIR")
    results_dir: str = Field(default="./data/results", alias="RESULTS_DIR")

    # Attempt engine
    review_confidence_threshold: float = Field(
        default=0.7,
        alias="REVIEW_CONFIDENCE_THRESHOLD",
        description="Essay results with aggregate confidence below this value are routed "
                    "to pending_review instead of provisional."
    )

    countdown_tick_seconds: float = Field(
        default=1.0,
        alias="COUNTDOWN_TICK_SECONDS",
        description="Interval of the cooperative countdown tick while an attempt is running"
    )

    finalized_cache_size: int = Field(
        default=1000,
        alias="FINALIZED_CACHE_SIZE",
        description="Finalized results kept in memory for repeated finalize/status calls; "
                    "older ones are only available from the result store."
    )

    # CORS
    cors_origins: List[str] = Field(default=["http://localhost:3000"], alias="CORS_ORIGINS")

    # Validators
    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        if v not in ["development", "staging", "production", "test"]:
            raise ValueError("environment must be 'development', 'staging', 'production' or 'test'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        v = v.upper()
        if v not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError("log_level must be a standard logging level name")
        return v

    @field_validator("review_confidence_threshold")
    @classmethod
    def validate_review_confidence_threshold(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError("review_confidence_threshold must be between 0.0 and 1.0")
        return v

    @field_validator("countdown_tick_seconds")
    @classmethod
    def validate_countdown_tick_seconds(cls, v):
        if v <= 0:
            raise ValueError("countdown_tick_seconds must be positive")
        if v > 60:
            raise ValueError("countdown_tick_seconds should not exceed 60 seconds")
        return v

    @field_validator("finalized_cache_size")
    @classmethod
    def validate_finalized_cache_size(cls, v):
        if v < 1:
            raise ValueError("finalized_cache_size must be at least 1")
        return v


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create singleton settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings():
    """Reload settings (useful for testing)"""
    global _settings
    _settings = None
    return get_settings()
