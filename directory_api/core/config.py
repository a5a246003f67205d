"""
Application settings

Environment-driven configuration for the directory API, loaded once per process
from the environment and an optional .env file.
"""
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration read from environment variables"""

    # Application
    environment: str = "development"
    app_name: str = "Business Directory API"
    app_version: str = "1.0.0"
    log_level: Optional[str] = None  # falls back to the environment profile

    # Database
    database_url: str = "sqlite:///./directory.db"
    database_read_url: Optional[str] = None
    db_pool_size: int = Field(5, ge=1)
    db_max_overflow: int = Field(45, ge=0)  # 50 connections at peak
    db_pool_timeout: int = 10
    db_pool_recycle: int = 30 * 60
    db_statement_timeout_ms: int = 30000
    db_slow_query_ms: int = 1000

    # Authentication
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_days: int = 7
    password_hash_iterations: int = 390000

    # Task queue
    celery_broker_url: Optional[str] = None
    celery_result_backend: Optional[str] = None
    celery_task_always_eager: bool = False
    redis_url: str = "redis://localhost:6379/0"

    # Email
    smtp_server: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    from_email: str = "noreply@directory.local"
    frontend_url: str = "http://localhost:3000"

    # Uploads
    uploads_dir: str = "uploads"
    max_upload_files: int = 10
    max_upload_size_mb: int = 5

    # Metrics
    response_rate_window_days: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def get_celery_broker_url(self) -> str:
        return self.celery_broker_url or self.redis_url

    def get_celery_result_backend(self) -> str:
        return self.celery_result_backend or self.redis_url

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_server and self.smtp_user and self.smtp_password)


@lru_cache()
def get_settings() -> Settings:
    """Return the cached process-wide settings"""
    return Settings()
