"""
Payroll Back Office - Configuration Settings

This module handles all application configuration using Pydantic Settings.
Environment variables are loaded from .env file.
"""

from datetime import time
from functools import lru_cache
from typing import List, Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ===========================================
    # APPLICATION CONFIGURATION
    # ===========================================
    app_name: str = "Payroll Back Office"
    app_env: str = "development"
    debug: bool = False
    api_version: str = "v1"

    # ===========================================
    # DATABASE CONFIGURATION
    # ===========================================
    # Production deployments point this at postgresql+asyncpg://...
    database_url_async: str = "sqlite+aiosqlite:///./payroll.db"
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # ===========================================
    # JWT AUTHENTICATION
    # ===========================================
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # ===========================================
    # SEEDING
    # ===========================================
    # Bootstrap seeder_admin account created on startup when both are set
    seed_admin_email: Optional[str] = None
    seed_admin_password: Optional[str] = None

    # ===========================================
    # CORS
    # ===========================================
    cors_origins: str = "http://localhost:3000"

    # ===========================================
    # PAYROLL POLICY
    # ===========================================
    default_leave_entitlement: int = 15
    weekly_rest_day: int = 6  # Python weekday numbering, 6 = Sunday
    working_days_per_month: int = 26
    hours_per_day: int = 8
    holiday_hours_assumed: int = 8

    # Attendance timestamps are stored as naive wall-clock time in this zone
    timezone: str = "Asia/Manila"

    # Shift schedule used to derive tardiness/undertime/overtime
    shift_start: time = time(8, 0)
    late_threshold: time = time(9, 0)
    absent_threshold: time = time(13, 30)
    shift_end: time = time(17, 0)
    night_window_start: time = time(22, 0)
    night_window_end: time = time(6, 0)

    # assume_full: compute with full attendance and flag the record
    # require_attendance: fail the employee's computation instead
    attendance_fallback_policy: Literal["assume_full", "require_attendance"] = "assume_full"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured database is SQLite."""
        return self.database_url_async.startswith("sqlite")

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
