"""
Configuration Management for extrack

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Business constants (paid tolerance, look-back window, the name of the
auto-provisioned savings category) live next to the connection settings
so they can be tuned per deployment without touching service code.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational database configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        default="sqlite:///extrack.db",
        description="SQLAlchemy database URL"
    )
    echo: bool = Field(
        default=False,
        description="Log every SQL statement"
    )
    connect_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for the startup connectivity check"
    )

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """A URL needs at least a dialect and a separator."""
        if "://" not in v:
            raise ValueError(f"Not a database URL: {v}")
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum level for the structured log"
    )

    # Recurring bills
    bill_paid_tolerance: Decimal = Field(
        default=Decimal("0.99"),
        gt=0,
        le=1,
        description="Fraction of the amount due that counts as fully paid"
    )

    # Budgets
    budget_suggestion_months: int = Field(
        default=3,
        ge=1,
        le=24,
        description="Calendar months of history used for budget suggestions"
    )

    # Saving goals
    savings_category_name: str = Field(
        default="Savings",
        min_length=1,
        description="Category used for goal mirror transactions"
    )
    savings_category_icon: str = Field(
        default="PiggyBank",
        description="Icon of the auto-provisioned savings category"
    )
    savings_category_color: str = Field(
        default="#10b981",
        description="Color of the auto-provisioned savings category"
    )
    default_goal_color: str = Field(
        default="#3b82f6",
        description="Color for goals created without one"
    )

    # Listing limits
    recent_transactions_limit: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Transactions shown on the dashboard"
    )
    transactions_page_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Maximum transactions returned for one month"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Unknown log level: {v}. Allowed: {allowed}")
        return v.upper()


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.database
        results["database"] = True
    except Exception as e:
        results["database"] = False
        results["database_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
