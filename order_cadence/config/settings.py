"""
Order Cadence Engine
Centralized Configuration Management

Pydantic settings with environment variable support for the database,
product category vocabulary, synchronization schedule and logging.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="order_cadence", alias="database", description="Database name")
    user: str = Field(default="order_cadence", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    pool_size: int = Field(default=5, description="Connection pool size")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, alias="DATABASE_URL", description="Database URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL - uses DATABASE_URL if set, otherwise asyncpg from host/port"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class CategorySettings(BaseSettings):
    """Product tag vocabulary per category"""

    model_config = SettingsConfigDict(env_prefix="CATEGORY_")

    automation_tags: List[str] = Field(default=["includeAutomation"], description="Tags marking automation products")
    automation_exclude_tags: List[str] = Field(default=[], description="Tags that disqualify a product from automation")
    dog_extra_tags: List[str] = Field(default=["dogExtra1"], description="Tags marking dog extra products")
    default_tags: List[str] = Field(default=[], description="Tags marking default category products")


class SyncSettings(BaseSettings):
    """Categorized orders synchronization configuration"""

    model_config = SettingsConfigDict(env_prefix="SYNC_")

    interval_hours: int = Field(default=24, description="How often the scheduled sync runs")
    lookback_hours: int = Field(default=48, description="Order creation window for each sync")
    order_status: str = Field(default="any", description="Order status filter")
    max_orders_limit: Optional[int] = Field(default=None, description="Max orders per sync")
    min_orders_per_customer: Optional[int] = Field(default=3, description="Min orders for a customer to be included")
    max_concurrency: int = Field(default=1, description="Customers processed concurrently")

    # Snapshot exports
    products_path: str = Field(default="./data/snapshot/products.json", description="Products export")
    orders_path: str = Field(default="./data/snapshot/orders.ndjson", description="Orders export")

    @field_validator("max_concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """Concurrency must be positive"""
        if v < 1:
            raise ValueError("max_concurrency must be at least 1")
        return v


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="order-cadence", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    categories: CategorySettings = Field(default_factory=CategorySettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
