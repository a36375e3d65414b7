"""
Application settings with Pydantic v2 validation.

Loads configuration from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Backing record store configuration."""

    model_config = SettingsConfigDict(env_prefix="STORE_")

    backend: Literal["airtable", "memory"] = "memory"

    # Airtable REST API
    airtable_endpoint_url: str = "https://api.airtable.com"
    airtable_api_key: str = ""
    airtable_base_id: str = ""
    timeout: float = 30.0
    page_size: int = 100  # Airtable maximum

    # Retry settings (transient failures only)
    max_retries: int = 3
    retry_delay: float = 0.5
    retry_multiplier: float = 2.0

    # Collection (table) names, exact match with the base
    stock_table: str = "Stock"
    movements_table: str = "Stock_Movements"
    orders_table: str = "Orders"
    order_items_table: str = "Order_Items"
    purchase_receives_table: str = "Purchase_Receives"
    receive_items_table: str = "Receive_Items"
    transfer_receipts_table: str = "Transfer_Receipts"
    adjustments_table: str = "Inventory_Adjustments"
    adjustment_items_table: str = "Adjustment_Items"


class StockSettings(BaseSettings):
    """Stock repository configuration."""

    model_config = SettingsConfigDict(env_prefix="STOCK_")

    default_reorder_level: int = 10

    # Per-(branch, product) single-writer lock around read-modify-write.
    # Disabling it reproduces the store's lost-update race.
    serialize_writes: bool = True

    # Optimistic version check before each write
    conflict_retries: int = 3
    conflict_backoff: float = 0.05

    # Movement keys remembered on each stock record; a re-driven movement
    # whose key is still listed is not applied again
    applied_history: int = 200


class TransferSettings(BaseSettings):
    """Branch transfer configuration."""

    model_config = SettingsConfigDict(env_prefix="TRANSFER_")

    id_prefix: str = "TRF"
    # Warn (never block) when the source branch looks short at initiation
    check_source_stock: bool = False


class APISettings(BaseSettings):
    """API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    cors_origins: list[str] = ["*"]


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Stock Ledger"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    # auto: console in development, JSON elsewhere
    log_format: Literal["auto", "console", "json"] = "auto"

    # Sub-settings
    store: StoreSettings = Field(default_factory=StoreSettings)
    stock: StockSettings = Field(default_factory=StockSettings)
    transfer: TransferSettings = Field(default_factory=TransferSettings)
    api: APISettings = Field(default_factory=APISettings)


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
