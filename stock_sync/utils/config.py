"""Configuration management using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class APIConfig(BaseModel):
    """HTTP transport settings shared by both API clients."""
    timeout: int = 30
    max_retries: int = 3
    retry_delay: float = 1.0
    exponential_backoff: bool = False


class SyncConfig(BaseModel):
    """Reconciliation cycle settings."""
    batch_size: int = 50
    batch_delay: float = 1.0
    max_retries: int = 3
    retry_delay: float = 1.0
    parallel_processing: bool = False
    max_workers: int = 5
    lookup_delay: float = 0.0


class WooCommerceConfig(BaseModel):
    """WooCommerce-specific configuration."""
    api_version: str = "wc/v3"
    page_size: int = 100
    query_string_auth: bool = True
    write_delay: float = 0.7
    verify_ssl: bool = True


class LocalAPIConfig(BaseModel):
    """Local point-of-sale backend configuration."""
    search_endpoint: str = "/api/stock"
    search_param: str = "barcode"
    health_endpoint: str = "/"
    # None keeps the built-in field order from services.normalizer
    quantity_fields: Optional[List[str]] = None


class LoggingFilesConfig(BaseModel):
    """Log file paths."""
    sync: str = "logs/sync.log"
    error: str = "logs/error.log"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    max_bytes: int = 10485760  # 10MB
    backup_count: int = 5
    files: LoggingFilesConfig = LoggingFilesConfig()


class SchedulerConfig(BaseModel):
    """Scheduler configuration."""
    timezone: str = "Asia/Jakarta"
    max_instances: int = 1
    coalesce: bool = True
    misfire_grace_time: int = 300
    initial_delay_seconds: int = 15
    stats_interval_seconds: int = 60
    shutdown_grace_period: float = 2.0


class YAMLConfig(BaseModel):
    """Configuration loaded from YAML file."""
    api: APIConfig = APIConfig()
    sync: SyncConfig = SyncConfig()
    woocommerce: WooCommerceConfig = WooCommerceConfig()
    local_api: LocalAPIConfig = LocalAPIConfig()
    logging: LoggingConfig = LoggingConfig()
    scheduler: SchedulerConfig = SchedulerConfig()


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # WooCommerce settings
    woocommerce_url: str = Field(..., description="WooCommerce store URL")
    woocommerce_consumer_key: str = Field(..., description="WooCommerce REST consumer key")
    woocommerce_consumer_secret: str = Field(..., description="WooCommerce REST consumer secret")

    # Local backend settings
    local_api_base_url: str = Field(..., description="Local POS backend base URL")

    # Application settings
    environment: str = Field(default="development", description="Environment (development/production)")
    log_level: Optional[str] = Field(default=None, description="Override log level")
    sync_interval_minutes: int = Field(default=15, description="Sync interval in minutes")
    port: int = Field(default=8000, description="Status server port")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


class AppConfig:
    """Combined application configuration."""

    def __init__(self, config_path: Optional[Path] = None):
        self.env = Settings()

        # Load YAML config
        if config_path is None:
            config_path = Path(__file__).parent.parent.parent / "config" / "config.yml"
        if config_path.exists():
            with open(config_path, "r") as f:
                yaml_data = yaml.safe_load(f) or {}
                self.yaml = YAMLConfig(**yaml_data)
        else:
            self.yaml = YAMLConfig()

        # Override log level if specified in env
        if self.env.log_level:
            self.yaml.logging.level = self.env.log_level

    @property
    def api(self) -> APIConfig:
        return self.yaml.api

    @property
    def sync(self) -> SyncConfig:
        return self.yaml.sync

    @property
    def woocommerce(self) -> WooCommerceConfig:
        return self.yaml.woocommerce

    @property
    def local_api(self) -> LocalAPIConfig:
        return self.yaml.local_api

    @property
    def logging(self) -> LoggingConfig:
        return self.yaml.logging

    @property
    def scheduler(self) -> SchedulerConfig:
        return self.yaml.scheduler

    @property
    def is_production(self) -> bool:
        return self.env.environment.lower() == "production"


@lru_cache()
def get_config() -> AppConfig:
    """Get cached configuration instance."""
    return AppConfig()
