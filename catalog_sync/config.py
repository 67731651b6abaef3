from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

STORE_BACKENDS = ("sqlite", "memory")


class Settings(BaseSettings):
    """Runtime configuration for catalog generation and reconciliation."""

    store_backend: str = "sqlite"  # options: sqlite, memory
    store_path: str = "data/catalog.db"
    source_path: str = "updated-catalog.csv"
    batch_size: int = 1000
    catalog_size: Optional[int] = None
    seed: Optional[int] = None
    log_level: str = "DEBUG"

    model_config = SettingsConfigDict(env_file=".env", env_prefix="CATALOG_SYNC_")

    def validate_for_reconcile(self) -> None:
        if self.store_backend.lower() not in STORE_BACKENDS:
            raise ConfigurationError(
                f"Unknown store backend '{self.store_backend}', expected one of {', '.join(STORE_BACKENDS)}"
            )
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be at least 1, got {self.batch_size}")
        if not self.source_path:
            raise ConfigurationError("Missing 'source_path' setting")

    def validate_for_generation(self) -> None:
        self.validate_for_reconcile()
        if self.catalog_size is None:
            raise ConfigurationError("Missing 'size' parameter")
        if self.catalog_size < 1:
            raise ConfigurationError(f"Catalog size must be at least 1, got {self.catalog_size}")


@lru_cache
def get_settings() -> Settings:
    return Settings()
