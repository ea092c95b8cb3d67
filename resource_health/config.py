from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    service_name: str = "resource-health-checker"
    env: str = "development"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    internal_api_key: str = ""  # empty = no auth on the API
    default_locale: str = "pt-BR"

    # Storage: empty database_url selects the in-memory store
    database_url: str = ""  # sqlite file path or sqlite:/// URL
    database_cache_enabled: bool = True
    memory_max_checks: int = 5000

    # Local catalog
    catalog_file: str = "data/resource-catalog.yaml"

    # Resource registry
    resource_registry_base_url: str = "http://localhost:3000/api/v1/orchestrator"
    resource_registry_api_key: str = ""
    resource_registry_cache_seconds: int = 30

    # Scheduler
    scheduler_enabled: bool = True
    scheduler_source: str = "registry"  # "registry" | "catalog"
    scheduler_loop_seconds: int = 30
    scheduler_jitter_max_seconds: int = 30

    # Collectors
    collector_timeout_seconds: float = 5.0

    # Logging
    log_level: str = "INFO"


settings = Settings()
