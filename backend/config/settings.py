from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Legacy store (curated_listings table)
    database_url: str = "sqlite:///./toyotapicks.db"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False

    cors_origins: list[str] = ["http://localhost:3000"]

    # Primary live store (PostgREST-style listings API). Empty URL disables it.
    primary_store_url: str = ""
    primary_store_api_key: str = ""
    primary_store_table: str = "marketcheck_listings"
    primary_store_timeout_seconds: float = 10.0
    primary_store_fetch_limit: int = 1000

    # Static fallback dataset; empty path means the packaged JSON file
    fallback_dataset_path: str = ""

    # Pagination
    default_page_size: int = 25
    max_visible_pages: int = 5

    # Raise instead of clamping when a computed score leaves [0, 100]
    strict_invariants: bool = False

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def primary_store_enabled(self) -> bool:
        return bool(self.primary_store_url)

    def validate_production(self) -> None:
        """Raise if production is using insecure or incomplete defaults."""
        if self.is_production and self.primary_store_url and not self.primary_store_api_key:
            raise ValueError("PRIMARY_STORE_API_KEY must be set when PRIMARY_STORE_URL is configured")
        if self.is_production and self.strict_invariants:
            raise ValueError("STRICT_INVARIANTS must be disabled in production")
        if self.is_production and "sqlite" in self.database_url:
            raise ValueError("DATABASE_URL must point at a server database in production")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
