from typing import Dict

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # DB
    DATABASE_URL: str = "sqlite:///./database.db"

    # Shopify app credentials / session tokens
    SHOPIFY_API_KEY: str = ""
    SHOPIFY_API_SECRET: str = ""
    SHOPIFY_API_VERSION: str = "2024-10"
    ALGORITHM: str = "HS256"
    # offline access tokens, e.g. {"my-shop.myshopify.com": "shpat_..."}
    SHOP_ACCESS_TOKENS: Dict[str, str] = {}

    # Catalog scanning
    DEACTIVATION_TAG: str = "auto-archived-oos"
    SCAN_PAGE_SIZE: int = 50
    MAX_SCAN_CANDIDATES: int = 500
    CATALOG_TIMEOUT_SECONDS: float = 30.0
    PROGRESS_EVERY: int = 10

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TICK_SECONDS: float = 10.0
    SCHEDULER_TIMEZONE: str = "UTC"

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
