"""Application configuration"""
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "product-api"
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # MongoDB
    MONGODB_URI: str = "mongodb://localhost:27017/product_db"
    MONGODB_DATABASE: str = "product_db"
    MONGODB_COLLECTION: str = "products"
    MONGODB_TIMEOUT_MS: int = 5000

    # Insert the sample catalog when the collection starts out empty
    SEED_SAMPLE_DATA: bool = True

    # Pagination
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
