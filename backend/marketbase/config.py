"""
Application configuration
"""

from functools import lru_cache
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(case_sensitive=True, extra="ignore")

    # API Configuration
    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "MarketBase API"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"

    # Database Configuration
    DATABASE_URL: str = "postgresql+asyncpg://localhost:5432/marketbase"
    DATABASE_ECHO: bool = False

    # Elasticsearch Configuration
    ELASTICSEARCH_NODE: str = "http://localhost:9200"
    ELASTICSEARCH_REQUEST_TIMEOUT: float = 10.0
    PRODUCTS_INDEX: str = "products"
    USERS_INDEX: str = "users"
    ARTICLES_INDEX: str = "articles"
    REINDEX_BATCH_SIZE: int = 500

    # Redis / Celery Configuration
    REDIS_URL: str = "redis://redis:6379/0"
    BROKER_URL: str = "redis://redis:6379/1"
    RESULT_BACKEND: str = "redis://redis:6379/2"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # CORS Configuration
    CORS_ORIGINS: List[str] = ["*"]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()
