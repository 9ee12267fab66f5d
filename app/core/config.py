"""
Configuration management using environment variables
"""

from pydantic_settings import BaseSettings
from typing import Optional
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """

    # Application
    APP_NAME: str = "SEO Metrics Dashboard"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"  # development, staging, production, test

    # API
    API_V1_PREFIX: str = "/api/v1"

    # MongoDB Configuration
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "seo_dashboard"
    MONGODB_MIN_POOL_SIZE: int = 10
    MONGODB_MAX_POOL_SIZE: int = 100
    REPORTING_COLLECTION: str = "reporting_data"
    IMPORTS_COLLECTION: str = "data_imports"
    INTEGRATIONS_COLLECTION: str = "integrations"
    CLUSTERS_COLLECTION: str = "performance_clusters"

    # Redis Configuration
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_SSL: bool = False
    CACHE_ENABLED: bool = True
    DASHBOARD_CACHE_TTL: int = 900

    # CORS
    CORS_ORIGINS: list = ["http://localhost:3000", "http://localhost:3001"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list = ["*"]
    CORS_ALLOW_HEADERS: list = ["*"]

    # Google Search Console / OAuth
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None
    GOOGLE_REDIRECT_URI: str = "http://localhost:8000/api/v1/gsc/auth/callback"
    GSC_API_BASE_URL: str = "https://searchconsole.googleapis.com/webmasters/v3"
    GOOGLE_TOKEN_URL: str = "https://oauth2.googleapis.com/token"
    GOOGLE_AUTH_URL: str = "https://accounts.google.com/o/oauth2/v2/auth"
    GSC_ROW_LIMIT: int = 25000
    GSC_REQUEST_TIMEOUT: float = 60.0

    # Imports
    IMPORT_BATCH_SIZE: int = 1000
    IMPORT_TIMEOUT_SECONDS: int = 1800
    MAX_UPLOAD_SIZE_MB: int = 50

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance
    This function is cached to avoid reading .env multiple times
    """
    return Settings()


# Global settings instance
settings = get_settings()
