"""
Application configuration
Loads settings from environment variables
"""
from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import Optional, List, Union
from pydantic import field_validator


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Kayvan Billing API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # API
    API_PREFIX: str = "/api"

    # Security
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # Default admin seeded on first startup
    DEFAULT_ADMIN_USERNAME: Optional[str] = None
    DEFAULT_ADMIN_PASSWORD: Optional[str] = None
    DEFAULT_ADMIN_EMAIL: Optional[str] = None

    # Database
    DATABASE_URL: str = "sqlite:///./kayvan.db"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 0

    # CORS Origins
    CORS_ORIGINS: Union[List[str], str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Billing
    DEFAULT_TAX_RATE: Decimal = Decimal("16.00")
    DEFAULT_PAYMENT_TERMS: int = 30
    QUOTATION_VALIDITY_DAYS: int = 30
    REFERENCE_RETRY_ATTEMPTS: int = 5
    NOTIFICATION_FEED_LIMIT: int = 50

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from string or list"""
        if isinstance(v, list):
            return v

        if isinstance(v, str):
            if not v.strip():
                return []
            origins = [origin.strip() for origin in v.split(",")]
            return [origin for origin in origins if origin]

        return ["http://localhost:3000", "http://localhost:5173"]

    class Config:
        env_file = ".env"
        case_sensitive = True


# Create settings instance
settings = Settings()
