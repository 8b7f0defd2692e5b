"""Application configuration"""

from decimal import Decimal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # API
    API_V1_PREFIX: str = "/api"
    PROJECT_NAME: str = "Invoicing API"
    VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Security
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_MINUTES: int = 1440  # 24 hours

    # Database
    DATABASE_URL: str

    # Invoicing defaults
    # WHY: These mirror the defaults a new invoice receives when the request
    # leaves them out, so the calculator and the lifecycle agree on them.
    DEFAULT_CURRENCY: str = "EUR"
    DEFAULT_TAX_RATE: Decimal = Decimal("21.00")
    DEFAULT_DUE_DAYS: int = 30

    # Invoice numbering
    INVOICE_NUMBER_WIDTH: int = 4
    INVOICE_NUMBER_MAX_RETRIES: int = 3

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @property
    def async_database_url(self) -> str:
        """Get async database URL"""
        return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")


settings = Settings()
