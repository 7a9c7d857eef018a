from decimal import Decimal
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # MongoDB Configuration
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "whimsical_db"

    # Cart persistence
    CART_STORAGE_KEY: str = "whimsical-cart-v1"
    CART_STORAGE_PATH: str = "data/storage.json"
    CACHE_STORAGE_PATH: str = "data/cache.json"

    # Pricing defaults (used when site settings don't define them)
    DEFAULT_SHIPPING_FEE: Decimal = Decimal("350")
    DEFAULT_TAX_RATE: Decimal = Decimal("0.08")
    CURRENCY: str = "PHP"

    # Checkout policy
    CHECKOUT_ABORT_ON_ADJUSTMENT: bool = True
    CHECKOUT_SKIP_RECONCILE_ON_CATALOG_ERROR: bool = False

    # Cache
    CACHE_TTL_SECONDS: int = 300  # 5 minutes

    # Admin access (orders dashboard)
    ADMIN_API_KEY: str = ""

    # Application Settings
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]
    API_V1_PREFIX: str = "/api"
    PROJECT_NAME: str = "Whimsical By Achlys"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
