# storefront/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized settings for the device-local storefront sync service.

    Required env vars (.env):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key, RLS applies)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Optional:
      - LOCAL_STORE_URL (SQLite file backing the device-local store)
      - SERIALIZE_REMOTE_WRITES (one in-flight remote write per cart line)
    """

    PROJECT_NAME: str = "Storefront Sync"
    API_V1_STR: str = "/api/v1"

    # Supabase config
    SUPABASE_URL: str
    SUPABASE_KEY: str

    # JWT verification of the shopper's access token
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Remote tables
    CART_TABLE: str = "cart_items"
    NOTIFICATIONS_TABLE: str = "notifications"
    PRODUCTS_TABLE: str = "products"

    # Device-local persistence
    LOCAL_STORE_URL: str = "sqlite:///./storefront_local.db"
    CART_STORAGE_KEY: str = "ecommerce-cart"
    SAVED_STORAGE_KEY: str = "ecommerce-saved"

    SERIALIZE_REMOTE_WRITES: bool = False
    ADVISORY_LIMIT: int = 50
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
