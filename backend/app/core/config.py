from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Receipt Desk"
    environment: str = "development"
    api_v1_prefix: str = "/api/v1"

    secret_key: str = "change-this-secret-key"
    log_level: str = "INFO"

    database_url: str = "postgresql+psycopg2://receipts:receipts@db:5432/receipts"
    cors_origins: str = "http://localhost:3000"

    receipt_company_name: str = "KNS COSMETICS"
    receipt_company_phone: str = "078 700 3268 | 075 700 3268"
    currency_label: str = "LKR"

    legacy_cache_path: str = ""
    draft_idle_minutes: int = 120

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
