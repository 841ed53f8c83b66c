from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    app_name: str = "Welcome Code API"
    app_version: str = "0.1.0"
    environment: str = "local"
    log_json: bool = False

    shopify_shop: str = ""
    shopify_admin_api_version: str = "2024-07"
    shopify_admin_access_token: str = ""
    shopify_timeout_seconds: float = 10.0

    app_proxy_signing_secret: str = ""

    smtp_enabled: bool = False
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    smtp_use_ssl: bool = False
    smtp_from_email: str | None = None
    smtp_timeout_seconds: float = 10.0

    store_name: str = "Tiadem"
    store_url: str = "https://tiadem.com.au"

    welcome_discount_title: str = "Welcome 10% - First Purchase"
    welcome_code_prefix: str = "WELCOME-"
    welcome_code_max_attempts: int = 5

    sentry_dsn: str | None = None
    sentry_traces_sample_rate: float = 0.0
    sentry_enable_logs: bool = False
    sentry_log_level: str = "error"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
