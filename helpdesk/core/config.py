from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    MIN_PASSWORD_LENGTH: int = 6

    DASHBOARD_ORIGINS: str = ""
    TRUST_PROXY_HEADERS: bool = False
    LOGIN_RATE_LIMIT_WINDOW_SEC: int = 300
    LOGIN_RATE_LIMIT_MAX_ATTEMPTS: int = 5

    REPORT_TIMEZONE: str = "UTC"
    RECENT_TICKETS_LIMIT: int = 5


settings = Settings()
