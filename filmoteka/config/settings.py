from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from pydantic import field_validator
import json


class Settings(BaseSettings):
    # Общие настройки
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = True

    # Сервисы
    AUTH_SERVICE_HOST: str = "0.0.0.0"
    AUTH_SERVICE_PORT: int = 8081
    CATALOG_SERVICE_HOST: str = "0.0.0.0"
    CATALOG_SERVICE_PORT: int = 8082
    HTTP_TIMEOUT_KEEP_ALIVE: int = 10

    # PostgreSQL
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "filmoteka"
    POSTGRES_PASSWORD: str = "filmoteka_password"
    POSTGRES_DB: str = "filmoteka"
    DATABASE_DSN: Optional[str] = None

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_DSN:
            return self.DATABASE_DSN
        return f"postgresql+psycopg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Redis: хранилище сессий и CSRF токенов
    SESSION_STORE_URL: str = "redis://redis:6379/0"
    CSRF_STORE_URL: str = "redis://redis:6379/1"
    REDIS_SOCKET_TIMEOUT: float = 5.0

    # Сессии и CSRF
    SESSION_TTL_SECONDS: int = 24 * 60 * 60
    CSRF_TTL_SECONDS: int = 60 * 60
    SESSION_COOKIE_NAME: str = "session_id"

    # Загрузка файлов
    AVATAR_DIR: str = "media/avatars"
    AVATAR_URL_PREFIX: str = "/avatars/"
    POSTER_DIR: str = "media/icons"
    POSTER_URL_PREFIX: str = "/icons/"
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8080"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return json.loads(v)
        return v

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


settings = Settings()
