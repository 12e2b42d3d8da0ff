from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parent.parent
ENV_FILE = BASE_DIR / ".env"


class Settings(BaseSettings):
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str

    RABBITMQ_URL: str
    RABBITMQ_QUEUE: str = "sms-requests"

    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # Off by default: a second outcome for the same message overwrites the first.
    REJECT_DUPLICATE_OUTCOMES: bool = False
    STUCK_PENDING_SECONDS: int = 300

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
