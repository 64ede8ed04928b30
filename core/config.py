from pydantic_settings import BaseSettings
from pydantic import ConfigDict

class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env")

    ENV: str = "development"

    DATABASE_URL: str = "sqlite:///./app.db"
    APP_BASE_URL: str = "http://localhost:8000"

    # One-time login tokens
    ONE_TIME_TOKEN_ENTROPY_BYTES: int = 12
    ONE_TIME_TOKEN_TTL_MINUTES: int = 60
    USED_TOKEN_RETENTION_DAYS: int = 30
    SESSION_TTL_HOURS: int = 24 * 7

    CELERY_BROKER_URL: str = "memory://"

    MAIL_USERNAME: str = ""
    MAIL_PASSWORD: str = ""
    MAIL_FROM: str = "no-reply@localhost"
    MAIL_SERVER: str = ""
    MAIL_PORT: int = 587
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]


settings = Settings()
