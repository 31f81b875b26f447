# backend/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./inventory.db"

    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    FRONTEND_URL: str = "http://localhost:4200"
    LOG_LEVEL: str = "INFO"
    CURRENCY: str = "USD"

    # Default accounts and catalog rows inserted by bootstrap.py
    SEED_ON_STARTUP: bool = True
    ADMIN_USERNAME: str = "admin"
    ADMIN_EMAIL: str = "admin@inventory.com"
    ADMIN_PASSWORD: str = "admin123"

    model_config = SettingsConfigDict(env_file=str(env_path), extra="ignore")

    @property
    def database_url(self) -> str:
        # Hosted Postgres hands out postgres:// which SQLAlchemy no longer accepts
        url = self.DATABASE_URL
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        return url


settings = Settings()
