from pathlib import Path
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

BASE_DIR = Path(__file__).resolve().parent.parent
ENV_FILE = BASE_DIR / ".env"


class Settings(BaseSettings):
    # Application
    PROJECT_NAME: str = "HomeKeeper"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Security
    SECRET_KEY: str = "DEV_JWT_SECRET_CHANGE_ME_BEFORE_DEPLOYING"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10
    REFRESH_TOKEN_EXPIRE_MINUTES: int = 10080  # 7 days
    BCRYPT_ROUNDS: int = 12

    # Session cookies
    JWT_COOKIE_NAME: str = "jwt"
    REFRESH_COOKIE_NAME: str = "refresh"
    CSRF_COOKIE_NAME: str = "csrfToken"
    CSRF_HEADER_NAME: str = "X-CSRF-Token"
    CSRF_TOKEN_BYTES: int = 32

    # Invitations
    INVITATION_EXPIRE_HOURS: int = 168  # 7 days

    # Repair membership drift between households and user roles on startup
    RECONCILE_ON_STARTUP: bool = True

    # Database
    # Default to a local sqlite file for development; override via .env in production.
    DATABASE_URL: str = "sqlite:///./homekeeper.db"

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE), case_sensitive=True, extra="ignore"
    )

    @model_validator(mode="after")
    def check_token_lifetimes(self):
        if self.REFRESH_TOKEN_EXPIRE_MINUTES <= self.ACCESS_TOKEN_EXPIRE_MINUTES:
            raise ValueError(
                "REFRESH_TOKEN_EXPIRE_MINUTES must be longer than ACCESS_TOKEN_EXPIRE_MINUTES"
            )
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


settings = Settings()
