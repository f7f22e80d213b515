import os
import logging
import logging.config
from dataclasses import dataclass, field
from typing import List
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# Rate limits are bound by the limiter decorators at import time, so they are
# process-wide and not part of the per-app Settings.
RATE_LIMIT = os.getenv("RATE_LIMIT", "100 per 15 minutes")
AUTH_RATE_LIMIT = os.getenv("AUTH_RATE_LIMIT", "10/minute")
GENERATION_RATE_LIMIT = os.getenv("GENERATION_RATE_LIMIT", "10 per 15 minutes")


def _env(name: str, default: str = ""):
    return field(default_factory=lambda: os.getenv(name, default))


def _env_int(name: str, default: int):
    return field(default_factory=lambda: int(os.getenv(name, str(default))))


def _env_list(name: str, default: str):
    return field(default_factory=lambda: [item.strip() for item in os.getenv(name, default).split(",") if item.strip()])


@dataclass
class Settings:
    """
    Runtime configuration, read from the environment (and `.env`) when the
    object is created. Tests build their own instance with keyword overrides.
    """
    env: str = _env("APP_ENV", "development")
    app_name: str = _env("APP_NAME", "Productify API")
    app_version: str = _env("APP_VERSION", "1.0.0")
    log_level: str = _env("LOG_LEVEL", "INFO")

    database_url: str = _env("DATABASE_URL", "sqlite:///./productify.db")

    jwt_secret: str = _env("JWT_SECRET", "devsecret")
    jwt_algorithm: str = _env("JWT_ALGORITHM", "HS256")
    jwt_expires_minutes: int = _env_int("JWT_EXPIRES_MINUTES", 24 * 60)
    refresh_token_days: int = _env_int("REFRESH_TOKEN_DAYS", 7)
    bcrypt_rounds: int = _env_int("BCRYPT_ROUNDS", 12)

    cors_allowed_origins: List[str] = _env_list("CORS_ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
    allowed_hosts: List[str] = _env_list("ALLOWED_HOSTS", "localhost,127.0.0.1,0.0.0.0,testserver")

    google_client_id: str = _env("GOOGLE_CLIENT_ID")
    google_client_secret: str = _env("GOOGLE_CLIENT_SECRET")
    google_redirect_uri: str = _env("GOOGLE_REDIRECT_URI", "http://localhost:8000/api/blogspot/callback")
    frontend_url: str = _env("FRONTEND_URL", "http://localhost:3000")

    openai_api_key: str = _env("OPENAI_API_KEY")
    openai_model: str = _env("OPENAI_MODEL", "gpt-4")
    http_timeout_seconds: int = _env_int("HTTP_TIMEOUT_SECONDS", 30)

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def is_development(self) -> bool:
        return self.env == "development"

    def validate(self) -> None:
        if len(self.jwt_secret) < 32:
            if self.is_production:
                raise RuntimeError("JWT_SECRET must be at least 32 characters in production")
            logger.warning("JWT_SECRET is shorter than 32 characters. Do not use this outside development.")


def configure_logging(settings: Settings) -> None:
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "simple": {"format": "%(levelname)s %(asctime)s %(name)s %(message)s"},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "simple"},
        },
        "root": {"handlers": ["console"], "level": settings.log_level.upper()},
    })


settings = Settings()
