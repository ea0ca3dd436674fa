import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

_LOCAL_ENVIRONMENTS = {"development", "test"}


def _environment() -> str:
    return os.getenv("ENVIRONMENT", "").strip().lower()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = _environment()
    if environment == "development":
        return "postgresql+psycopg://localhost:5434/docvault"
    if environment == "test":
        return "sqlite://"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


def _resolve_jwt_secret() -> str:
    secret = os.getenv("JWT_SECRET_KEY")
    if secret:
        return secret
    if _environment() in _LOCAL_ENVIRONMENTS:
        return "docvault-local-secret"
    raise ValueError(
        "JWT_SECRET_KEY is not set. Tokens cannot be signed without a secret."
    )


def _to_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    environment: str = _environment()
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    # Auth
    jwt_secret_key: str = _resolve_jwt_secret()
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    jwt_expires_minutes: int = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))
    bcrypt_rounds: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Upload settings
    upload_dir: str = os.getenv("UPLOAD_DIR", "uploads")
    upload_max_size_bytes: int = int(
        os.getenv("UPLOAD_MAX_SIZE_BYTES", str(10 * 1024 * 1024))
    )  # 10MB
    upload_allowed_extensions: str = os.getenv(
        "UPLOAD_ALLOWED_EXTENSIONS", "jpg,jpeg,png,gif,pdf,doc,docx,txt,csv,xlsx"
    )

    # Celery / ingestion
    celery_broker_url: str = os.getenv(
        "CELERY_BROKER_URL", "redis://localhost:6379/0"
    )
    celery_result_backend: str = os.getenv(
        "CELERY_RESULT_BACKEND", "redis://localhost:6379/1"
    )
    ingestion_auto_queue: bool = _to_bool(os.getenv("INGESTION_AUTO_QUEUE", "true"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "text")

    app_name: str = os.getenv("APP_NAME", "DocVault API")


settings = Settings()
