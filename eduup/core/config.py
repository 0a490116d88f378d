# Fichier: eduup/core/config.py
from pydantic_settings import BaseSettings
from typing import Optional, List
from pydantic import ValidationError, field_validator
import sys


class Settings(BaseSettings):
    DATABASE_URL: str
    SECRET_KEY: str
    ENVIRONMENT: str = "development"

    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:8000",
        "http://127.0.0.1:5173",
    ]
    FRONTEND_BASE_URL: Optional[str] = None

    # --- Auth configuration ---
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # --- Default back-office account created at startup ---
    DEFAULT_ADMIN_EMAIL: str = "admin@eduup.cz"
    DEFAULT_ADMIN_PASSWORD: str = "password"

    # --- Gemini chat ---
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.0-flash"
    GEMINI_TIMEOUT_SECONDS: int = 60
    CHAT_HISTORY_LIMIT: int = 30
    CHAT_BLOCKED_KEYWORDS: List[str] = ["sex", "politika"]

    # --- Play & admin limits ---
    ATTEMPT_HISTORY_LIMIT: int = 20
    ADMIN_EXERCISE_LIST_LIMIT: int = 200

    # Performance instrumentation
    SQLALCHEMY_SLOW_QUERY_THRESHOLD_MS: int = 300

    class Config:
        env_file = ".env"

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def _normalize_database_url(cls, value: str) -> str:
        """Ensure Postgres URLs always use the asyncpg driver.

        Managed Postgres providers still hand out ``postgres://`` URLs, an alias
        SQLAlchemy dropped. Those, plain ``postgresql://`` and the psycopg
        variants are rewritten to ``postgresql+asyncpg://``. SQLite and other
        backends are left untouched.
        """

        if not isinstance(value, str):
            return value

        if "+asyncpg" in value:
            return value

        replacements = {
            "postgres://": "postgresql+asyncpg://",
            "postgresql://": "postgresql+asyncpg://",
            "postgresql+psycopg2://": "postgresql+asyncpg://",
            "postgresql+psycopg://": "postgresql+asyncpg://",
        }

        for prefix, target in replacements.items():
            if value.startswith(prefix):
                return target + value[len(prefix) :]

        return value

    @field_validator("CHAT_BLOCKED_KEYWORDS", mode="after")
    @classmethod
    def _lowercase_keywords(cls, value: List[str]) -> List[str]:
        return [keyword.strip().lower() for keyword in value if keyword and keyword.strip()]


def _log_settings_validation_error(exc: ValidationError) -> None:
    """Print every missing or invalid environment variable to stderr.

    The exception is raised while the module is imported, so the structured
    payload is easy to miss in server logs. It is written out line by line
    before the error is re-raised.
    """

    print("Configuration error while loading environment variables:", file=sys.stderr)

    details = exc.errors()
    if not details:
        print(exc, file=sys.stderr)
        return

    for error in details:
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "Unknown validation error")
        type_name = error.get("type")
        hint = f"{message} (type={type_name})" if type_name else message
        print(f"  - {location}: {hint}", file=sys.stderr)


try:
    settings = Settings()
except ValidationError as exc:  # pragma: no cover - exercised at runtime
    _log_settings_validation_error(exc)
    raise
