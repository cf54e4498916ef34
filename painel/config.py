import logging
import os
import secrets

logger = logging.getLogger(__name__)

_INSECURE_SECRET_KEYS = {"", "changeme", "umsegredoforteaqui123"}


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Valor inválido para %s (%r); usando %s.", name, value, default)
        return default


def _csv_env(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    """Application configuration read from the environment."""

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    TESTING = os.getenv("TESTING", "0") == "1"

    STORAGE_ROOT = os.getenv("STORAGE_ROOT")
    STORAGE_BASE_URL = os.getenv("STORAGE_BASE_URL", "/files")
    ATTACHMENT_MAX_SIZE_MB = _int_env("ATTACHMENT_MAX_SIZE_MB", 25)
    ATTACHMENT_ALLOWED_MIME_TYPES = _csv_env("ATTACHMENT_ALLOWED_MIME_TYPES", "")
    PROFILE_IMAGE_MAX_SIZE_MB = _int_env("PROFILE_IMAGE_MAX_SIZE_MB", 5)
    UPLOAD_MAX_WORKERS = _int_env("UPLOAD_MAX_WORKERS", 4)
    MAX_CONTENT_LENGTH = _int_env("MAX_CONTENT_LENGTH_MB", 200) * 1024 * 1024

    APPROVER_ROLES = frozenset(_csv_env("APPROVER_ROLES", "admin"))
    USERS_PAGE_SIZE = _int_env("USERS_PAGE_SIZE", 10)
    SETTINGS_CACHE_TIMEOUT = _int_env("SETTINGS_CACHE_TIMEOUT", 300)
    REDIS_URL = os.getenv("REDIS_URL")
    CACHE_DEFAULT_TIMEOUT = _int_env("CACHE_DEFAULT_TIMEOUT", 120)

    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI") or os.getenv("REDIS_URL") or "memory://"
    RATELIMIT_DEFAULT_LIMITS = _csv_env("RATELIMIT_DEFAULT_LIMITS", "")
    RATELIMIT_LOGIN = os.getenv("RATELIMIT_LOGIN", "5 per minute")

    SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "painel_session")
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("ENFORCE_HTTPS") == "1"

    @staticmethod
    def database_uri(instance_path: str) -> str:
        """
        Resolve a URI do banco.

        Ordem: ``DATABASE_URL``; variaveis ``DB_USER/DB_PASSWORD/DB_HOST/DB_NAME``
        (MySQL via PyMySQL); SQLite local na pasta ``instance``.
        """
        database_url = os.getenv("DATABASE_URL")
        if database_url:
            return database_url

        db_vars = {name: os.getenv(name) for name in ("DB_USER", "DB_PASSWORD", "DB_HOST", "DB_NAME")}
        missing = [name for name, value in db_vars.items() if value is None]
        if missing:
            logger.warning(
                "Variáveis de banco ausentes (%s); usando SQLite local em modo de fallback.",
                ", ".join(missing),
            )
            os.makedirs(instance_path, exist_ok=True)
            return f"sqlite:///{os.path.join(instance_path, 'painel.db')}"

        if db_vars["DB_PASSWORD"] == "":
            logger.warning("DB_PASSWORD está vazio; conectando ao MySQL sem senha.")
        return (
            f"mysql+pymysql://{db_vars['DB_USER']}:{db_vars['DB_PASSWORD']}"
            f"@{db_vars['DB_HOST']}/{db_vars['DB_NAME']}"
        )

    @staticmethod
    def engine_options(database_uri: str) -> dict:
        if database_uri.startswith("sqlite"):
            return {}
        return {
            "pool_pre_ping": True,
            "pool_recycle": 1800,
            "pool_size": _int_env("DB_POOL_SIZE", 10),
            "max_overflow": _int_env("DB_MAX_OVERFLOW", 20),
            "pool_timeout": 30,
        }

    @staticmethod
    def secret_key() -> str:
        secret_key = os.getenv("SECRET_KEY")
        if not secret_key or secret_key in _INSECURE_SECRET_KEYS:
            logger.warning("SECRET_KEY não definida; gerando valor temporário apenas para ambiente local.")
            return secrets.token_urlsafe(32)
        return secret_key

    @classmethod
    def validate(cls) -> None:
        if not cls.STORAGE_ROOT:
            logger.warning("STORAGE_ROOT not set - files are stored under the instance folder")
        if not cls.APPROVER_ROLES:
            logger.warning("APPROVER_ROLES is empty - no user will be able to approve tasks")
        if cls.UPLOAD_MAX_WORKERS < 1:
            logger.warning("UPLOAD_MAX_WORKERS < 1 - uploads will run with a single worker")
