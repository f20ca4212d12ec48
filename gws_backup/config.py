import os
from dotenv import load_dotenv, dotenv_values

ENV_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env")

load_dotenv(ENV_PATH)


def _require_env(name: str) -> str:
    """Return an env var or raise if missing."""
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Required environment variable {name} is not set")
    return value


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def read_db_type(env_path: str = ENV_PATH) -> str:
    """DB_TYPE from the process environment, falling back to the .env file."""
    value = os.getenv("DB_TYPE")
    if not value and os.path.exists(env_path):
        value = dotenv_values(env_path).get("DB_TYPE")
    return (value or "sqlite").strip().lower()


class Settings:
    def __init__(self):
        # Database
        self.DB_TYPE: str = read_db_type()
        default_port = "5432" if self.DB_TYPE == "postgresql" else "3306"
        self.DB_HOST: str = os.getenv("DB_HOST", "localhost")
        self.DB_PORT: int = int(os.getenv("DB_PORT") or default_port)
        self.DB_NAME: str = os.getenv("DB_NAME", "gws_email_backup")
        self.DB_USER: str = os.getenv("DB_USER", "root")
        self.DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")
        self.DB_FILE: str = os.getenv("DB_FILE", "./data/database.sqlite")

        # Redis
        self.REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
        self.REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
        self.REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))

        # Security
        self.JWT_SECRET: str = _require_env("JWT_SECRET")
        self.JWT_EXPIRE_HOURS: int = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.SEED_ADMIN_USERNAME: str = os.getenv("SEED_ADMIN_USERNAME", "admin")
        self.SEED_ADMIN_PASSWORD: str = os.getenv("SEED_ADMIN_PASSWORD", "admin123")
        self.BOOTSTRAP_RESET_PASSWORD: bool = _flag("BOOTSTRAP_RESET_PASSWORD")

        # Backup worker defaults (overridden by the backup_config row)
        self.BACKUP_INTERVAL: int = int(os.getenv("BACKUP_INTERVAL", "60"))
        self.MAX_CONCURRENT_USERS: int = int(os.getenv("MAX_CONCURRENT_USERS", "1"))
        self.BATCH_SIZE: int = int(os.getenv("BATCH_SIZE", "100"))
        self.BATCH_DELAY: int = int(os.getenv("BATCH_DELAY", "2000"))
        self.USE_REAL_GMAIL: bool = _flag("USE_REAL_GMAIL")

        # App
        self.APP_HOST: str = os.getenv("APP_HOST", "127.0.0.1")
        self.APP_PORT: int = int(os.getenv("APP_PORT", "3001"))
        self.EXPORT_DIR: str = os.getenv("EXPORT_DIR", "./exports")
        self.CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:3000")

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()
