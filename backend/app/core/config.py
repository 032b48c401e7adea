from pathlib import Path
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from sqlalchemy.engine import make_url

from app.modules.billing_tags.dialects import SqlBackend

ENV_FILE = Path(__file__).resolve().parents[3] / ".env"
load_dotenv(dotenv_path=ENV_FILE)


class Settings(BaseSettings):
    LOG_LEVEL: str = "INFO"

    # Reporting DB (read-only access to logs/tokens/users)
    APP_DATABASE_URL: str = ""
    DB_BACKEND: str = ""
    DB_STARTUP_MAX_ATTEMPTS: int = 30
    DB_STARTUP_RETRY_DELAY_SECONDS: float = 1.0
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "gateway"
    POSTGRES_SSLMODE: str = "disable"

    @staticmethod
    def _is_placeholder_database_url(value: str) -> bool:
        normalized = value.lower()
        # Values left over from a copied .env example.
        placeholder_tokens = (
            "your-db-password",
            "your-password",
            "<password>",
            "<host>",
        )
        return any(token in normalized for token in placeholder_tokens)

    def _derive_postgres_database_url(self) -> str:
        host = (self.POSTGRES_HOST or "").strip()
        username = (self.POSTGRES_USER or "").strip()
        database = (self.POSTGRES_DB or "").strip()
        if not host or not username or not database:
            return ""

        encoded_user = quote_plus(username)
        encoded_password = quote_plus(self.POSTGRES_PASSWORD or "")
        auth = f"{encoded_user}:{encoded_password}" if self.POSTGRES_PASSWORD else encoded_user

        base = (
            f"postgresql+psycopg://{auth}"
            f"@{host}:{int(self.POSTGRES_PORT or 5432)}/{database}"
        )
        sslmode = (self.POSTGRES_SSLMODE or "").strip()
        if sslmode:
            return f"{base}?sslmode={sslmode}"
        return base

    @property
    def app_database_url(self) -> str:
        configured_url = (self.APP_DATABASE_URL or "").strip()
        if configured_url:
            if self._is_placeholder_database_url(configured_url):
                raise ValueError(
                    "APP_DATABASE_URL still contains placeholder values. "
                    "Set a real APP_DATABASE_URL or leave it empty to use POSTGRES_*."
                )
            return configured_url

        derived_url = self._derive_postgres_database_url()
        if derived_url:
            return derived_url

        raise ValueError(
            "Database configuration is missing. Set APP_DATABASE_URL or "
            "POSTGRES_HOST/POSTGRES_PORT/POSTGRES_USER/POSTGRES_PASSWORD/POSTGRES_DB."
        )

    @property
    def sql_backend(self) -> SqlBackend:
        """Backend used to render report SQL.

        DB_BACKEND wins when set; otherwise it is read from the database URL.
        """
        override = (self.DB_BACKEND or "").strip()
        if override:
            return SqlBackend.from_name(override)
        return SqlBackend.from_name(make_url(self.app_database_url).get_backend_name())

    class Config:
        env_file = str(ENV_FILE)
        extra = "ignore"


settings = Settings()
