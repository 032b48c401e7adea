from collections.abc import Generator
import logging
import time

from sqlmodel import SQLModel, Session, create_engine, text

from app.core.config import settings
from app.modules.billing_tags.dialects import SqlBackend

logger = logging.getLogger(__name__)

app_database_url = settings.app_database_url
app_backend = settings.sql_backend


def _engine_kwargs(backend: SqlBackend) -> dict:
    if backend is SqlBackend.SQLITE:
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


app_engine = create_engine(app_database_url, **_engine_kwargs(app_backend))


def _safe_url(value) -> str:
    return value.render_as_string(hide_password=True)


def _wait_for_connection(engine, name: str) -> None:
    last_error: Exception | None = None
    max_attempts = max(1, settings.DB_STARTUP_MAX_ATTEMPTS)

    for attempt in range(1, max_attempts + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return
        except Exception as exc:  # noqa: BLE001
            last_error = exc
            logger.info(
                "Waiting for %s (attempt %d/%d): %s",
                name,
                attempt,
                max_attempts,
                exc,
            )
            if attempt < max_attempts:
                time.sleep(settings.DB_STARTUP_RETRY_DELAY_SECONDS)

    if last_error:
        raise last_error


def get_db() -> Generator[Session, None, None]:
    with Session(app_engine) as session:
        yield session


def get_sql_backend() -> SqlBackend:
    return app_backend


def init_app_database() -> None:
    logger.info(
        "Connecting to %s database on %s",
        app_backend.value,
        _safe_url(app_engine.url),
    )
    _wait_for_connection(app_engine, f"{app_backend.value} database")

    # logs/tokens/users belong to the main service; only a local SQLite
    # database gets them created here.
    if app_backend is SqlBackend.SQLITE:
        from app.modules.billing_tags.models import Token, UsageLog, User

        _ = (Token, UsageLog, User)
        SQLModel.metadata.create_all(app_engine)
        logger.info("Report tables are ready on %s", _safe_url(app_engine.url))


def close_app_database() -> None:
    app_engine.dispose()
    logger.info("Database engine disposed.")
