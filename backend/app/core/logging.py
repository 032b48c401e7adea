import logging

from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "uvicorn.access")


def setup_logging() -> None:
    level = logging.getLevelName((settings.LOG_LEVEL or "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO

    # basicConfig leaves an already configured root logger alone (e.g. under uvicorn).
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
