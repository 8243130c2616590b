import logging
import sys
from pathlib import Path
from typing import Optional

from ptm_explorer.config import Settings, get_settings

LOG_FILE_NAME = "ptm-explorer.log"

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
JSON_FORMAT = '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","msg":"%(message)s"}'

# Chatty third-party loggers kept at WARNING
QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access", "httpx")


def _log_format(settings: Settings) -> str:
    return TEXT_FORMAT if settings.APP_ENV == "development" else JSON_FORMAT


def _has_file_handler(logger: logging.Logger, path: Path) -> bool:
    return any(
        isinstance(h, logging.FileHandler) and Path(h.baseFilename) == path
        for h in logger.handlers
    )


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """Configure stdout and file logging from the current settings.

    Safe to call more than once; the log file gets a single handler per path.
    """
    settings = settings or get_settings()
    log_format = _log_format(settings)

    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = (log_dir / LOG_FILE_NAME).resolve()

    root = logging.getLogger()
    if not _has_file_handler(root, log_file):
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(log_format))
        root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger("ptm-explorer")
