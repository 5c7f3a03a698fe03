import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from brewplan.util.dirs import DEFAULT_HOME, ensure_dirs, load_env

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _configured(handler: logging.Handler, level: int | str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def setup_logger(
    name: str,
    *,
    is_stream: bool = True,
    is_file: bool = True,
) -> logging.Logger:
    """Return the named logger, attaching handlers on first use.

    The stream handler logs at LOG_LEVEL (config.env or BP_LOG_LEVEL). The
    file handler logs everything to <home>/<name>.log, rotated at midnight.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(logging.DEBUG)

    if is_stream or not is_file:
        logger.addHandler(_configured(logging.StreamHandler(), load_env()["LOG_LEVEL"].upper()))

    if is_file:
        ensure_dirs()
        log_path = Path(DEFAULT_HOME) / f"{name.lower()}.log"
        file_handler = TimedRotatingFileHandler(
            log_path.as_posix(),
            when="MIDNIGHT",
            backupCount=7,
            encoding="utf-8",
        )
        logger.addHandler(_configured(file_handler, logging.DEBUG))

    return logger
