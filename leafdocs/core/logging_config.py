"""
Process-wide logging for the LeafDocs server.

Everything goes to ``<log_dir>/leafdocs.log`` at DEBUG (rotated), and to
stdout at INFO, or DEBUG in development mode.
"""

import logging
import logging.handlers
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "leafdocs.log"
LOG_FILE_SIZE = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT = 5

# Third-party loggers that only matter when something is wrong
QUIET_LOGGERS = ("urllib3", "werkzeug", "MARKDOWN")


def _file_handler(log_file: Path, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_SIZE,
        backupCount=LOG_BACKUP_COUNT,
        encoding='utf-8',
    )
    handler.setFormatter(formatter)
    handler.setLevel(logging.DEBUG)
    return handler


def _console_handler(level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.setLevel(level)
    return handler


def _replace_handlers(logger: logging.Logger, handlers) -> None:
    # The app factory can run several times in one process (tests, reloader)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    for handler in handlers:
        logger.addHandler(handler)


def setup_logging(log_dir: Path, debug_mode: bool = False) -> Path:
    """Install the file and console handlers on the root logger; returns the log file path."""
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME
    level = logging.DEBUG if debug_mode else logging.INFO

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    _replace_handlers(root_logger, [
        _file_handler(log_file, formatter),
        _console_handler(level, formatter),
    ])

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(f"Logging to {log_file} (level {logging.getLevelName(level)})")
    return log_file
