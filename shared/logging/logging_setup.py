import logging
import logging.config
import os
from datetime import datetime

from pytz import timezone

# third party loggers which are only useful while debugging
NOISY_LOGGERS = ("httpx", "httpcore", "mcp", "apscheduler", "pdfminer")

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class CustomFormatter(logging.Formatter):
    """Formatter rendering timestamps in a configurable timezone and prefixing warnings/errors."""

    def __init__(self, tz_name, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, self.tz)
        return dt.strftime(datefmt) if datefmt else dt.isoformat()

    def format(self, record):
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # malformed third party log call, keep the raw template
            message = str(record.msg)

        if record.levelno >= logging.ERROR:
            message = "⛔ " + message
        elif record.levelno == logging.WARNING:
            message = "⚠️ " + message

        # format a copy so other handlers still see the original record
        record = logging.makeLogRecord({**record.__dict__, "msg": message, "args": ()})
        return super().format(record)


def setup_logging(name: str = "sufle") -> logging.Logger:
    """Configure the root logger with a console handler and a file handler.

    Reads LOG_LEVEL, LOG_DIR (default "./logs") and TIMEZONE (default "Europe/Berlin").

    Args:
        name (str): Name of the returned logger, also used as log file name.

    Returns:
        logging.Logger: The application logger.
    """
    debug_mode = os.getenv("LOG_LEVEL", "info").lower() == "debug"
    loglevel = logging.DEBUG if debug_mode else logging.INFO
    log_dir = os.getenv("LOG_DIR", "./logs")
    os.makedirs(log_dir, exist_ok=True)

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "()": CustomFormatter,
                "format": LOG_FORMAT,
                "datefmt": DATE_FORMAT,
                "tz_name": os.getenv("TIMEZONE", "Europe/Berlin"),
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "level": loglevel,
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.FileHandler",
                "formatter": "standard",
                "level": loglevel,
                "filename": os.path.join(log_dir, f"{name}.log"),
                "encoding": "utf-8",
            },
        },
        "root": {
            "handlers": ["console", "file"],
            "level": loglevel,
        },
    })

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.DEBUG if debug_mode else logging.WARNING)

    return logging.getLogger(name)
