"""
Logging utilities for the cmxpush receiver.

Provides unified structured logging:
- pretty console output via Rich
- structured (JSON) file output to `serve.log` when running `cmxpush serve`
"""

import logging
import sys
import json
from pathlib import Path

from rich.logging import RichHandler

# fields callers may attach with `extra=` that end up in the JSON record
STRUCTURED_FIELDS = ("mac", "ap_mac", "rssi", "seen_millis", "action")


class JSONFormatter(logging.Formatter):
    """
    Formatter that serializes log records to JSON.
    """
    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level":     record.levelname,
            "logger":    record.name,
            "message":   record.getMessage(),
        }
        for key in STRUCTURED_FIELDS:
            if hasattr(record, key):
                log_record[key] = getattr(record, key)
        return json.dumps(log_record, default=str)


def _is_serving() -> bool:
    args = [a for a in sys.argv[1:] if not a.startswith("-")]
    return bool(args) and args[0] == "serve"


def get_logger(name: str, level: int | str = logging.INFO) -> logging.Logger:
    """
    Return a configured logger for the given name.

    Attaches:
    - a RichHandler for console output
    - when the command is 'serve', a FileHandler writing JSON logs to {cwd}/serve.log

    Parameters
    ----------
    name
        Logger name (typically __name__).
    level
        Log level (int or string), defaults to INFO.

    Returns
    -------
    logging.Logger
        Configured logger instance.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        # Console via Rich
        console_handler = RichHandler(rich_tracebacks=True)
        console_handler.setLevel(logging.NOTSET)
        logger.addHandler(console_handler)

        # File output for `cmxpush serve`, as structured JSON
        if _is_serving():
            log_path = Path.cwd() / "serve.log"
            file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
            file_handler.setLevel(logging.NOTSET)
            file_handler.setFormatter(JSONFormatter())
            logger.addHandler(file_handler)

    return logger


def set_level(level: int | str) -> None:
    """
    Re-level every cmxpush logger created so far.
    """
    for name, logger in logging.root.manager.loggerDict.items():
        if name.startswith("cmxpush") and isinstance(logger, logging.Logger):
            logger.setLevel(level)
