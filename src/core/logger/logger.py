"""
Structured JSON logging.

Each record becomes one JSON object on stdout. Keyword context goes through
``extra`` and lands as top-level keys, e.g.::

    logger.info("Transfer state changed", extra={"user_id": "u1", "to_state": "succeeded"})
"""

import json
import logging
import sys
from functools import lru_cache
from typing import Any, Dict, Optional

from src.infra.config.settings import settings

ROOT_LOGGER_NAME = "IntentTransfer"

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
        }

        # Messages that are already JSON objects are merged, not nested
        message = record.getMessage()
        parsed = None
        if message.startswith("{"):
            try:
                parsed = json.loads(message)
            except json.JSONDecodeError:
                parsed = None
        if isinstance(parsed, dict):
            log_data.update(parsed)
        else:
            log_data["message"] = message

        log_data.update(
            (key, value) for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        )

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class Logger:
    """Thin wrapper that always logs through the JSON handler"""

    def __init__(self, name: str = ROOT_LOGGER_NAME):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
        self.logger.propagate = True

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(JsonFormatter())
            self.logger.addHandler(handler)

    def _log(self, level: int, message: Any, extra: Optional[Dict[str, Any]] = None, exc_info: bool = False) -> None:
        if isinstance(message, dict):
            message = json.dumps(message, default=str)
        self.logger.log(level, message, extra=extra or {}, exc_info=exc_info)

    def debug(self, message: Any, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.DEBUG, message, extra)

    def info(self, message: Any, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.INFO, message, extra)

    def warning(self, message: Any, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.WARNING, message, extra)

    def error(self, message: Any, extra: Optional[Dict[str, Any]] = None, exc_info: bool = False) -> None:
        self._log(logging.ERROR, message, extra, exc_info)


logger = Logger()


@lru_cache()
def get_logger(name: Optional[str] = None) -> Logger:
    """Named logger sharing the JSON format; the service logger when no name is given"""
    return Logger(name) if name else logger
