"""Logging configuration for the admission webhook."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from acpwebhook.core.config import settings

# Record attributes copied into JSON output when a caller sets them
CONTEXT_FIELDS = ("uid", "ingress", "request_id", "event")

QUIET_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "kubernetes": logging.WARNING,
    "urllib3": logging.WARNING,
}

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping records with app and admission context."""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["app_name"] = settings.app_name
        log_record["app_version"] = settings.app_version
        log_record["environment"] = settings.environment.value

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_record[field] = value


def setup_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """
    Configure the root logger.

    level and json_output default to the log_level and log_json settings.
    """
    level = level or settings.log_level.value
    if json_output is None:
        json_output = settings.log_json

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if json_output:
        handler.setFormatter(
            CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
        )
    else:
        handler.setFormatter(logging.Formatter(settings.log_format))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    get_logger(__name__).info(
        "Logging configured", extra={"log_level": level, "log_json": json_output}
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


class _ContextAdapter(logging.LoggerAdapter):
    """Merges fixed context into the extra of every record."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger_with_context(name: str, **context) -> logging.LoggerAdapter:
    """Logger whose records all carry context, e.g. uid and ingress."""
    return _ContextAdapter(get_logger(name), context)


def log_event(logger, level: str, event: str, **fields) -> None:
    """
    Log a structured event.

    The fields are rendered into the message as JSON and attached to the
    record, so both text and JSON output carry them.
    """
    message = f"{event}: {json.dumps(fields, default=str)}" if fields else event
    logger.log(_LEVELS[level], message, extra={"event": event, **fields})
