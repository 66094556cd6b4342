"""Structured JSON logging configuration."""
import logging
import sys

from pythonjsonlogger import jsonlogger

from docflow.core.config import settings
from docflow.middleware.request_id import RequestIdFilter


def setup_logging() -> None:
    """Configure JSON structured logging for production, human-readable for dev.

    Every record carries the current request id (``-`` outside a request).
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())

    if getattr(settings, "APP_ENV", "development") == "production":
        formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(request_id)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s %(name)s %(levelname)s [%(request_id)s] %(message)s"
        )

    handler.setFormatter(formatter)
    logging.root.handlers = [handler]
    logging.root.setLevel(logging.INFO)
