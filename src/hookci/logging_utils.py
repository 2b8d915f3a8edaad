"""Structured logging helpers shared by the listener and the build pipeline."""

from __future__ import annotations

import logging
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(name: str, *, level: int | str = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(f"hookci.{name}")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger.setLevel(level)
    if logger.handlers:
        return logger
    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter(_FORMAT))
    logger.addHandler(handler)
    return logger


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Emit `event` with `fields` attached as JSON keys."""

    extra: Dict[str, Any] = {"event": event, **fields}
    # "message" is reserved by LogRecord
    if "message" in extra:
        extra["event_message"] = extra.pop("message")
    logger.log(level, event, extra=extra)
