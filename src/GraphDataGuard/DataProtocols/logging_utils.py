"""Structured logging helpers shared across data protocol components."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Optional

__all__ = ["JSONFormatter", "LOGGER_NAME", "setup_logging"]

LOGGER_NAME = "GraphDataGuard.DataProtocols"

_EXTRA_FIELDS = ("stage", "kind", "host", "canonical_host", "error_code", "outcome", "elapsed_ms")


class JSONFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in _EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(
    *,
    level: str = "INFO",
    emit_json_logs: bool = False,
    stream: Optional[IO[str]] = None,
    propagate: bool = False,
) -> logging.Logger:
    """Configure the package logger with a single managed console handler.

    Calling this repeatedly replaces the handler installed by the previous call
    instead of stacking another one.
    """

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_graphguard_managed", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    if emit_json_logs:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    handler._graphguard_managed = True  # type: ignore[attr-defined]
    logger.addHandler(handler)

    logger.propagate = propagate
    return logger
