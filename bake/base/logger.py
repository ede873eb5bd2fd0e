"""
Structured logging for Cloudbake.

Provides a pre-configured logger that emits JSON-structured log records
with build context (build id, provider, step, resource) for easy filtering
in log aggregation tools.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

_CONTEXT_FIELDS = ("build_id", "provider", "step", "resource")


class StructuredFormatter(logging.Formatter):
    """Emit log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Attach any extras injected via BakeLogger.log_event
        for key in _CONTEXT_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = str(record.exc_info[1])
        return json.dumps(log_entry)


class BakeLogger:
    """Convenience wrapper around :mod:`logging` bound to one build.

    Attributes:
        logger: Underlying :class:`logging.Logger`.
        build_id: Correlation ID stamped on every record.
        provider: Cloud provider the build runs against.
    """

    def __init__(
        self,
        name: str = "cloudbake",
        *,
        build_id: str | None = None,
        provider: str | None = None,
    ) -> None:
        self.logger = logging.getLogger(name)
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)
        self.build_id = build_id or uuid.uuid4().hex[:12]
        self.provider = provider

    def log_event(
        self,
        level: int,
        message: str,
        *,
        step: str | None = None,
        resource: str | None = None,
        exc_info: bool = False,
    ) -> None:
        """Emit a structured log record with build context.

        Args:
            level: Logging level (e.g. logging.INFO).
            message: Human-readable message.
            step: Name of the provisioning step emitting the record.
            resource: Remote resource identifier the record is about.
            exc_info: Whether to include exception info.
        """
        extra = {
            "build_id": self.build_id,
            "provider": self.provider,
            "step": step,
            "resource": resource,
        }
        self.logger.log(level, message, extra=extra, exc_info=exc_info)

    def info(self, message: str, **kwargs: Any) -> None:
        self.log_event(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.log_event(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self.log_event(logging.ERROR, message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log_event(logging.DEBUG, message, **kwargs)
