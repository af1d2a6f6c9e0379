"""Structured logging configuration with run ID tracking."""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional, TextIO

if TYPE_CHECKING:
    from .config import Settings


# Context variable for run ID tracking
run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter."""

    def __init__(self, include_location: bool = False):
        super().__init__()
        self.include_location = include_location

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        run_id = run_id_var.get()
        if run_id:
            log_data["run_id"] = run_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_location:
            log_data["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter for consoles and CI logs."""

    def format(self, record: logging.LogRecord) -> str:
        run_id = run_id_var.get()
        rid = f"[{run_id[:8]}] " if run_id else ""
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        base = f"{timestamp} {record.levelname:8} {rid}{record.name}: {record.getMessage()}"

        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)

        return base


class SensitiveDataFilter(logging.Filter):
    """Filter credentials from logs."""

    SENSITIVE_KEYS = {
        "password",
        "token",
        "secret",
        "authorization",
    }

    BEARER_PATTERN = re.compile(r"(bearer\s+)[^\s,}\]'\"]+", re.IGNORECASE)

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        lowered = message.lower()
        redacted = self.BEARER_PATTERN.sub(r"\1[REDACTED]", message)
        for key in self.SENSITIVE_KEYS:
            if key in lowered:
                redacted = self._redact_value(redacted, key)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True

    @staticmethod
    def _redact_value(text: str, key: str) -> str:
        """Redact values after sensitive keys."""
        # "key: value" is left alone: error chains read "could not get token: ..."
        patterns = [
            rf"({key}\s*=\s*)[^\s,}}\]]+",
            rf"('{key}'\s*:\s*)[^\s,}}\]]+",
            rf'("{key}"\s*:\s*)[^\s,}}\]]+',
        ]
        for pattern in patterns:
            text = re.sub(pattern, r"\1[REDACTED]", text, flags=re.IGNORECASE)
        return text


def setup_logging(settings: "Settings", stream: Optional[TextIO] = None) -> None:
    """Configure process logging (stdout unless another stream is given)."""
    root_logger = logging.getLogger()
    level = getattr(logging, settings.log_level)
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)

    if settings.log_format == "json":
        handler.setFormatter(StructuredFormatter(include_location=level <= logging.DEBUG))
    else:
        handler.setFormatter(TextFormatter())

    handler.addFilter(SensitiveDataFilter())

    root_logger.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the botcheck prefix."""
    return logging.getLogger(f"botcheck.{name}")
