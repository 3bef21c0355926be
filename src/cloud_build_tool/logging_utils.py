from __future__ import annotations
"""Structured logging utilities.

Every record is rendered as one JSON object. Attributes passed through
`extra=` become top-level keys; secret-looking keys are replaced with `***`
and credentials embedded in URLs are masked wherever they appear in string
values, so a push URL carrying a token can be logged safely.
"""

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import TextIO


_STANDARD_RECORD_KEYS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}

_SECRET_KEYS = frozenset({"token", "authorization", "password", "github_token"})
_REDACTED = "***"
_URL_CREDENTIALS_PATTERN = re.compile(r"(https?://)[^@/\s]+@")


def mask_credentials(text: str) -> str:
    """Replace `user:secret@` in URLs with `***@`."""
    return _URL_CREDENTIALS_PATTERN.sub(r"\1***@", text)


def _scrub(key: str, value: object) -> object:
    if key.lower() in _SECRET_KEYS:
        return _REDACTED
    if isinstance(value, str):
        return mask_credentials(value)
    if isinstance(value, dict):
        return {item_key: _scrub(str(item_key), item_value) for item_key, item_value in value.items()}
    return value


class JsonLogFormatter(logging.Formatter):
    """JSON formatter for structured logs with secret redaction."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": mask_credentials(record.getMessage()),
        }

        for key, value in record.__dict__.items():
            if key in _STANDARD_RECORD_KEYS or key.startswith("_"):
                continue
            payload[key] = _scrub(key, value)

        if record.exc_info:
            payload["exception"] = mask_credentials(self.formatException(record.exc_info))

        return json.dumps(payload, default=str)


def configure_logging(level: str = "WARNING", stream: TextIO | None = None) -> None:
    """Send JSON logs to `stream` (stderr by default), keeping stdout for progress output."""
    root = logging.getLogger()
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonLogFormatter())
    root.addHandler(handler)
    root.setLevel(level.upper())
