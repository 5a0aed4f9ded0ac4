"""Logging setup and log-safe `extra=` payloads."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from qscore.config.settings import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_REDACTED_VALUE = "***REDACTED***"
_SENSITIVE_KEYS = ("secret", "token", "password", "authorization", "cookie")
_EMAIL_PATTERN = re.compile(r"([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*(@[A-Za-z0-9.-]+)")


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(level=(level or settings.LOG_LEVEL).upper(), format=LOG_FORMAT)


def mask_email(value: str) -> str:
    """Keep the first character of the local part and the domain."""

    return _EMAIL_PATTERN.sub(r"\1***\2", value)


def sanitize_for_log(value: Any, *, key: Optional[str] = None) -> Any:
    """Return a recursively sanitized copy of a log payload."""

    if key and any(keyword in key.lower() for keyword in _SENSITIVE_KEYS):
        return _REDACTED_VALUE

    if isinstance(value, dict):
        return {str(field): sanitize_for_log(item, key=str(field)) for field, item in value.items()}

    if isinstance(value, (list, tuple, set)):
        return [sanitize_for_log(item, key=key) for item in value]

    if isinstance(value, str):
        return mask_email(value)

    return value


def log_extra(**kwargs: Any) -> dict[str, Any]:
    """Helper for `extra=` payloads in structured logging."""

    return {key: sanitize_for_log(value, key=key) for key, value in kwargs.items()}
