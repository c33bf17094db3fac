"""Sanitization for log lines and verdict messages.

Error messages coming back from an admin client can echo connection URLs
or auth headers; everything the harness logs or reports passes through
sanitize() first.
"""
import re
from typing import List, Pattern

SENSITIVE_PATTERNS: List[Pattern] = [
    re.compile(r'(rediss?|https?|mongodb|postgres|mysql)://[^:/\s]+:[^@\s]+@', re.IGNORECASE),
    re.compile(r'(password|passwd|pwd|secret|token|api[_-]?key)\s*[:=]\s*[\'"]?[\w\-]+[\'"]?', re.IGNORECASE),
    re.compile(r'(basic|bearer)\s+[\w\-_.~+/]+=*', re.IGNORECASE),
    re.compile(r'REDIS_URL\s*=\s*[\'"]?[^\s\'"]+[\'"]?', re.IGNORECASE),
]

REDACTED = '[REDACTED]'


def sanitize(message: str) -> str:
    """Remove sensitive data from a message."""
    if not message:
        return message

    result = message
    for pattern in SENSITIVE_PATTERNS:
        result = pattern.sub(REDACTED, result)

    return result


def describe_error(error: BaseException) -> str:
    """Render an exception as 'Type: message', sanitized."""
    text = str(error)
    name = type(error).__name__
    return sanitize(f"{name}: {text}" if text else name)


class SecureLogger:
    """Logger wrapper that sanitizes all output."""

    def __init__(self, logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _sanitize_args(self, args):
        return tuple(sanitize(arg) if isinstance(arg, str) else arg for arg in args)

    def debug(self, msg, *args, **kwargs):
        self._logger.debug(sanitize(msg), *self._sanitize_args(args), **kwargs)

    def info(self, msg, *args, **kwargs):
        self._logger.info(sanitize(msg), *self._sanitize_args(args), **kwargs)

    def warning(self, msg, *args, **kwargs):
        self._logger.warning(sanitize(msg), *self._sanitize_args(args), **kwargs)

    def error(self, msg, *args, **kwargs):
        self._logger.error(sanitize(msg), *self._sanitize_args(args), **kwargs)
