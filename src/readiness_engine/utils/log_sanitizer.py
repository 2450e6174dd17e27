"""Log sanitization filter to keep provider credentials out of logs.

Provider errors are logged at the component boundary, and httpx messages
can carry request URLs and headers. This filter redacts:
- Bearer and Basic authorization values
- Strava access and refresh tokens (40-char hex)
- Intervals.icu API keys passed as ``api_key=...``
- JWT tokens and email addresses

Usage:
    from readiness_engine.utils.log_sanitizer import install_log_sanitizer

    install_log_sanitizer()
"""

import logging
import re
from typing import Any, List, Optional, Tuple


class LogSanitizationFilter(logging.Filter):
    """Logging filter that redacts credentials from log messages."""

    # Order matters: more specific patterns come before general ones
    PATTERNS: List[Tuple[re.Pattern, str]] = [
        # JWT tokens (three base64 segments), before Bearer
        (re.compile(r'\beyJ[a-zA-Z0-9_-]+\.eyJ[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+'), '[REDACTED_JWT]'),

        (re.compile(r'Bearer\s+[a-zA-Z0-9_\-\.]+', re.IGNORECASE), 'Bearer [REDACTED_TOKEN]'),
        (re.compile(r'Basic\s+[a-zA-Z0-9+/=]+', re.IGNORECASE), 'Basic [REDACTED]'),

        # Authorization header values (generic)
        (re.compile(r'(Authorization["\']?\s*[:=]\s*["\']?)[^"\'&\s]+', re.IGNORECASE), r'\1[REDACTED]'),

        (re.compile(r'(api_key["\']?\s*[:=]\s*["\']?)[^"\'&\s]+', re.IGNORECASE), r'\1[REDACTED]'),
        (re.compile(r'(apikey["\']?\s*[:=]\s*["\']?)[^"\'&\s]+', re.IGNORECASE), r'\1[REDACTED]'),
        (re.compile(r'(access_token["\']?\s*[:=]\s*["\']?)[^"\'&\s]+', re.IGNORECASE), r'\1[REDACTED]'),
        (re.compile(r'(refresh_token["\']?\s*[:=]\s*["\']?)[^"\'&\s]+', re.IGNORECASE), r'\1[REDACTED]'),
        (re.compile(r'(client_secret["\']?\s*[:=]\s*["\']?)[^"\'&\s]+', re.IGNORECASE), r'\1[REDACTED]'),

        (re.compile(r'\b[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}\b'), '[REDACTED_EMAIL]'),

        # Long hex strings (Strava tokens are 40 hex chars)
        (re.compile(r'\b[a-fA-F0-9]{32,}\b'), '[REDACTED_HEX_TOKEN]'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = self._sanitize(str(record.msg))
        if record.args:
            record.args = self._sanitize_args(record.args)
        return True

    def _sanitize(self, text: str) -> str:
        for pattern, replacement in self.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def _sanitize_args(self, args: Any) -> Any:
        """Recursively sanitize log arguments."""
        if isinstance(args, str):
            return self._sanitize(args)
        elif isinstance(args, tuple):
            return tuple(self._sanitize_args(arg) for arg in args)
        elif isinstance(args, list):
            return [self._sanitize_args(arg) for arg in args]
        elif isinstance(args, dict):
            return {k: self._sanitize_args(v) for k, v in args.items()}
        str_val = str(args)
        sanitized = self._sanitize(str_val)
        return sanitized if sanitized != str_val else args


def install_log_sanitizer(logger_name: Optional[str] = None) -> LogSanitizationFilter:
    """Install the sanitization filter.

    Args:
        logger_name: Install only on this logger. If None, install on the
            root logger and its existing handlers.

    Returns:
        The installed filter
    """
    sanitizer = LogSanitizationFilter()

    if logger_name:
        logging.getLogger(logger_name).addFilter(sanitizer)
    else:
        root_logger = logging.getLogger()
        root_logger.addFilter(sanitizer)
        # Records from child loggers skip the root logger's filters but not its handlers'
        for handler in root_logger.handlers:
            handler.addFilter(sanitizer)
    return sanitizer


def sanitize_string(text: str) -> str:
    """Sanitize a string outside the logging system (e.g. error output)."""
    return LogSanitizationFilter()._sanitize(text)
