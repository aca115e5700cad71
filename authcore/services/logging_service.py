"""Structured logging configuration with redaction support."""

import logging
import sys
from typing import Any, Dict

import structlog

SENSITIVE_KEYS = {
    "api_key",
    "authorization",
    "secret",
    "password",
    "token",
    "code",
    "otp",
}

# Keys that merely contain a sensitive word but carry no secret.
SAFE_KEYS = {"error_code", "status_code", "otp_id", "token_id"}


def redact_sensitive(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Redact secrets from log entries.

    Redacts any field whose name contains one of ``SENSITIVE_KEYS``
    (passwords, password hashes, session tokens, OTP codes, auth headers).
    """
    for key in list(event_dict.keys()):
        key_lower = key.lower()
        if key_lower in SAFE_KEYS:
            continue
        if any(sensitive in key_lower for sensitive in SENSITIVE_KEYS):
            event_dict[key] = "REDACTED"

    return event_dict


def mask_mobile_number(mobile_number: str) -> str:
    """Keep only the last four digits of a phone number for log output."""
    if len(mobile_number) <= 4:
        return "*" * len(mobile_number)
    return "*" * (len(mobile_number) - 4) + mobile_number[-4:]


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog for JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_sensitive,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Optional logger name for context

    Returns:
        Configured structlog logger
    """
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger
