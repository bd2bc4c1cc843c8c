"""
Logging configuration for chanrelay.

This module configures structlog on top of the stdlib logging tree so that
module loggers (``logging.getLogger(__name__)``) and structlog loggers share
one output format.
"""

import logging
import re
import sys
from typing import Any

import structlog

from .settings import settings

_HANDLER_NAME = "chanrelay"


def redact_secrets(_, __, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Redact credentials embedded in source and ingest URIs."""
    secret_keys = [
        "token",
        "password",
        "secret",
        "api_key",
    ]

    secret_patterns = [
        r"://[^:/@\s]+:[^@\s]+@",  # URLs with credentials
        r"token=[^&\s]+",  # Token parameters
        r"password=[^&\s]+",  # Password parameters
    ]

    def redact_value(value: Any) -> Any:
        if isinstance(value, str):
            for pattern in secret_patterns:
                value = re.sub(pattern, _mask, value)
            return value
        elif isinstance(value, dict):
            return {k: redact_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [redact_value(item) for item in value]
        return value

    for key in list(event_dict.keys()):
        if any(secret in key.lower() for secret in secret_keys):
            event_dict[key] = "***REDACTED***"
        else:
            event_dict[key] = redact_value(event_dict[key])

    return event_dict


def _mask(match: re.Match[str]) -> str:
    text = match.group(0)
    if text.startswith("://"):
        return "://***@"
    return text.split("=")[0] + "=***"


def configure_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """Configure structlog and the stdlib root logger."""
    level_name = (level or settings.log_level).upper()
    use_json = settings.log_json if json_output is None else json_output

    shared_processors: list[Any] = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        redact_secrets,
    ]
    renderer = (
        structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Route plain stdlib records through the same renderer
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.set_name(_HANDLER_NAME)

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level_name)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a configured logger with service context."""
    logger = structlog.get_logger(name)
    return logger.bind(service="chanrelay")
