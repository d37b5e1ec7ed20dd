"""Structured logging for the deploy bot.

Every entry passes through the secret redactor before it is rendered, and
long command output (kubectl tables, rollout logs) is clipped so a single
deploy cannot flood the log.
"""

from __future__ import annotations

import functools
import logging
import sys
from collections.abc import MutableMapping
from enum import StrEnum
from pathlib import Path
from typing import Any, cast

import structlog
from structlog.typing import Processor, WrappedLogger

from deploy_bot.utils.security import SecretRedactor

SERVICE_NAME = "deploy-bot"

# Event keys that carry raw subprocess output
OUTPUT_KEYS = ("output", "stdout", "stderr")
MAX_OUTPUT_CHARS = 2000


class LogFormat(StrEnum):
    """Log output format options."""

    JSON = "json"
    CONSOLE = "console"


class LogLevel(StrEnum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@functools.cache
def get_redactor() -> SecretRedactor:
    """Return the process-wide redactor used by the log pipeline."""
    return SecretRedactor()


def sanitize_log_value(value: Any) -> Any:
    """Redact secrets from ``value``, descending into dicts, lists and tuples."""
    if isinstance(value, str):
        return get_redactor().redact(value)
    if isinstance(value, dict):
        return {k: sanitize_log_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(sanitize_log_value(v) for v in value)
    return value


def secret_sanitizer(
    logger: WrappedLogger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor that redacts secrets from the whole entry."""
    return cast(MutableMapping[str, Any], sanitize_log_value(event_dict))


def clip_command_output(
    logger: WrappedLogger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor that shortens oversized subprocess output."""
    for key in OUTPUT_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str) and len(value) > MAX_OUTPUT_CHARS:
            clipped = len(value) - MAX_OUTPUT_CHARS
            event_dict[key] = f"{value[:MAX_OUTPUT_CHARS]}... [{clipped} chars clipped]"
    return event_dict


def add_service_info(
    logger: WrappedLogger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor that tags entries with the service name and version."""
    event_dict["service"] = SERVICE_NAME
    try:
        from deploy_bot._version import __version__
    except RuntimeError:
        return event_dict
    event_dict["version"] = __version__
    return event_dict


def build_processors(log_format: LogFormat) -> list[Processor]:
    """Return the processor chain, ending in the renderer for ``log_format``."""
    renderer: Processor
    if log_format == LogFormat.JSON:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )

    return [
        structlog.contextvars.merge_contextvars,
        add_service_info,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        clip_command_output,
        # Last before rendering, so tracebacks are redacted too
        secret_sanitizer,
        renderer,
    ]


def build_handlers(level: int, file_path: Path | None = None) -> list[logging.Handler]:
    """Return a stderr handler, plus a file handler when ``file_path`` is set.

    Raises:
        OSError: If the log file cannot be opened.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if file_path is not None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(file_path))
    for handler in handlers:
        handler.setLevel(level)
    return handlers


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_format: LogFormat | str = LogFormat.JSON,
    file_path: Path | str | None = None,
) -> None:
    """Configure structlog on top of the standard library logging module.

    Can be called more than once; the last call wins. This happens at
    startup: once from command line flags, then again from the loaded
    configuration.

    Example:
        configure_logging(level="DEBUG", log_format="console")
        configure_logging(level="INFO", log_format="json", file_path="/var/log/bot.log")
    """
    level = LogLevel(str(level).upper())
    log_format = LogFormat(str(log_format).lower())
    numeric_level: int = getattr(logging, level.value)

    structlog.configure(
        processors=build_processors(log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=build_handlers(numeric_level, Path(file_path) if file_path else None),
        force=True,
    )


def bind_context(**kwargs: Any) -> None:
    """Attach fields to every entry logged until the context is cleared.

    Example:
        bind_context(channel_id="C123", message_id="1700000000.000100")
        log.info("command_received")  # carries channel_id and message_id
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop every bound context field."""
    structlog.contextvars.clear_contextvars()
