from __future__ import annotations

import logging
import os
import sys
import traceback
from collections.abc import Iterable
from contextvars import ContextVar
from datetime import datetime
from decimal import Decimal
from enum import Enum
from logging import LogRecord, StreamHandler
from typing import Any, cast

import structlog
from pydantic import BaseModel
from structlog.typing import EventDict, Processor, WrappedLogger

from common.utils import encode_json, is_dict

_EXCLUDED_KEYS = {"hero_hand"}


class ColoredErrorHandler(logging.Handler):
    """Custom handler that prints logging errors in bright red to stderr."""

    def handleError(self, record: LogRecord) -> None:
        RED = "\033[91m"
        BOLD = "\033[1m"
        RESET = "\033[0m"

        try:
            ei = sys.exc_info()
            if ei and ei[0]:
                error_msg = f"{BOLD}{RED}{'=' * 80}\n"
                error_msg += "LOGGING ERROR\n"
                error_msg += f"Logger: {record.name}\n"
                error_msg += f"Level: {record.levelname}\n"
                error_msg += f"Message: {record.msg}\n"
                error_msg += "".join(traceback.format_exception(*ei))
                error_msg += f"{'=' * 80}{RESET}\n"

                _ = sys.stderr.write(error_msg)
                _ = sys.stderr.flush()
        except Exception:
            super().handleError(record)


def _should_use_json_logging() -> bool:
    """Use JSON logs outside local/dev, while allowing opt-in locally via flag."""

    app_env = os.getenv("APP_ENV", "local").lower()
    if app_env not in ("development", "local", "test"):
        return True
    log_json_format_env = os.getenv("LOG_JSON_FORMAT")
    if log_json_format_env is None:
        return False
    return log_json_format_env.lower() in {"true", "1", "t", "yes"}


def _get_formatter_name() -> str:
    return "json" if _should_use_json_logging() else "plain"


def _process_values(
    _logger: WrappedLogger,
    _name: str,
    event_dict: EventDict,
) -> EventDict:
    """A structlog processor that replaces ContextVar instances with their values and serializes pydantic models."""

    for key, value in list(event_dict.items()):
        _process_value(event_dict, key, value)

    return event_dict


def _process_value(event_dict: EventDict, key: str, value: Any) -> None:
    """Process a single value and update the event_dict directly.

    Keys in _EXCLUDED_KEYS and None values are dropped, pydantic models are dumped
    by alias, enums collapse to their value, chip amounts render as plain decimal
    strings and nested dictionaries are processed recursively.
    """
    if key in _EXCLUDED_KEYS or value is None:
        event_dict.pop(key, None)
        return

    processed_value = value

    if isinstance(value, ContextVar):
        processed_value = value.get(None)  # type: ignore
        if processed_value is None:
            event_dict.pop(key, None)
            return
    elif isinstance(value, BaseModel):
        processed_value = value.model_dump(exclude_none=True, by_alias=True, mode="json")
    elif isinstance(value, Enum):
        processed_value = value.value
    elif isinstance(value, Decimal):
        processed_value = format(value.normalize(), "f")
    elif isinstance(value, (list, tuple)):
        processed_value = [item.value if isinstance(item, Enum) else item for item in cast(Iterable[Any], value)]

    if is_dict(processed_value):
        for k, v in list(processed_value.items()):
            _process_value(processed_value, str(k), v)

    event_dict[key] = processed_value


def json_serializer(value: EventDict, **_: Any) -> str:
    return encode_json(value).decode("utf-8")


def _filter_console_fields(_logger: WrappedLogger, _name: str, event_dict: EventDict) -> EventDict:
    """Filter event_dict to only include essential fields for console output."""
    verbose_fields = {
        "filename",
        "func_name",
        "lineno",
        "pathname",
        "module",
        "process",
        "thread",
        "thread_name",
        "process_name",
        "stack_info",
        "color_message",
        "message",  # Duplicate of 'event'
    }

    for field in verbose_fields:
        event_dict.pop(field, None)

    return event_dict


def _human_readable_renderer(_logger: WrappedLogger, _name: str, event_dict: EventDict) -> str:
    """Render logs in a human-readable format with colors.

    Format: HH:MM:SS [level] logger message (key=value, ...)

    This is a renderer (not a processor), so it returns a string directly.
    """
    use_colors = hasattr(sys.stdout, "isatty") and sys.stdout.isatty()

    if use_colors:
        reset = "\033[0m"
        gray = "\033[90m"
        green = "\033[92m"
        yellow = "\033[93m"
        red = "\033[91m"
        cyan = "\033[96m"
        bold = "\033[1m"
    else:
        reset = gray = green = yellow = red = cyan = bold = ""

    level_str = str(event_dict.get("level", "info")).upper()
    match level_str:
        case "DEBUG":
            level_color = gray
        case "INFO":
            level_color = green
        case "WARNING":
            level_color = yellow
        case "ERROR":
            level_color = red
        case "CRITICAL":
            level_color = f"{bold}{red}"
        case _:
            level_color = reset

    timestamp = event_dict.get("timestamp", "")
    logger_name = str(event_dict.get("logger", ""))
    event = str(event_dict.get("event", ""))

    short_time = ""
    if timestamp:
        try:
            short_time = datetime.fromisoformat(timestamp.replace("Z", "+00:00")).strftime("%H:%M:%S")
        except ValueError:
            short_time = timestamp

    parts: list[str] = []
    if short_time:
        parts.append(f"{gray}{short_time}{reset}")
    parts.append(f"{level_color}[{level_str:<5}]{reset}")
    if logger_name:
        parts.append(f"{cyan}{logger_name[-20:]:<20}{reset}")
    if event:
        parts.append(f"{bold}{level_color}{event}{reset}" if level_str in {"ERROR", "CRITICAL"} else event)

    skip_fields = {"timestamp", "level", "logger", "event", "exception"}
    extra_parts: list[str] = []
    for key, value in event_dict.items():
        if key in skip_fields:
            continue
        if isinstance(value, dict):
            value_str = encode_json(value).decode("utf-8")
        elif isinstance(value, (list, tuple)):
            value_str = ", ".join(str(item) for item in cast(Iterable[Any], value))
        else:
            value_str = str(value)
        extra_parts.append(f"{gray}{key}={value_str}{reset}")

    result = " ".join(parts)
    if extra_parts:
        result += f" {gray}({', '.join(extra_parts)}){reset}"

    exception = event_dict.get("exception")
    if exception and level_str in {"ERROR", "CRITICAL"}:
        result = f"{result}\n{level_color}{exception}{reset}"

    return result


class SafeProcessorFormatter(structlog.stdlib.ProcessorFormatter):
    """ProcessorFormatter that ensures record.msg is always a dict before formatting."""

    def format(self, record: LogRecord) -> str:
        if not isinstance(record.msg, dict):
            record.msg = {"event": record.msg if isinstance(record.msg, str) else str(record.msg)}
        return super().format(record)


class StdLoggingConfig:
    foreign_pre_chain_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,  # Add the name of the logger to event dict.
        structlog.stdlib.add_log_level,  # Add log level to event dict.
        structlog.stdlib.ExtraAdder(),  # Add extra attributes of `logging.LogRecord` objects.
        structlog.stdlib.PositionalArgumentsFormatter(),  # Perform %-style formatting.
        structlog.processors.TimeStamper(fmt="iso"),  # Add a timestamp in ISO 8601 format.
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),  # If some value is in bytes, decode it to a Unicode str.
        _process_values,
    ]

    structlog_processors = [*foreign_pre_chain_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter]

    # Compact JSON output (single line per log entry) for log parsers
    json_renderer: list[Processor] = [
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
        structlog.processors.dict_tracebacks,
        structlog.processors.JSONRenderer(sort_keys=True, default=json_serializer, indent=None),
    ]

    console_renderer: list[Processor] = [
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
        structlog.processors.format_exc_info,
        _filter_console_fields,
        _human_readable_renderer,
    ]

    formatters = {
        "json": {
            "()": SafeProcessorFormatter,
            "processors": json_renderer,
            "foreign_pre_chain": foreign_pre_chain_processors,
        },
        "plain": {
            "()": SafeProcessorFormatter,
            "processors": console_renderer,
            "foreign_pre_chain": foreign_pre_chain_processors,
        },
    }

    logger_factory = structlog.stdlib.LoggerFactory()


class ColoredStreamHandler(StreamHandler):  # type: ignore[type-arg]
    """StreamHandler that uses ColoredErrorHandler for error reporting."""

    def __init__(self, stream: Any = None) -> None:
        super().__init__(stream)  # type: ignore[call-arg]
        self.handleError = ColoredErrorHandler().handleError


def _get_handlers() -> dict[str, Any]:
    return {
        "standard": {
            "class": ColoredStreamHandler,
            "stream": sys.stdout,
            "formatter": _get_formatter_name(),
        }
    }


def get_common_logger_config() -> dict[str, Any]:
    """Build the dictConfig from the current environment.

    The handler has no level of its own, so the logger levels alone decide what
    is emitted: `LOG_LEVEL` for the root logger, `HAND_RECORDER_LOG_LEVEL` for
    the engine.
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": StdLoggingConfig.formatters,
        "handlers": _get_handlers(),
        "root": {
            "handlers": ["standard"],
            "level": log_level,
        },
        "loggers": {
            "hand_recorder": {
                "handlers": ["standard"],
                "propagate": False,
                "level": os.getenv("HAND_RECORDER_LOG_LEVEL", log_level).upper(),
            },
        },
    }
