from __future__ import annotations

import datetime as dt
import json
import logging
import sys
import uuid
from typing import Any

from loguru import logger as loguru_logger

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_FIELDS = frozenset(
    {
        "args",
        "msg",
        "name",
        "levelno",
        "levelname",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
    }
)

_PERFORMANCE_FIELDS = frozenset({"latency_ms", "prompt_tokens", "completion_tokens", "total_tokens"})


def _record_extra(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if not key.startswith("_") and key not in _RECORD_FIELDS
    }


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with ``extra`` fields grouped."""

    def __init__(self, include_location: bool = True) -> None:
        super().__init__()
        self.include_location = include_location

    def format(self, record: logging.LogRecord) -> str:
        base: dict[str, Any] = {
            "timestamp": dt.datetime.fromtimestamp(record.created, tz=dt.UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_location:
            base.update(
                {"module": record.module, "function": record.funcName, "line": record.lineno}
            )

        if record.exc_info:
            base["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        performance: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in _record_extra(record).items():
            if key in _PERFORMANCE_FIELDS:
                performance[key] = value
            else:
                extra[key] = value
        if performance:
            base["performance"] = performance
        if extra:
            base["extra"] = extra

        return json.dumps(base, ensure_ascii=False, default=str, separators=(",", ":"))


class InterceptHandler(logging.Handler):
    """Forward stdlib records to loguru, keeping ``extra`` as bound fields."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: int | str = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        loguru_logger.bind(logger_name=record.name, **_record_extra(record)).opt(
            depth=6, exception=record.exc_info
        ).log(level, record.getMessage())


def setup_json_logging(
    level: str = "INFO",
    *,
    use_loguru: bool = True,
    include_location: bool = True,
    log_file: str | None = None,
) -> None:
    """Configure JSON logging on stderr (and optionally a rotating file).

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_loguru: Route stdlib logging through loguru's serialized sinks
        include_location: Include module/function/line in stdlib JSON output
        log_file: Optional log file path for persistent logging
    """
    lvl = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(lvl)

    if use_loguru:
        loguru_logger.remove()
        loguru_logger.add(sys.stderr, level=level.upper(), serialize=True, backtrace=False)
        if log_file:
            loguru_logger.add(
                log_file,
                level=level.upper(),
                serialize=True,
                rotation="50 MB",
                retention="14 days",
            )
        root.addHandler(InterceptHandler())
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(JsonFormatter(include_location=include_location))
        root.addHandler(console_handler)
        if log_file:
            from logging.handlers import RotatingFileHandler

            file_handler = RotatingFileHandler(log_file, maxBytes=50 * 1024 * 1024, backupCount=5)
            file_handler.setFormatter(JsonFormatter(include_location=include_location))
            root.addHandler(file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(lvl, logging.WARNING))


def generate_correlation_id() -> str:
    """Generate a short correlation ID for tracing one invocation across logs."""
    return uuid.uuid4().hex[:12]


def truncate_log_content(content: str | None, max_length: int = 1000) -> str | None:
    """Truncate large content for logging.

    Returns the content unchanged when it is short enough, otherwise a prefix
    ending in ``... [truncated]``.
    """
    if not content or len(content) <= max_length:
        return content
    if max_length > 20:
        return content[: max_length - 15] + "... [truncated]"
    return content[:max_length] + "..."


__all__ = [
    "InterceptHandler",
    "JsonFormatter",
    "generate_correlation_id",
    "setup_json_logging",
    "truncate_log_content",
]
