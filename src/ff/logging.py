"""
Structured logging for ff.

Provides:
- Context variables for namespace and method (using contextvars)
- JSONFormatter for machine-readable logs to file
- RichHandler for pretty console output
- ContextLogger wrapper that attaches context to all log calls
- setup_logging() that configures both file and console handlers
- Context manager log_context() for scoped context
- get_logger() factory
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

# Context variables for structured logging
_namespace_var: ContextVar[str | None] = ContextVar("namespace", default=None)
_method_var: ContextVar[str | None] = ContextVar("method", default=None)


def get_namespace() -> str | None:
    """Get the current cache namespace from context."""
    return _namespace_var.get()


def get_method() -> str | None:
    """Get the current memoized method identifier from context."""
    return _method_var.get()


@contextmanager
def log_context(
    namespace: str | None = None,
    method: str | None = None,
) -> Generator[None, None, None]:
    """Context manager for scoped logging context.

    Args:
        namespace: Cache namespace to set in context.
        method: Qualified method identifier to set in context.

    Yields:
        None. Context variables are set for the duration of the context.
    """
    old_namespace = _namespace_var.get()
    old_method = _method_var.get()

    try:
        if namespace is not None:
            _namespace_var.set(namespace)
        if method is not None:
            _method_var.set(method)
        yield
    finally:
        _namespace_var.set(old_namespace)
        _method_var.set(old_method)


class JSONFormatter(logging.Formatter):
    """JSON formatter for machine-readable log files.

    Produces JSON Lines format with structured context.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        namespace = get_namespace()
        method = get_method()

        if namespace:
            log_obj["namespace"] = namespace
        if method:
            log_obj["method"] = method

        if hasattr(record, "extra"):
            log_obj["extra"] = record.extra

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


class ContextRichHandler(RichHandler):
    """Rich handler that includes context in console output."""

    def get_level_text(self, record: logging.LogRecord) -> Text:
        """Override to add context prefix."""
        level_text = super().get_level_text(record)

        parts: list[str] = []
        namespace = get_namespace()
        method = get_method()

        if namespace:
            parts.append(f"[cyan]{namespace}[/cyan]")
        if method:
            parts.append(f"[magenta]{method}[/magenta]")

        if parts:
            prefix = " ".join(parts)
            return Text.assemble(level_text, " ", Text.from_markup(prefix))

        return level_text


class ContextLogger:
    """Logger wrapper that automatically attaches context to log calls.

    Keyword arguments other than the standard logging ones are collected
    into the record's ``extra`` mapping.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        """Get the logger name."""
        return self._logger.name

    def _log(
        self,
        level: int,
        msg: str,
        *args: Any,
        exc_info: bool = False,
        **kwargs: Any,
    ) -> None:
        """Internal logging method that adds context."""
        extra = kwargs.pop("extra", {})

        namespace = get_namespace()
        method = get_method()

        if namespace:
            extra["namespace"] = namespace
        if method:
            extra["method"] = method

        for key in list(kwargs.keys()):
            if key not in ("exc_info", "stack_info", "stacklevel"):
                extra[key] = kwargs.pop(key)

        self._logger.log(level, msg, *args, exc_info=exc_info, extra={"extra": extra})

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log info message."""
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(logging.WARNING, msg, *args, **kwargs)


DEFAULT_LOG_LEVEL = "WARNING"

_console: Console | None = None
_setup_done: bool = False


def _get_console() -> Console:
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def _configured_defaults() -> tuple[str, Path | None]:
    """Log level and file from FF_* settings, or literal defaults if invalid.

    Logging is set up while ff is being imported, so a bad FF_* variable
    must not fail here; it is reported where settings are actually used.
    """
    from pydantic import ValidationError

    from ff.config import get_settings

    try:
        settings = get_settings()
    except ValidationError:
        return DEFAULT_LOG_LEVEL, None
    return settings.LOG_LEVEL, settings.LOG_FILE


def setup_logging(
    log_level: str | None = None,
    log_file: Path | None = None,
    console_output: bool = True,
) -> None:
    """Set up logging with JSON file handler and rich console handler.

    Args:
        log_level: Logging level. Defaults to FF_LOG_LEVEL, else WARNING.
        log_file: Path to log file. Defaults to FF_LOG_FILE; console only if unset.
        console_output: Whether to enable console output.
    """
    global _setup_done

    if log_level is None or log_file is None:
        default_level, default_file = _configured_defaults()
        log_level = log_level or default_level
        log_file = log_file or default_file

    root_logger = logging.getLogger("ff")
    root_logger.setLevel(getattr(logging, log_level.upper()))

    root_logger.handlers.clear()

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

    if console_output:
        rich_handler = ContextRichHandler(
            console=_get_console(),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            markup=False,
        )
        rich_handler.setLevel(getattr(logging, log_level.upper()))
        root_logger.addHandler(rich_handler)

    root_logger.propagate = False

    _setup_done = True


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger.

    Args:
        name: Logger name (usually __name__).

    Returns:
        ContextLogger wrapper around the standard logger.
    """
    global _setup_done

    if not _setup_done:
        setup_logging()

    if not name.startswith("ff"):
        name = f"ff.{name}"

    return ContextLogger(logging.getLogger(name))
