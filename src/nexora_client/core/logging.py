"""
Logging for Nexora Client.

Console output goes through Rich; an optional log file receives one JSON
object per line. Records can carry request or export context (entity,
category, job_id, method, url, status) passed through `extra=` or bound
with a ContextualLogger.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from rich.console import Console


ROOT_LOGGER_NAME = "nexora_client"

# Record attributes written to JSON lines and used for console prefixes
CONTEXT_KEYS = ("entity", "category", "job_id", "method", "url", "status")

# Chatty libraries kept at WARNING unless we run at DEBUG
NOISY_LOGGERS = ("httpx", "httpcore")

LEVEL_STYLES = {
    logging.DEBUG: "dim",
    logging.INFO: "default",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "bold red",
}

PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Context attributes present on a record."""
    return {key: getattr(record, key) for key in CONTEXT_KEYS if hasattr(record, key)}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with context attributes as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_context(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class RichConsoleHandler(logging.Handler):
    """Print records to a Rich console, coloured by level.

    The export category, or else the entity name, is shown as a prefix.
    """

    def __init__(self, console: "Console | None" = None, level: int = logging.INFO):
        super().__init__(level)
        if console is None:
            from rich.console import Console
            console = Console(stderr=True)
        self.console = console

    def emit(self, record: logging.LogRecord) -> None:
        from rich.markup import escape

        try:
            style = LEVEL_STYLES.get(record.levelno, "default")
            tag = getattr(record, "category", None) or getattr(record, "entity", None)
            prefix = f"[cyan][{escape(str(tag))}][/cyan] " if tag else ""
            # URLs and payloads may contain square brackets
            self.console.print(f"{prefix}[{style}]{escape(self.format(record))}[/{style}]")
            if record.exc_info:
                self.console.print_exception()
        except Exception:
            self.handleError(record)


def _console_handler(rich_console: bool, level: int) -> logging.Handler:
    handler: logging.Handler
    if rich_console:
        handler = RichConsoleHandler(level=level)
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    handler.setLevel(level)
    return handler


def _file_handler(log_file: Path | str, json_format: bool) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(path, encoding="utf-8")
    # The file keeps everything, whatever the console level
    handler.setLevel(logging.DEBUG)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Path | str | None = None,
    json_format: bool = True,
    rich_console: bool = True,
) -> logging.Logger:
    """Configure the nexora_client logger tree.

    Replaces handlers installed by a previous call.

    Args:
        level: Console log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file receiving every record
        json_format: Write the file as JSON lines
        rich_console: Use Rich for console output

    Returns:
        The nexora_client root logger
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG if log_file else numeric_level)
    logger.addHandler(_console_handler(rich_console, numeric_level))
    if log_file:
        logger.addHandler(_file_handler(log_file, json_format))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger under the nexora_client tree, e.g. get_logger("export")."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}" if name else ROOT_LOGGER_NAME)


class ContextualLogger(logging.LoggerAdapter):
    """Adapter binding context attributes to every record it emits.

    Context given per call through `extra=` takes precedence.
    """

    def __init__(self, logger: logging.Logger, **context: Any):
        super().__init__(logger, {k: v for k, v in context.items() if v is not None})

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs

    def with_context(self, **context: Any) -> "ContextualLogger":
        """Copy of this adapter with more context bound."""
        return ContextualLogger(self.logger, **{**self.extra, **context})


def get_contextual_logger(name: str | None = None, **context: Any) -> ContextualLogger:
    """Contextual logger, e.g. get_contextual_logger("export", category="STOCK", job_id=...)."""
    return ContextualLogger(get_logger(name), **context)
