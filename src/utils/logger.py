"""
Structured logging utility for parity runs.

Provides JSON-formatted log lines with context injection, truncation of
long transcript text, and operation timing so run logs can be shipped to
CloudWatch and queried by seed or command.
"""

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from functools import wraps

DEFAULT_TRUNCATE_LENGTH = 120


def truncate_text(text: Optional[str], max_length: int = DEFAULT_TRUNCATE_LENGTH) -> str:
    """
    Flatten and shorten game output for a single log line.

    Newlines become " | " and text longer than max_length is cut with "...".

    Args:
        text: Raw or extracted game output
        max_length: Maximum length of the returned string

    Returns:
        Single-line string no longer than max_length

    Example:
        >>> truncate_text("West of House\\nYou are standing in an open field.", 24)
        "West of House | You a..."
    """
    if not text:
        return ""

    flat = " | ".join(line.strip() for line in text.splitlines() if line.strip())
    if len(flat) <= max_length:
        return flat
    if max_length <= 3:
        return flat[:max_length]
    return flat[: max_length - 3] + "..."


class StructuredLogger:
    """
    JSON-formatted logger with context injection and operation timing.

    Every entry is a single JSON object: timestamp, level, message and the
    optional operation, context, duration_ms and error fields.
    """

    def __init__(self, name: str):
        """
        Initialize structured logger.

        Args:
            name: Logger name (typically __name__ from calling module)
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(logging.Formatter("%(message)s"))
            self.logger.addHandler(handler)

    def _format_log(
        self,
        level: str,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
        error: Optional[str] = None,
    ) -> str:
        """
        Format log entry as JSON.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR)
            message: Human-readable message
            operation: Operation name (e.g., "compare_seed", "save_baseline")
            context: Context dict with seed, command_index, etc.
            duration_ms: Operation duration in milliseconds
            error: Error message if applicable

        Returns:
            JSON-formatted log string
        """
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": level,
            "message": message,
        }

        if operation:
            log_entry["operation"] = operation
        if context:
            log_entry["context"] = context
        if duration_ms is not None:
            log_entry["duration_ms"] = round(duration_ms, 2)
        if error:
            log_entry["error"] = error

        return json.dumps(log_entry, ensure_ascii=False, default=str)

    def debug(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.logger.debug(self._format_log("DEBUG", message, operation, context))

    def info(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
    ):
        self.logger.info(self._format_log("INFO", message, operation, context, duration_ms))

    def warning(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ):
        self.logger.warning(
            self._format_log("WARNING", message, operation, context, error=error)
        )

    def error(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        duration_ms: Optional[float] = None,
    ):
        self.logger.error(
            self._format_log("ERROR", message, operation, context, duration_ms, error)
        )


def log_operation(operation_name: str):
    """
    Decorator to log operation start, duration, and completion or failure.

    A ``seed`` keyword argument, when present, is copied into the context.

    Usage:
        @log_operation("compare_seed")
        def compare_seed(self, seed, commands):
            ...
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = StructuredLogger(func.__module__)

            context: Dict[str, Any] = {"function": func.__name__}
            if "seed" in kwargs:
                context["seed"] = kwargs["seed"]

            logger.debug(f"Starting {operation_name}", operation=operation_name, context=context)

            start_time = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"Failed {operation_name}",
                    operation=operation_name,
                    context=context,
                    error=str(e),
                    duration_ms=(time.time() - start_time) * 1000,
                )
                raise

            logger.info(
                f"Completed {operation_name}",
                operation=operation_name,
                context=context,
                duration_ms=(time.time() - start_time) * 1000,
            )
            return result

        return wrapper

    return decorator


def get_logger(name: str) -> StructuredLogger:
    """
    Factory function to get a structured logger instance.

    Args:
        name: Logger name (typically __name__ from calling module)

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(name)
