"""Logging setup for ThoughtChain MCP.

All modules log through ``loguru.logger``. This module owns the sink
configuration and the per-call context (tool name, session id) rendered
in front of every text log line.

Logs always go to stderr: stdout carries the MCP stdio transport.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from loguru import Record

_tool_name: ContextVar[str | None] = ContextVar("tool_name", default=None)
_session_id: ContextVar[str | None] = ContextVar("session_id", default=None)


class LogFormat(str, Enum):
    """Supported log output formats."""

    JSON = "json"
    TEXT = "text"


class LogLevel(str, Enum):
    """Supported log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def context_prefix() -> str:
    """Render the active tool/session context as ``[tool=... sess=...] ``."""
    parts = []
    if tool_name := _tool_name.get():
        parts.append(f"tool={tool_name}")
    if session_id := _session_id.get():
        parts.append(f"sess={session_id[:19]}")
    return f"[{' '.join(parts)}] " if parts else ""


def text_format(record: Record) -> str:
    """Format log record as human-readable text.

    Args:
        record: Loguru record dictionary.

    Returns:
        Loguru format template for console output.

    """
    record["extra"]["context"] = context_prefix()
    return (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "{extra[context]}<level>{message}</level>\n{exception}"
    )


def configure_logging(
    level: LogLevel | str | None = None,
    log_format: LogFormat | str | None = None,
    log_file: str | Path | None = None,
) -> None:
    """Install loguru sinks.

    Reads configuration from environment variables if not specified:
    - LOG_LEVEL: Minimum log level (DEBUG, INFO, WARNING, ERROR)
    - LOG_FORMAT: Output format (json, text)
    - LOG_FILE: Optional file path for JSON log output

    Args:
        level: Minimum log level.
        log_format: Console output format.
        log_file: Optional file path for log output.

    """
    resolved_level = LogLevel(level or os.getenv("LOG_LEVEL", "INFO").upper())
    resolved_format = LogFormat(log_format or os.getenv("LOG_FORMAT", "text").lower())
    resolved_file = log_file or os.getenv("LOG_FILE")

    logger.remove()

    if resolved_format == LogFormat.JSON:
        logger.add(sys.stderr, format="{message}", level=resolved_level.value, serialize=True)
    else:
        logger.add(sys.stderr, format=text_format, level=resolved_level.value, colorize=True)

    if resolved_file:
        log_path = Path(resolved_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format="{message}",
            level=resolved_level.value,
            serialize=True,
            rotation="10 MB",
            retention="7 days",
        )


@contextmanager
def tool_context(
    tool_name: str | None = None, session_id: str | None = None
) -> Generator[None, None, None]:
    """Scope log context to one tool call.

    Example:
        with tool_context("sequentialthinking", engine.session_id):
            logger.info("Processing")  # prefixed with [tool=sequentialthinking ...]

    """
    tokens = []
    if tool_name:
        tokens.append(_tool_name.set(tool_name))
    if session_id:
        tokens.append(_session_id.set(session_id))
    try:
        yield
    finally:
        for token in reversed(tokens):
            token.var.reset(token)


def set_session_id(session_id: str | None) -> None:
    """Set the session ID for the current context."""
    _session_id.set(session_id)


def get_session_id() -> str | None:
    """Get the current session ID from context."""
    return _session_id.get()
