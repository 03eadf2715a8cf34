"""Logging setup and configuration."""

import logging
import secrets
import sys
from pathlib import Path

from oauth_session.logging.formatters import ConsoleFormatter, JSONFormatter

DEFAULT_LEVEL = logging.INFO

# Noisy loggers to suppress
NOISY_LOGGERS = [
    "aiohttp",
    "aiohttp.access",
    "aiohttp.client",
    "urllib3",
    "asyncio",
]


def _parse_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def setup_logging(
    level: int | str = DEFAULT_LEVEL,
    json_format: bool = False,
    log_file: str | Path | None = None,
    suppress_noisy: bool = True,
    name: str = "oauth_session",
) -> logging.Logger:
    """
    Configure root logging with a console handler and an optional file handler.

    The console handler uses ConsoleFormatter unless json_format is set. The
    file handler always writes JSON lines so logs stay machine-readable.

    Args:
        level: Log level name or number applied to every handler
        json_format: Emit JSON on the console instead of colored text
        log_file: Optional path for a JSON-lines log file
        suppress_noisy: Quiet down HTTP client loggers
        name: Logger returned to the caller

    Returns:
        Configured logger instance
    """
    level = _parse_level(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(JSONFormatter() if json_format else ConsoleFormatter())
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    if suppress_noisy:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger(name)
    logger.debug(
        "Logging initialized: file=%s, json=%s",
        log_file,
        json_format,
    )
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance. Thin wrapper for symmetry with setup_logging."""
    return logging.getLogger(name)


def generate_trace_id() -> str:
    """Generate a short random trace ID for correlating one CLI invocation."""
    return secrets.token_hex(8)


__all__ = [
    "setup_logging",
    "get_logger",
    "generate_trace_id",
    "NOISY_LOGGERS",
]
