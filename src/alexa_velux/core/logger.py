"""Logging setup and helpers for compact, secret-free log output."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVELS = ("debug", "info", "warning", "error")

# Default max line length for truncation
DEFAULT_MAX_LINE_LENGTH = 200

# Keys whose values never reach a log line
SECRET_KEYS = frozenset(
    [
        "password",
        "authorization",
        "access_token",
        "refresh_token",
        "accesstoken",
        "refreshtoken",
    ]
)
MASK = "***MASKED***"


def setup_logging(level: str = "warning", log_file: Path | None = None) -> None:
    """Configure the root logger.

    Args:
        level: Log level name (debug, info, warning, error).
        log_file: Optional file to log to in addition to stderr.

    Raises:
        ValueError: If the level name is not one of LOG_LEVELS.
    """
    if level.lower() not in LOG_LEVELS:
        raise ValueError(f"Unknown log level '{level}'")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    # httpx logs every request at info, including URLs with our tenant data
    logging.getLogger("httpx").setLevel(logging.WARNING)


def truncate(text: str, max_length: int = DEFAULT_MAX_LINE_LENGTH) -> str:
    """Truncate text to max length per line."""
    lines = text.split("\n")
    truncated_lines = []
    for line in lines:
        if len(line) > max_length:
            truncated_lines.append(line[: max_length - 3] + "...")
        else:
            truncated_lines.append(line)
    return "\n".join(truncated_lines)


def redact(data: Any) -> Any:
    """Return a copy of ``data`` with secret values masked, recursively."""
    if isinstance(data, dict):
        return {
            key: MASK if str(key).lower() in SECRET_KEYS else redact(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [redact(item) for item in data]
    return data


def format_params(params: dict[str, Any]) -> str:
    """Format parameters compactly with secrets masked."""
    try:
        return truncate(json.dumps(redact(params), separators=(",", ":"), default=str))
    except (TypeError, ValueError):
        return truncate(str(redact(params)))
