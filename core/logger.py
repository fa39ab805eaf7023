"""
Centralized logging configuration using Loguru.

Loguru does NOT support printf-style formatting. Use f-strings:
   logger.info(f"Claimed queue_id={queue_id}")

Configuration:
--------------
- LOG_LEVEL env var controls console output level (default: INFO)
- DEBUG=true forces DEBUG when LOG_LEVEL is empty
- LOG_FILE_ENABLED=true adds rotating app.log / error.log handlers
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger  # type: ignore

_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def format_exception_short(exception: Exception, context: Optional[str] = None) -> str:
    """
    Format exception to be short and readable.

    Example:
        >>> format_exception_short(ValueError("bad"), "Claiming row")
        'Claiming row | ValueError: bad | (unknown)'
    """
    exc_type = type(exception).__name__
    tb = exception.__traceback__
    if tb:
        while tb.tb_next:
            tb = tb.tb_next
        location = f"{Path(tb.tb_frame.f_code.co_filename).name}:{tb.tb_lineno}"
    else:
        location = "unknown"

    parts = []
    if context:
        parts.append(context)
    parts.append(f"{exc_type}: {exception}")
    parts.append(f"({location})")
    return " | ".join(parts)


def resolve_log_level(log_level: Optional[str], debug: bool) -> str:
    """LOG_LEVEL takes precedence over the DEBUG flag."""
    if log_level:
        level = log_level.upper()
        return level if level in _VALID_LEVELS else "INFO"
    return "DEBUG" if debug else "INFO"


def setup_logger():
    """Configure logger handlers."""
    from .config import get_settings

    settings = get_settings()
    log_level = resolve_log_level(settings.log_level, settings.debug)

    logger.remove()

    def filter_reloader_logs(record):
        """Block duplicate logs from uvicorn reloader processes."""
        return record.get("name", "") not in ("__main__", "__mp_main__")

    logger.add(
        sys.stdout,
        colorize=True,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=log_level,
        filter=filter_reloader_logs,
    )

    if settings.log_file_enabled:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(exist_ok=True)

        logger.add(
            log_dir / "app.log",
            rotation="100 MB",
            retention="30 days",
            compression="zip",
            format=_FILE_FORMAT,
            level="DEBUG",
        )
        logger.add(
            log_dir / "error.log",
            rotation="100 MB",
            retention="30 days",
            compression="zip",
            format=_FILE_FORMAT,
            level="ERROR",
        )


# Configure logger on module import
setup_logger()

__all__ = ["logger", "format_exception_short", "resolve_log_level"]
