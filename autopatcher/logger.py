"""Loguru-based logging setup."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

_CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level:<7}</level> | {message}"
# Verbose output interleaves scan, manifest and patch workers
_VERBOSE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level:<7}</level> | "
    "<cyan>{thread.name:<10}</cyan> | {message}"
)


def setup_logger(log_dir: Path | None = None, verbose: bool = False) -> None:
    """Configure loguru with console + rotating file output."""
    logger.remove()

    # Console
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "INFO",
        format=_VERBOSE_FORMAT if verbose else _CONSOLE_FORMAT,
        colorize=True,
    )

    # File: one debug log per cache directory, kept across runs
    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_dir / "autopatcher.log"),
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level:<7} | {thread.name} | {name}:{line} | {message}",
            rotation="5 MB",
            retention="7 days",
            encoding="utf-8",
            enqueue=True,
        )
