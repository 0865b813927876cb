"""Logging setup for the sponsored bridge service.

loguru carries all application logs. Chatty third-party loggers that go
through the standard library (httpx request lines, solana RPC internals)
are capped at WARNING so swap and quote events stay readable.
"""
import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"

NOISY_LOGGERS = ("httpx", "httpcore", "solana", "websockets")


def setup_logging(
    log_dir: Optional[str] = "./logs",
    level: str = "INFO",
    rotation: str = "100 MB",
    retention: str = "30 days",
) -> None:
    """Send logs to stdout and, when ``log_dir`` is set, a rotating file."""
    logger.remove()
    logger.add(sys.stdout, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path / "sponsored-bridge.log",
            format=FILE_FORMAT,
            level=level,
            rotation=rotation,
            retention=retention,
            compression="zip",
        )

    _quiet_external_loggers()
    logger.info("Logging configured at {} level", level)


def _quiet_external_loggers() -> None:
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
