"""
Loguru sinks for the API server and CLI.

- error.log: errors only, JSON lines
- combined.log: everything at the configured level, JSON lines
- api.log: HTTP access records (bound with context="api")
- console: short colorized lines, except in production
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> <level>{level: <8}</level> "
    "<cyan>{extra[context]}</cyan> {message}"
)


def _is_api_record(record) -> bool:
    return record["extra"].get("context") == "api"


def configure_logging(level: str = "INFO", log_dir: Optional[str] = "./logs", environment: str = "development") -> None:
    """Replace loguru's default sink with the service's sinks"""
    logger.remove()
    logger.configure(extra={"context": "app", "service": "brohelp"})

    if environment != "production":
        logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)

    if not log_dir:
        return

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger.add(
        log_path / "error.log",
        level="ERROR",
        serialize=True,
        rotation="5 MB",
        retention=5,
        backtrace=False,
    )
    logger.add(
        log_path / "combined.log",
        level=level,
        serialize=True,
        rotation="10 MB",
        retention=10,
    )
    logger.add(
        log_path / "api.log",
        level="INFO",
        serialize=True,
        rotation="10 MB",
        retention=5,
        filter=_is_api_record,
    )
