"""Logging configuration.

JSON output uses python-json-logger so records keep the ``extra`` fields
(request_id, step, retry_count, ...) attached by the settlement services.
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from orchestrator.core.config import Settings, get_settings

NOISY_LOGGERS = ("web3", "httpx", "httpcore", "urllib3", "aiosqlite", "uvicorn.access")


def setup_logging(settings: Settings | None = None) -> None:
    """Configure the root logger from settings.

    Args:
        settings: Settings to read level and format from (defaults to cached settings)
    """
    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if settings.log_format == "json":
        formatter: logging.Formatter = JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            rename_fields={
                "asctime": "timestamp",
                "name": "logger",
                "levelname": "level",
            },
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
