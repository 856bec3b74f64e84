"""
Service logging setup

Configures the root logger once per process (console and optional rotating
file) and hands out named loggers to the services.

Usage:
    from core.logger import setup_service_logger

    logger = setup_service_logger("contract_service")
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from core.config import LoggingConfig, get_settings

_configured = False


def _configure_root(config: LoggingConfig, level: int) -> None:
    global _configured

    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(config.log_format)

    if config.enable_console:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        root.addHandler(console)

    if config.log_file:
        file_handler = RotatingFileHandler(
            config.log_file,
            maxBytes=config.log_file_max_bytes,
            backupCount=config.log_file_backup_count,
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # Quiet chatty drivers
    for noisy in ("asyncpg", "nats", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _configured = True


def setup_service_logger(service_name: str, level: Optional[str] = None) -> logging.Logger:
    """Return the logger of a service, configuring handlers on first use"""
    config = get_settings().logging
    log_level = getattr(logging, (level or config.log_level).upper(), logging.INFO)

    if not _configured:
        _configure_root(config, log_level)

    logger = logging.getLogger(service_name)
    logger.setLevel(log_level)
    return logger
