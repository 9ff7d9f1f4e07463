"""
Centralized logging configuration for the application.
"""

import logging
import sys
from typing import Optional, TextIO

from .config import AppConfig

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Client libraries that flood DEBUG output with request dumps
NOISY_LOGGERS = ('botocore', 'urllib3', 'opensearch')


def _level(config: AppConfig) -> int:
    return getattr(logging, config.log_level.upper(), logging.INFO)


def _log_stream(config: AppConfig) -> TextIO:
    # stdout carries the MCP protocol when serving over stdio
    return sys.stderr if config.mcp.transport == 'stdio' else sys.stdout


def setup_logging(config: Optional[AppConfig] = None) -> None:
    """
    Configure the root logger once for the process.

    Args:
        config: AppConfig instance, uses default if None
    """
    if config is None:
        from .config import config as default_config
        config = default_config

    logging.basicConfig(level=_level(config), format=LOG_FORMAT, handlers=[logging.StreamHandler(_log_stream(config))])

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, config: Optional[AppConfig] = None) -> logging.Logger:
    """
    Get a module logger at the configured level.

    Args:
        name: Logger name (usually __name__)
        config: AppConfig instance, uses default if None
    """
    if config is None:
        from .config import config as default_config
        config = default_config

    logger = logging.getLogger(name)
    logger.setLevel(_level(config))
    return logger
