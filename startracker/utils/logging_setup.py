#!/usr/bin/env python3
"""
Logging setup driven by the 'logging' configuration section.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(config: Any = None, level: Optional[str] = None) -> logging.Logger:
    """Configure the root logger from a ConfigManager-like object.

    Args:
        config: Object exposing get_logging_config(), or None for defaults
        level: Optional level name overriding the configured one

    Returns:
        The 'startracker' package logger
    """
    log_cfg = config.get_logging_config() if config is not None else {}
    level_name = str(level or log_cfg.get('level', 'INFO')).upper()
    numeric_level = getattr(logging, level_name, None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_cfg.get('log_to_file'):
        handlers.append(logging.FileHandler(log_cfg.get('log_file', 'startracker.log'), encoding='utf-8'))

    logging.basicConfig(
        level=numeric_level,
        format=log_cfg.get('format', DEFAULT_FORMAT),
        handlers=handlers,
        force=True,
    )
    logger = logging.getLogger('startracker')
    logger.setLevel(numeric_level)
    return logger
