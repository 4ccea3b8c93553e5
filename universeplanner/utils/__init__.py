"""Utility helpers: configuration and structured logging."""

from universeplanner.utils.config import Config, get_config, reset_config
from universeplanner.utils.logging import configure_logging, get_logger, planning_context

__all__ = [
    "Config",
    "get_config",
    "reset_config",
    "configure_logging",
    "get_logger",
    "planning_context",
]
