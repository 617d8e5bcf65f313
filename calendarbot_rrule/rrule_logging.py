"""
Central logging configuration for calendarbot_rrule.

The engine logs per-iteration detail at DEBUG, which is far too chatty for a
host application in production; this module sets sensible levels for the
package loggers and installs a colorized console handler when the host has
not configured logging itself.
"""

import logging
import os
import sys
from typing import TYPE_CHECKING, Optional

from colorlog import ColoredFormatter

if TYPE_CHECKING:
    from .settings import RecurrenceSettings

DEBUG_ENV = "CALENDARBOT_RRULE_DEBUG"
LOG_LEVEL_ENV = "CALENDARBOT_RRULE_LOG_LEVEL"

# HH:MM:SS  LEVEL   logger.name: message
LOG_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

RRULE_MODULES = [
    "calendarbot_rrule",
    "calendarbot_rrule.temporal",
    "calendarbot_rrule.rrule_parser",
    "calendarbot_rrule.rrule_stages",
    "calendarbot_rrule.rrule_generator",
    "calendarbot_rrule.settings",
    "calendarbot_rrule.timezone_utils",
]


def create_console_handler(level: int = logging.NOTSET) -> logging.Handler:
    """Stream handler on stderr with the colorized level column."""
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=DATE_FORMAT, log_colors=LOG_COLORS))
    return handler


def configure_rrule_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for calendarbot_rrule.

    Args:
        debug_mode: Whether to enable debug logging for calendarbot_rrule modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        CALENDARBOT_RRULE_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        CALENDARBOT_RRULE_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv(DEBUG_ENV, "").strip().lower() in ("1", "true", "yes")
    env_log_level = os.getenv(LOG_LEVEL_ENV, "").strip().upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a handler if the host has not configured one
    if not root_logger.handlers:
        root_logger.addHandler(create_console_handler(root_level))

    module_level = logging.DEBUG if final_debug else logging.INFO
    for module in RRULE_MODULES:
        logging.getLogger(module).setLevel(module_level)

    if final_debug:
        root_logger.info("Debug logging enabled for calendarbot_rrule modules")
    else:
        root_logger.debug("Production logging configuration applied for calendarbot_rrule")


def configure_from_settings(settings: "RecurrenceSettings") -> None:
    """Apply the ``debug`` / ``log_level`` values of a RecurrenceSettings instance."""
    configure_rrule_logging(debug_mode=settings.debug or settings.log_level == "DEBUG")
    if not settings.debug and settings.log_level != "DEBUG":
        level = getattr(logging, settings.log_level)
        for module in RRULE_MODULES:
            logging.getLogger(module).setLevel(level)


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in RRULE_MODULES:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
