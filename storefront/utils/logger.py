"""
Package logging for the storefront engine.

Every component logs through a `storefront.<component>` child logger and
writes messages as `component: key=value ...`, so the handler format only
adds time and level. The level comes from EngineConfig.log_level when the
engine is assembled, or from LOG_LEVEL before that.
"""
import logging
import os
import sys
from typing import Optional, TextIO

PACKAGE = "storefront"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_package_logger = logging.getLogger(PACKAGE)
_handler: Optional[logging.Handler] = None


def configure_logging(level: Optional[str] = None, stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Set the package log level and attach the console handler once.

    Args:
        level: Level name; falls back to LOG_LEVEL, then INFO
        stream: Handler target; stdout unless given. Only honoured on the
            first call, later calls just change the level.
    """
    global _handler
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    _package_logger.setLevel(level_name)

    if _handler is None:
        _handler = logging.StreamHandler(stream or sys.stdout)
        _handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        _package_logger.addHandler(_handler)
        # host applications see our records once, through this handler
        _package_logger.propagate = False
    _handler.setLevel(level_name)
    return _package_logger


def get_logger(component: Optional[str] = None) -> logging.Logger:
    """Child logger for one component, e.g. get_logger("api_client")."""
    if _handler is None:
        configure_logging()
    if component:
        return _package_logger.getChild(component)
    return _package_logger
