"""
Logging helpers shared by every ToolLink module.

Usage:
    from toollink.utils.logging import get_logger

    logger = get_logger(__name__)
"""

import logging
from typing import Optional

ROOT_LOGGER_NAME = 'toollink'

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'

# CLI verbosity (0-4) -> logging level
VERBOSITY_LEVELS = {
    0: logging.CRITICAL,
    1: logging.ERROR,
    2: logging.WARNING,
    3: logging.INFO,
    4: logging.DEBUG,
}


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Return a logger under the ``toollink`` hierarchy.

    Names that already start with ``toollink`` (e.g. ``__name__`` inside the
    package) are used as-is; anything else is nested under it, so
    ``get_logger('rbac.audit')`` yields ``toollink.rbac.audit``.
    """
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + '.'):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Install a single stream handler on the ``toollink`` logger.

    Safe to call more than once: the handler is only added the first time,
    later calls just adjust the level.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)

    if not any(getattr(h, '_toollink_handler', False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._toollink_handler = True
        root.addHandler(handler)

    return root


def setup_cli_logging(verbosity: int = 3) -> logging.Logger:
    """Configure logging from a CLI verbosity flag (0 = quiet, 4 = debug)."""
    verbosity = max(0, min(4, verbosity))
    return setup_logging(VERBOSITY_LEVELS[verbosity])
