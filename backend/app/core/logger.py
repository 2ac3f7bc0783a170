"""
Logging setup.

All application loggers hang off the "app" logger, which owns the single
stream handler. Modules call ``setup_logger(__name__)``.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_ROOT_NAME = "app"
_configured = False


def _configure_root() -> logging.Logger:
    global _configured
    root = logging.getLogger(_ROOT_NAME)
    if _configured:
        return root

    from app.core.config import get_settings

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(get_settings().LOG_LEVEL.upper())
    _configured = True
    return root


def setup_logger(name: str) -> logging.Logger:
    """Get a logger under the application logger hierarchy."""
    _configure_root()
    if name != _ROOT_NAME and not name.startswith(f"{_ROOT_NAME}."):
        name = f"{_ROOT_NAME}.{name}"
    return logging.getLogger(name)


logger = setup_logger(_ROOT_NAME)
