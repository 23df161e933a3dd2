"""
Logging Configuration

All modules log through logging.getLogger(__name__), so every logger in the
package lives under the "shortlink" tree. configure_logging() attaches one
handler to that tree; embedding applications may skip it and configure the
root logger themselves.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger("shortlink")


def configure_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Logging level name (e.g. "INFO", "DEBUG")

    Returns:
        The configured "shortlink" logger
    """
    logger.setLevel(level.upper())

    if not any(getattr(handler, "_shortlink", False) for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._shortlink = True
        logger.addHandler(handler)

    return logger
