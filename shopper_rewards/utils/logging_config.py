"""
Logging setup for the shopper rewards service.

Called once from create_app() before anything else logs. Modules use
logging.getLogger(__name__); request handlers may use current_app.logger.
"""
import logging
import os
import sys

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'

_configured = False


def setup_logging(level: str = None) -> None:
    """Configure the root logger with a single stdout handler."""
    global _configured
    if _configured:
        return

    level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    root.addHandler(handler)

    # requests/urllib3 log every connection at DEBUG
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Shorthand for logging.getLogger used by scripts and CLI commands."""
    return logging.getLogger(name)
