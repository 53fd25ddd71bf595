"""
Logging setup.

Module code only asks for a logger:

    >>> from psk_exchange.logger import get_logger
    >>> logger = get_logger(__name__)

Entry points call ``configure_logging`` once to attach a rich console handler.
"""

import logging
import threading
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler


DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = "%(name)s - %(message)s"
LOG_DATE_FORMAT = "[%Y-%m-%d %H:%M:%S]"

# Third party loggers that are too chatty at INFO
NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore")

_lock = threading.Lock()
_configured = False


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def configure_logging(level: Optional[Union[str, int]] = None, console: Optional[Console] = None) -> None:
    """
    Attach a rich handler to the root logger. Only the first call has an effect.

    Args:
        level: Level name or number, defaults to INFO
        console: Console to log to, defaults to stderr
    """
    global _configured
    with _lock:
        if _configured:
            return

        if level is None:
            level = DEFAULT_LOG_LEVEL
        if isinstance(level, str):
            level = getattr(logging, level.upper(), logging.INFO)

        handler = RichHandler(
            console=console or Console(stderr=True),
            rich_tracebacks=True,
            show_path=False,
            markup=False,
            log_time_format=LOG_DATE_FORMAT,
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT))

        root = logging.getLogger()
        root.setLevel(level)
        root.addHandler(handler)

        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(level, logging.WARNING))

        _configured = True
