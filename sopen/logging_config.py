#!/usr/bin/env python3
"""
Sopen Console Logging Configuration
===================================

Colorized console logging that renders the stable event code attached to
boot and dependency log records, so operators (and log shippers) can grep
``[REDIS_INIT_NON_CRITICAL]`` regardless of the message wording.
"""

import logging
import sys
from datetime import datetime
from typing import Optional

import colorama
from colorama import Fore, Style

colorama.init(autoreset=True)


class EventCodeFormatter(logging.Formatter):
    """Formatter with colors and icons keyed on record level and event code"""

    ICONS = {
        'SUCCESS': '✅',
        'NOTICE': 'ℹ️ ',
        logging.DEBUG: '🔍',
        logging.INFO: '📌',
        logging.WARNING: '⚠️ ',
        logging.ERROR: '❌',
        logging.CRITICAL: '🚨',
    }

    COLORS = {
        'SUCCESS': Fore.GREEN,
        'NOTICE': Fore.CYAN,
        logging.DEBUG: Style.DIM,
        logging.INFO: Fore.WHITE,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record):
        kind = getattr(record, 'event_kind', None) or record.levelno
        icon = self.ICONS.get(kind, '📌')
        color = self.COLORS.get(kind, Fore.WHITE) if self.use_color else ''
        reset = Style.RESET_ALL if self.use_color else ''
        dim = Fore.BLUE if self.use_color else ''

        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]
        parts = [f"{dim}{timestamp}{reset}", icon]

        event_code = getattr(record, 'event_code', None)
        if event_code:
            parts.append(f"{Fore.MAGENTA if self.use_color else ''}[{event_code}]{reset}")

        parts.append(f"{color}{record.getMessage()}{reset}")
        line = " ".join(parts)

        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(level: int = logging.INFO, stream=None, use_color: Optional[bool] = None) -> logging.Logger:
    """Install the console handler on the ``sopen`` logger tree.

    Safe to call more than once; the previous handler is replaced.
    """
    stream = stream or sys.stdout
    if use_color is None:
        use_color = hasattr(stream, "isatty") and stream.isatty()

    root = logging.getLogger("sopen")
    root.setLevel(level)
    for handler in list(root.handlers):
        if getattr(handler, "_sopen_console", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(EventCodeFormatter(use_color=use_color))
    handler._sopen_console = True
    root.addHandler(handler)

    # Silence noisy third-party libraries
    for _lib in ["pymongo", "aio_pika", "aiormq", "asyncio", "urllib3", "google"]:
        logging.getLogger(_lib).setLevel(logging.WARNING)

    return root
