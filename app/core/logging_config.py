# -*- coding: utf-8 -*-
"""
Process-wide logging setup.

Routes logs by severity for correct container/platform classification:
- INFO, WARNING -> STDOUT
- ERROR, CRITICAL -> STDERR

Records go through QueueHandler + QueueListener so a blocked stdout never
stalls the event loop while a webhook update is being processed.
"""

import atexit
import logging
import queue
import sys
from logging.handlers import QueueHandler, QueueListener
from typing import Optional


class MaxLevelFilter(logging.Filter):
    """Allows only records up to max_level (inclusive)."""

    def __init__(self, max_level):
        super().__init__()
        self.max_level = max_level

    def filter(self, record):
        return record.levelno <= self.max_level


_log_listener: Optional[QueueListener] = None


def setup_logging(level: str = "INFO"):
    """
    Install a QueueHandler on the root logger and start the listener thread.

    Must be called before any logger is used (first thing in main.py).
    Calling it again replaces the previous listener.
    """
    global _log_listener

    _stop_log_listener()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(logging.DEBUG)
    stdout_handler.addFilter(MaxLevelFilter(logging.WARNING))
    stdout_handler.setFormatter(formatter)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.ERROR)
    stderr_handler.setFormatter(formatter)

    log_queue = queue.Queue()
    root_logger.addHandler(QueueHandler(log_queue))

    _log_listener = QueueListener(
        log_queue,
        stdout_handler,
        stderr_handler,
        respect_handler_level=True,
    )
    _log_listener.start()
    atexit.register(_stop_log_listener)

    # aiogram logs every update at INFO
    logging.getLogger("aiogram.event").setLevel(logging.WARNING)


def _stop_log_listener():
    global _log_listener
    if _log_listener is not None:
        _log_listener.stop()
        _log_listener = None
