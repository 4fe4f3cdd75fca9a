"""Process scaffolding for the reserve adjuster service.

Logging setup, graceful shutdown and the fixed-cadence loop that drives
one reconciliation per interval.

Usage:
    from shared.addon_base import setup_logging, setup_signal_handlers, run_addon_loop

    logger = setup_logging(name=__name__)
    shutdown_event = setup_signal_handlers(logger)
    run_addon_loop(reconcile_once, interval_seconds, shutdown_event, logger)
"""

import logging
import os
import signal
import threading
import time
from logging.handlers import RotatingFileHandler
from typing import Any, Callable, Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}


def setup_logging(level: int = logging.INFO, name: Optional[str] = None, log_dir: str = "/data/logs") -> logging.Logger:
    """Configure console logging plus a rotating file in the data directory.

    Args:
        level: Logging level (default: INFO)
        name: Logger name (default: None for root logger)
        log_dir: Directory for log files (default: /data/logs)

    Returns:
        Configured logger instance
    """
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger = logging.getLogger(name)

    try:
        os.makedirs(log_dir, exist_ok=True)
        log_name = (name or "reserve_adjuster").replace(".", "_")
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, f"{log_name}.log"),
            maxBytes=1024 * 1024,
            backupCount=3,
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)
    except OSError:
        # Read-only or missing /data when running outside the container
        logger.debug("File logging disabled, cannot write to %s", log_dir)

    return logger


def apply_log_level(level_name: str) -> int:
    """Set the root logger level from a config string like 'debug' or 'info'."""
    level = LOG_LEVELS.get((level_name or 'info').lower(), logging.INFO)
    logging.getLogger().setLevel(level)
    return level


def setup_signal_handlers(logger: Optional[logging.Logger] = None) -> threading.Event:
    """Register SIGTERM and SIGINT handlers for graceful shutdown.

    Args:
        logger: Optional logger for shutdown messages

    Returns:
        Event that is set once a shutdown signal arrives
    """
    shutdown_event = threading.Event()
    _logger = logger or logging.getLogger(__name__)

    def signal_handler(signum, frame):
        _logger.info("Received signal %d, stopping after the current run...", signum)
        shutdown_event.set()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    return shutdown_event


def sleep_with_shutdown_check(
    shutdown_event: threading.Event,
    total_seconds: int,
    check_interval: int = 1
) -> bool:
    """Sleep up to total_seconds, waking early on shutdown.

    Returns:
        True if the full interval elapsed, False if shutdown was requested
    """
    for _ in range(0, total_seconds, check_interval):
        if shutdown_event.is_set():
            return False
        time.sleep(min(check_interval, total_seconds))
    return not shutdown_event.is_set()


def run_addon_loop(
    update_func: Callable[[], Any],
    interval_seconds: int,
    shutdown_event: threading.Event,
    logger: Optional[logging.Logger] = None,
    run_once: bool = False
) -> int:
    """Call update_func at a fixed cadence until shutdown.

    update_func is expected to handle its own failures; anything that still
    escapes is logged so the loop keeps its cadence.

    Args:
        update_func: Function to call each iteration
        interval_seconds: Sleep interval between iterations
        shutdown_event: Event to check for shutdown
        logger: Optional logger for error messages
        run_once: If True, exit after the first iteration

    Returns:
        Number of iterations executed
    """
    _logger = logger or logging.getLogger(__name__)
    iterations = 0

    while not shutdown_event.is_set():
        try:
            update_func()
        except Exception as e:
            _logger.error("Error in update loop: %s", e, exc_info=True)
        iterations += 1

        if run_once:
            _logger.info("Single iteration complete, exiting")
            break

        if not sleep_with_shutdown_check(shutdown_event, interval_seconds):
            break

    return iterations
