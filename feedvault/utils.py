"""
Utility functions shared across the archive pipeline
"""

import logging
import threading
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Dict, Hashable, Iterator

from dotenv import load_dotenv

from .constants import LOG_BACKUP_COUNT, LOG_MAX_BYTES
from .config import load_config, validate_config, ConfigError  # noqa: F401 (re-export)
from .models import BestEffortResult

load_dotenv()


def setup_logger(name: str, log_file: str, level=None, debug: bool = False) -> logging.Logger:
    """
    Setup a logger with file and console output

    Args:
        name: Logger name
        log_file: Log file path
        level: Logging level (overrides debug flag if provided)
        debug: If True, set level to DEBUG

    Returns:
        Configured logger
    """
    if level is None:
        level = logging.DEBUG if debug else logging.INFO

    base_dir = Path(__file__).parent.parent
    log_path = base_dir / "logs" / log_file
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Prevent duplicate handlers
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
    )
    file_handler.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    # Formatter: include function name in debug mode
    if debug:
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
    else:
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    formatter = logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S")
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger


def sanitize_for_path(value: str) -> str:
    """
    Make a string safe to use as a single path component.

    Every character that is not a letter, digit, underscore or hyphen is
    replaced with an underscore.  Letters and digits are Unicode-aware, so
    ``"Café"`` stays ``"Café"``.

    Args:
        value: Raw author / category / title string

    Returns:
        Sanitized string, or ``"unknown"`` for empty input
    """
    if not value:
        return "unknown"
    return "".join(ch if ch.isalnum() or ch in "_-" else "_" for ch in value)


def format_size(size_bytes: int) -> str:
    """
    Format byte size to human-readable string

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string (e.g., "1.5 GB")
    """
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_bytes < 1024.0:
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} PB"


def best_effort(
    operation: str,
    func: Callable[..., Any],
    *args: Any,
    logger: logging.Logger,
    **kwargs: Any,
) -> BestEffortResult:
    """Run *func* and report the outcome instead of raising.

    Used for side calls whose failure must never abort the caller
    (mark-as-read, notifications, tag attachment).
    """
    try:
        func(*args, **kwargs)
    except Exception as e:
        logger.warning("%s failed: %s", operation, e)
        return BestEffortResult(operation=operation, ok=False, error=str(e))
    return BestEffortResult(operation=operation, ok=True)


class KeyedLock:
    """One ``threading.Lock`` per key, created on demand.

    Serializes check-then-act sequences (exists/insert, search/create)
    for the same key while letting different keys proceed in parallel.
    Locks are dropped once no thread holds or waits for them.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._waiters: Dict[Hashable, int] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._waiters[key] = self._waiters.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._waiters[key] -= 1
                if self._waiters[key] == 0:
                    del self._waiters[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class ReadWriteLock:
    """Many concurrent readers or a single writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()
