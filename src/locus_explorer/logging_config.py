"""Logging configuration and utilities."""

import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'
    }

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = None, use_colors: bool = True):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname

        if self.use_colors and levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"

        result = super().format(record)

        # Restore so other handlers see the plain level name
        record.levelname = levelname

        return result


class ProgressLogger:
    """Logger for progress tracking across incremental batches."""

    def __init__(self, logger: logging.Logger, total: int, operation: str = "Loading"):
        """
        Initialize progress logger.

        Args:
            logger: Logger instance to use
            total: Total number of items
            operation: Operation description
        """
        self.logger = logger
        self.total = total
        self.operation = operation
        self.processed = 0
        self.failed = 0
        self.start_time = datetime.now()

    def update(self, count: int = 1, failed: int = 0, item: Optional[str] = None):
        """Advance progress by ``count`` items, ``failed`` of which were dropped."""
        self.processed += count
        self.failed += failed

        progress = (self.processed / self.total) * 100 if self.total > 0 else 0

        elapsed = (datetime.now() - self.start_time).total_seconds()
        if self.processed > 0 and elapsed > 0:
            rate = self.processed / elapsed
            remaining = (self.total - self.processed) / rate if rate > 0 else 0
            eta = f", ETA: {int(remaining)}s"
        else:
            eta = ""

        prefix = f"{self.operation} {item}" if item else self.operation
        self.logger.info(
            f"{prefix}: {self.processed}/{self.total} "
            f"({progress:.1f}%) - {self.failed} dropped{eta}"
        )

    def complete(self):
        """Log completion summary."""
        elapsed = (datetime.now() - self.start_time).total_seconds()
        success_rate = ((self.processed - self.failed) / self.processed * 100) if self.processed > 0 else 0

        self.logger.info(
            f"{self.operation} complete: {self.processed} items in {elapsed:.1f}s "
            f"({success_rate:.1f}% kept)"
        )


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_dir: Optional[str] = None,
    console: bool = True,
    colors: bool = True,
    rotate_logs: bool = True,
    max_bytes: int = 10485760,  # 10MB
    backup_count: int = 5,
    quiet: bool = False
) -> Dict[str, logging.Logger]:
    """
    Setup logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Custom log file name
        log_dir: Directory for log files; no file logging when None
        console: Enable console output
        colors: Enable colored console output
        rotate_logs: Enable log rotation
        max_bytes: Maximum log file size before rotation
        backup_count: Number of backup files to keep
        quiet: Suppress all but error logs to console

    Returns:
        Dictionary of configured loggers
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    console_formatter = ColoredFormatter(
        '%(levelname)s - %(message)s',
        use_colors=colors
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.setLevel(logging.DEBUG)

    target = None
    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        if log_file is None:
            target = log_path / f"locus_explorer_{datetime.now().strftime('%Y%m%d')}.log"
        else:
            target = log_path / log_file

        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        if rotate_logs:
            file_handler = logging.handlers.RotatingFileHandler(
                target,
                maxBytes=max_bytes,
                backupCount=backup_count
            )
        else:
            file_handler = logging.FileHandler(target)

        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

    if console:
        # stderr keeps command output on stdout clean
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.ERROR if quiet else level)
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

    loggers = {
        'main': logging.getLogger('locus_explorer'),
        'loader': logging.getLogger('locus_explorer.file_loader'),
        'merger': logging.getLogger('locus_explorer.merger'),
        'grouper': logging.getLogger('locus_explorer.grouper'),
        'orchestrator': logging.getLogger('locus_explorer.orchestrator'),
        'search': logging.getLogger('locus_explorer.search'),
        'cache': logging.getLogger('locus_explorer.cache'),
        'performance': logging.getLogger('locus_explorer.performance')
    }

    loggers['main'].debug(f"Logging initialized - Level: {log_level}, File: {target}")

    return loggers


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(f"locus_explorer.{name}")


def log_performance(operation: str, duration: float, items: Optional[int] = None):
    """Log performance metrics."""
    logger = logging.getLogger('locus_explorer.performance')

    if items:
        rate = items / duration if duration > 0 else 0
        logger.info(f"{operation}: {items} items in {duration:.2f}s ({rate:.1f} items/s)")
    else:
        logger.info(f"{operation}: completed in {duration:.2f}s")


def log_cache_hit(filename: str, hit: bool):
    """Log loader cache access."""
    logger = logging.getLogger('locus_explorer.cache')

    if hit:
        logger.debug(f"Cache hit: {filename}")
    else:
        logger.debug(f"Cache miss: {filename}")


class LogTimer:
    """Context manager for timing operations."""

    def __init__(self, operation: str, logger: Optional[logging.Logger] = None):
        """
        Initialize timer.

        Args:
            operation: Operation description
            logger: Logger to use (defaults to performance logger)
        """
        self.operation = operation
        self.logger = logger or logging.getLogger('locus_explorer.performance')
        self.start_time = None
        self.elapsed = 0.0

    def __enter__(self):
        self.start_time = datetime.now()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time:
            self.elapsed = (datetime.now() - self.start_time).total_seconds()
            if exc_type is None:
                self.logger.debug(f"{self.operation} completed in {self.elapsed:.2f}s")
            else:
                self.logger.error(f"{self.operation} failed after {self.elapsed:.2f}s")
