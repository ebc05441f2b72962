"""Logging setup and per-document conversion logging."""

import logging
import os
import time
from typing import List, Optional

from statement_converter.config.settings import LOG_LEVEL, LOG_FORMAT, LOGS_DIR


def _build_handlers(log_path: str, console: bool) -> List[logging.Handler]:
    formatter = logging.Formatter(LOG_FORMAT)

    handlers: List[logging.Handler] = [logging.FileHandler(log_path)]
    if console:
        handlers.insert(0, logging.StreamHandler())

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logger(
    name: str,
    log_file: Optional[str] = None,
    level: str = LOG_LEVEL,
    console: bool = True,
    logs_dir: str = LOGS_DIR
) -> logging.Logger:
    """Configure a named logger writing to ``<logs_dir>/<log_file>``.

    Calling it again for the same name replaces the previous handlers, so
    the CLI and the worker can both configure the package logger safely.

    Args:
        name: Logger name; module loggers below it inherit the handlers.
        log_file: Log file name, ``<name>.log`` when None.
        level: Level name such as ``"INFO"``.
        console: Also log to stderr.
        logs_dir: Directory for the log file; created when missing.

    Returns:
        The configured logger.
    """
    os.makedirs(logs_dir, exist_ok=True)
    log_path = os.path.join(logs_dir, log_file or f"{name}.log")

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in _build_handlers(log_path, console):
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name``; usually called with ``__name__``."""
    return logging.getLogger(name)


class ConversionLogger:
    """Progress messages for one document, tagged with its task id.

    Completion messages carry the elapsed time since the logger was made.
    """

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        self.logger = get_logger(f"conversion.{task_id}")
        self.started_at = time.monotonic()

    def elapsed(self) -> float:
        """Seconds since this conversion started."""
        return time.monotonic() - self.started_at

    def log_start(self, file_path: str) -> None:
        self.logger.info(f"Started conversion task {self.task_id} for file: {file_path}")

    def log_progress(self, message: str) -> None:
        self.logger.info(f"Task {self.task_id}: {message}")

    def log_error(self, error: Exception, context: str = "") -> None:
        """Log a failure with its traceback.

        Args:
            error: The exception raised.
            context: Conversion step that failed.
        """
        self.logger.error(
            f"Task {self.task_id}: Error in {context}: {str(error)}",
            exc_info=error,
        )

    def log_completion(self, output_path: str, row_count: Optional[int] = None) -> None:
        """Log the written workbook, its row count and the time taken."""
        rows = f", {row_count} rows" if row_count is not None else ""
        self.logger.info(
            f"Task {self.task_id}: Completed successfully in {self.elapsed():.2f}s{rows}. "
            f"Output: {output_path}"
        )
