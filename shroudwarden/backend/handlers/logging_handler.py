"""
LoggingHandler module for managing logging operations.
This module handles log file creation, rotation, and the console format
that container log collectors read.
"""

import sys
import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from ...shared.colors import COLOR_INFO, COLOR_WARNING, COLOR_ERROR, COLOR_DEBUG, COLOR_RESET
from ...shared.paths import SUPERVISOR_LOG_FILE

ROOT_LOGGER_NAME = "shroudwarden"


class LevelTagFormatter(logging.Formatter):
    """
    Console formatter printing a short tag per level:
    ``[2024-01-01 12:00:00] message`` for INFO, ``[WARN] message`` and so on.
    """

    TAGS = {
        logging.DEBUG: ("[DEBUG]", COLOR_DEBUG),
        logging.WARNING: ("[WARN]", COLOR_WARNING),
        logging.ERROR: ("[ERROR]", COLOR_ERROR),
        logging.CRITICAL: ("[ERROR]", COLOR_ERROR),
    }

    def __init__(self, use_color: bool = False):
        super().__init__(datefmt='%Y-%m-%d %H:%M:%S')
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno in self.TAGS:
            tag, color = self.TAGS[record.levelno]
        else:
            tag, color = f"[{self.formatTime(record, self.datefmt)}]", COLOR_INFO
        if self.use_color:
            tag = f"{color}{tag}{COLOR_RESET}"
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"{tag} {message}"


class LoggingHandler:
    """
    Central logging handler for Shroudwarden.
    - Writes to <log_dir>/shroudwarden.log with size based rotation.
    - Rotates the previous run's log on startup.
    - Falls back to console-only logging if the log directory is unusable.
    Usage:
        logger = LoggingHandler(settings.supervisor_log_dir).setup_logger()
    """
    def __init__(self, log_dir: Optional[Path] = None):
        self.log_dir = Path(log_dir) if log_dir else None
        self.file_logging_available = self.ensure_log_directory()

    def ensure_log_directory(self) -> bool:
        """Ensure the log directory exists."""
        if self.log_dir is None:
            return False
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            return True
        except OSError as e:
            print(f"Failed to create log directory {self.log_dir}: {e}", file=sys.stderr)
            return False

    def rotate_log_file_per_run(self, log_file_path: Path, backup_count: int = 5):
        """Rotate the log file on every run, keeping up to backup_count backups."""
        if not log_file_path.exists():
            return
        oldest = log_file_path.with_suffix(log_file_path.suffix + f'.{backup_count}')
        if oldest.exists():
            oldest.unlink()
        for i in range(backup_count - 1, 0, -1):
            src = log_file_path.with_suffix(log_file_path.suffix + f'.{i}')
            dst = log_file_path.with_suffix(log_file_path.suffix + f'.{i+1}')
            if src.exists():
                src.rename(dst)
        log_file_path.rename(log_file_path.with_suffix(log_file_path.suffix + '.1'))

    def setup_logger(self, name: str = ROOT_LOGGER_NAME, console_level: str = "INFO",
                     log_file: str = SUPERVISOR_LOG_FILE, rotate: bool = True) -> logging.Logger:
        """Set up a logger with console and (when possible) rotating file handlers."""
        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

        level = logging.getLevelName(console_level.upper())
        if not isinstance(level, int):
            level = logging.INFO

        console_handler = next(
            (h for h in logger.handlers if type(h) is logging.StreamHandler), None
        )
        if console_handler is None:
            console_handler = logging.StreamHandler(sys.stderr)
            logger.addHandler(console_handler)
        console_handler.setLevel(level)
        console_handler.setFormatter(LevelTagFormatter(use_color=sys.stderr.isatty()))

        if self.file_logging_available:
            file_path = self.log_dir / log_file
            already_attached = False
            for h in list(logger.handlers):
                if not isinstance(h, logging.handlers.RotatingFileHandler):
                    continue
                if h.baseFilename == str(file_path.absolute()):
                    already_attached = True
                else:
                    # One supervisor log at a time
                    logger.removeHandler(h)
                    h.close()
            if not already_attached:
                try:
                    if rotate:
                        self.rotate_log_file_per_run(file_path)
                    file_handler = logging.handlers.RotatingFileHandler(
                        file_path, mode='a', encoding='utf-8', maxBytes=1024*1024, backupCount=5
                    )
                except OSError as e:
                    logger.warning(f"File logging disabled, cannot open {file_path}: {e}")
                else:
                    file_handler.setLevel(logging.DEBUG)
                    file_handler.setFormatter(logging.Formatter(
                        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
                    ))
                    logger.addHandler(file_handler)

        return logger

    def get_log_file(self, log_file: str = SUPERVISOR_LOG_FILE) -> Optional[Path]:
        """Return the path of the current log file, if file logging is active."""
        if not self.file_logging_available:
            return None
        return self.log_dir / log_file


def print_banner(logger: logging.Logger, title: str, rows) -> None:
    """Log a framed banner with aligned label/value rows."""
    rule = "━" * 56
    logger.info(rule)
    logger.info(f"   {title}")
    logger.info(rule)
    for label, value in rows:
        logger.info(f"{label + ':':<22} {value}")
    logger.info(rule)
