#!/usr/bin/env python3

# ClipRun - Run commands on clipboard matches through a single job queue
# Copyright (C) 2025 Robert Macrae
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Centralized logging configuration for cliprun.

Diagnostics go to an optional log file only. Anything the operator should see
on the terminal goes through console.ConsoleRenderer instead, so log records
never tear the in-place progress line.
"""
import inspect
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

# Global state for logging configuration
_log_enabled = False
_log_file: Optional[Path] = None
_is_configured = False


class MillisecondFormatter(logging.Formatter):
    def formatTime(self, record, datefmt=None):
        ct = datetime.fromtimestamp(record.created)
        if datefmt:
            return ct.strftime(datefmt)[:-3]  # Trim microseconds to milliseconds
        return ct.strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]


def setup_logging(log_file_path: Optional[str] = None, mode: str = 'w', verbosity: int = 0) -> None:
    """Set up centralized logging with optional file output."""
    global _log_enabled, _log_file, _is_configured

    if _is_configured:
        return

    if log_file_path:
        _log_enabled = True
        _log_file = Path(log_file_path)

    if not _log_enabled:
        return

    _log_file.parent.mkdir(parents=True, exist_ok=True)

    # Keep log records off the terminal
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    file_handler = logging.FileHandler(str(_log_file), mode=mode, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    formatter = MillisecondFormatter('[%(asctime)s] [%(levelname)s] %(message)s', datefmt='%Y-%m-%d %H:%M:%S.%f')
    file_handler.setFormatter(formatter)

    root_logger.addHandler(file_handler)
    root_logger.setLevel(logging.DEBUG if verbosity > 0 else logging.INFO)

    _is_configured = True

    logger = get_logger(__name__)
    logger.info("Logging initialized")


def reset_logging() -> None:
    """Drop the file handler and forget configuration (used by tests)."""
    global _log_enabled, _log_file, _is_configured

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if isinstance(handler, logging.FileHandler):
            root_logger.removeHandler(handler)
            handler.close()

    _log_enabled = False
    _log_file = None
    _is_configured = False


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the specified module name."""
    return logging.getLogger(name)


def log_message(level: str, message: str, logger_name: Optional[str] = None) -> None:
    """Log a message tagged with the caller's file and line."""
    if not _log_enabled:
        return

    logger = get_logger(logger_name or __name__)

    frame = inspect.currentframe()
    try:
        caller_frame = frame.f_back if frame else None
        if caller_frame:
            filename = caller_frame.f_code.co_filename.replace('\\', '/').split('/')[-1]
            formatted_message = f"[{filename}:{caller_frame.f_lineno}] {message}"
        else:
            formatted_message = message

        getattr(logger, level.lower(), logger.info)(formatted_message)
    finally:
        del frame


def is_logging_enabled() -> bool:
    """Check if logging is enabled."""
    return _log_enabled


def get_log_file() -> Optional[Path]:
    """Get the current log file path."""
    return _log_file
