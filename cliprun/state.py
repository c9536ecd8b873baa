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

"""
state.py - Shared engine state passed explicitly to every component
Holds the one console lock, the job id counter and the shutdown signal, so
nothing in cliprun needs module-level globals for coordination.
"""

import os
import sys
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, TextIO

from .job import JobIdAllocator
from .logs import log_message

DEFAULT_TERMINAL_HEIGHT = 24
DEFAULT_TERMINAL_WIDTH = 80


@dataclass
class TerminalState:
    """Last known terminal dimensions"""
    rows: int = DEFAULT_TERMINAL_HEIGHT
    cols: int = DEFAULT_TERMINAL_WIDTH


@dataclass
class EngineContext:
    """Everything the queue engine components share."""
    output: TextIO = field(default_factory=lambda: sys.stdout)
    error_output: TextIO = field(default_factory=lambda: sys.stderr)
    # Fixed width for tests or non-tty output; None means ask the terminal
    width: Optional[int] = None
    height: Optional[int] = None
    console_lock: threading.RLock = field(default_factory=threading.RLock)
    job_ids: JobIdAllocator = field(default_factory=JobIdAllocator)
    shutdown_event: threading.Event = field(default_factory=threading.Event)
    terminal: TerminalState = field(default_factory=TerminalState)
    shutdown_callbacks: List[Callable[[], None]] = field(default_factory=list)

    def get_terminal_size(self):
        """Current (rows, cols) with fallback to the last known values."""
        if self.width is not None:
            return self.height or self.terminal.rows, self.width
        try:
            if self.output.isatty():
                cols, rows = os.get_terminal_size(self.output.fileno())
                self.terminal.rows = rows
                self.terminal.cols = cols
        except (OSError, ValueError, AttributeError):
            pass
        return self.terminal.rows, self.terminal.cols

    def add_shutdown_callback(self, callback: Callable[[], None]) -> None:
        self.shutdown_callbacks.append(callback)

    def next_job_id(self) -> int:
        return self.job_ids.next_id()

    @property
    def shutting_down(self) -> bool:
        return self.shutdown_event.is_set()

    def request_shutdown(self) -> None:
        """Raise the global shutdown signal. Safe to call from a signal handler."""
        if self.shutdown_event.is_set():
            return
        self.shutdown_event.set()
        log_message("INFO", "Shutdown requested")
        for callback in list(self.shutdown_callbacks):
            try:
                callback()
            except Exception as e:
                log_message("ERROR", f"Shutdown callback failed: {e}")
