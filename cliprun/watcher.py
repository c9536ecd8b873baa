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
watcher.py - Sources of observed text
Each watcher runs on its own daemon thread and puts text on a channel.
"""

import platform
import queue
import shutil
import subprocess
import sys
import threading
from typing import Callable, Optional, TextIO

from .config import MIN_POLL_INTERVAL_MS
from .logs import log_message

CLIPBOARD_READ_TIMEOUT = 3


def read_clipboard() -> str:
    """Read clipboard text with the platform's command line tools"""
    system = platform.system()
    if system == "Darwin":
        commands = [["pbpaste"]]
    elif system == "Windows":
        commands = [["powershell", "-NoProfile", "-Command", "Get-Clipboard -Raw"]]
    else:
        commands = [
            ["wl-paste", "--no-newline"],
            ["xclip", "-selection", "clipboard", "-o"],
            ["xsel", "--clipboard", "--output"],
        ]

    for cmd in commands:
        if not shutil.which(cmd[0]):
            continue
        result = subprocess.run(cmd, capture_output=True, text=True,
                                encoding='utf-8', errors='replace',
                                timeout=CLIPBOARD_READ_TIMEOUT)
        if result.returncode == 0:
            return result.stdout
    return ""


class ClipboardWatcher:
    """Polls the clipboard and reports text that differs from the last seen."""

    def __init__(self, channel: queue.Queue, shutdown_event: threading.Event,
                 interval_ms: int = 400, reader: Callable[[], str] = read_clipboard):
        self.channel = channel
        self.shutdown_event = shutdown_event
        self.interval = max(MIN_POLL_INTERVAL_MS, interval_ms) / 1000.0
        self.reader = reader
        self.last_text = ""
        self._thread: Optional[threading.Thread] = None

    def poll_once(self) -> Optional[str]:
        """Read the clipboard once; return the text if it is new"""
        try:
            text = self.reader() or ""
        except Exception as e:
            # Clipboard may be held by another process; retry next poll
            log_message("DEBUG", f"Clipboard read failed: {e}")
            return None
        if not text or text == self.last_text:
            return None
        self.last_text = text
        self.channel.put(text)
        return text

    def _loop(self) -> None:
        log_message("INFO", f"Clipboard watcher polling every {self.interval:.2f}s")
        while not self.shutdown_event.wait(self.interval):
            self.poll_once()

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self._loop, name="cliprun-clipboard", daemon=True)
        self._thread.start()
        return self._thread

    def join(self, timeout: float = 2.0) -> None:
        if self._thread is not None:
            self._thread.join(timeout)


class StdinWatcher:
    """Treats each non-blank input line as observed text."""

    def __init__(self, channel: queue.Queue, shutdown_event: threading.Event,
                 stream: Optional[TextIO] = None):
        self.channel = channel
        self.shutdown_event = shutdown_event
        self.stream = stream if stream is not None else sys.stdin
        self.finished = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _loop(self) -> None:
        try:
            for line in self.stream:
                if self.shutdown_event.is_set():
                    break
                text = line.strip()
                if text:
                    self.channel.put(text)
        finally:
            self.finished.set()
            log_message("INFO", "Input stream closed")

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self._loop, name="cliprun-stdin", daemon=True)
        self._thread.start()
        return self._thread
