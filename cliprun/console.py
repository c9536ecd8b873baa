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
console.py - Terminal rendering for the job queue

Two disciplines share the screen:
  * one in-place progress line for the running job, redrawn with \\r
  * a status board whose slots are pinned to the rows they were created on

Every write happens under EngineContext.console_lock. The renderer counts the
screen lines it has emitted, so a slot row is addressed relative to the
cursor with ANSI cursor-up rather than with absolute coordinates.
"""

import math
import unicodedata
from dataclasses import dataclass
from typing import List, Optional, TextIO

from .logs import log_message
from .state import EngineContext

ELLIPSIS = '…'
SAVE_CURSOR = '\0337'
RESTORE_CURSOR = '\0338'
DEFAULT_HEADING = "=== Active downloads ==="
INITIAL_SLOT_TEXT = "starting…"


def char_width(ch: str) -> int:
    """Terminal columns taken by one character"""
    if unicodedata.combining(ch) or unicodedata.category(ch) in ('Cf', 'Cc'):
        return 0
    return 2 if unicodedata.east_asian_width(ch) in ('W', 'F') else 1


def display_width(text: str) -> int:
    return sum(char_width(ch) for ch in text)


def fit(text: str, width: int) -> str:
    """Pad or truncate text to exactly width terminal columns"""
    width = max(1, width)
    if display_width(text) <= width:
        return text + ' ' * (width - display_width(text))
    # Leave one column for the ellipsis
    used = 0
    kept = []
    for ch in text:
        w = char_width(ch)
        if used + w > width - 1:
            break
        kept.append(ch)
        used += w
    return ''.join(kept) + ELLIPSIS + ' ' * (width - 1 - used)


def cursor_up(rows: int) -> str:
    return f'\033[{rows}A' if rows > 0 else ''


class ConsoleRenderer:
    """Serialized terminal output with a single rewritable progress line."""

    def __init__(self, context: EngineContext):
        self.context = context
        self.progress_active = False
        # Screen rows emitted so far; the cursor sits on row line_count
        self.line_count = 0

    @property
    def lock(self):
        return self.context.console_lock

    def line_width(self) -> int:
        _, cols = self.context.get_terminal_size()
        return max(1, cols - 1)

    def _rows_for(self, text: str) -> int:
        _, cols = self.context.get_terminal_size()
        cols = max(1, cols)
        return sum(max(1, math.ceil(display_width(part) / cols)) for part in text.split('\n'))

    def _emit(self, stream: TextIO, text: str) -> None:
        with self.lock:
            self.end_progress()
            stream.write(text + '\n')
            stream.flush()
            self.line_count += self._rows_for(text)

    def log(self, text: str = '') -> None:
        self._emit(self.context.output, text)

    def error(self, text: str) -> None:
        self._emit(self.context.error_output, text)

    def job_log(self, job_id: int, text: str) -> None:
        self.log(f"[Job #{job_id}] {text}")

    def job_error(self, job_id: int, text: str) -> None:
        self.error(f"[Job #{job_id}] {text}")

    def progress(self, job_id: int, text: str) -> None:
        """Redraw the in-place line. The cursor stays on it for the next redraw."""
        with self.lock:
            line = fit(f"[Job #{job_id}] {text}", self.line_width())
            out = self.context.output
            out.write('\r' + line)
            out.flush()
            self.progress_active = True

    def end_progress(self) -> None:
        """Close out the in-place line so later output never overwrites it"""
        with self.lock:
            if self.progress_active:
                out = self.context.output
                out.write('\n')
                out.flush()
                self.line_count += 1
                self.progress_active = False


@dataclass
class StatusSlot:
    title: str
    current_text: str
    row: int


class StatusBoard:
    """Rows of long-lived status lines under a one-time heading.

    Slots are never removed or compacted; a finished item keeps its last line
    as history.
    """

    def __init__(self, renderer: ConsoleRenderer, heading: str = DEFAULT_HEADING):
        self.renderer = renderer
        self.heading = heading
        self.slots: List[StatusSlot] = []
        self._top: Optional[int] = None

    def add(self, title: str) -> int:
        renderer = self.renderer
        with renderer.lock:
            renderer.end_progress()
            if self._top is None:
                renderer.log()
                renderer.log(self.heading)
                self._top = renderer.line_count

            index = len(self.slots)
            next_row = self._top if not self.slots else self.slots[-1].row + 1
            # Rows already holding log output are never reused
            target_row = max(next_row, renderer.line_count)

            while renderer.line_count <= target_row:
                renderer.log()

            self.slots.append(StatusSlot(title=title, current_text=INITIAL_SLOT_TEXT, row=target_row))
            self._redraw(index)
            return index

    def update(self, index: int, text: str) -> None:
        with self.renderer.lock:
            if not 0 <= index < len(self.slots):
                return
            self.slots[index].current_text = text
            self._redraw(index)

    def complete(self, index: int, text: str) -> None:
        self.update(index, text)

    def remove(self, index: int) -> None:
        """Intentionally a no-op; the finished row stays as history."""

    def text_of(self, index: int) -> str:
        slot = self.slots[index]
        return f"{slot.title} — {slot.current_text}"

    def _redraw(self, index: int) -> None:
        renderer = self.renderer
        slot = self.slots[index]
        rows, _ = renderer.context.get_terminal_size()
        offset = renderer.line_count - slot.row
        if offset <= 0 or offset >= rows:
            # Scrolled out of the viewport or terminal resized; next update retries
            log_message("DEBUG", f"Status slot {index} not drawable (offset {offset}, rows {rows})")
            return
        try:
            out = renderer.context.output
            out.write(SAVE_CURSOR + cursor_up(offset) + '\r'
                      + fit(self.text_of(index), renderer.line_width())
                      + RESTORE_CURSOR)
            out.flush()
        except (OSError, ValueError) as e:
            log_message("DEBUG", f"Status slot {index} redraw failed: {e}")
