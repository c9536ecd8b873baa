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
lines.py - Turn raw process output into discrete line events
Both \\n and \\r end a line so tools that redraw one progress line with \\r
still produce an event per update.
"""

import codecs
from typing import BinaryIO, Callable, List

READ_CHUNK_SIZE = 4096
LINE_BOUNDARIES = ('\n', '\r')


class LineSplitter:
    """Incremental splitter that calls back once per completed line."""

    def __init__(self, callback: Callable[[str], None]):
        self.callback = callback
        self._pending: List[str] = []

    def feed(self, chunk: str) -> None:
        start = 0
        for i, ch in enumerate(chunk):
            if ch in LINE_BOUNDARIES:
                if i > start:
                    self._pending.append(chunk[start:i])
                # Consecutive boundaries leave nothing pending, so no empty lines
                if self._pending:
                    line = ''.join(self._pending)
                    self._pending = []
                    self.callback(line)
                start = i + 1
        if start < len(chunk):
            self._pending.append(chunk[start:])

    def flush(self) -> None:
        """Emit the unterminated tail, if any."""
        if self._pending:
            line = ''.join(self._pending)
            self._pending = []
            self.callback(line)


def split_lines(text: str) -> List[str]:
    lines: List[str] = []
    splitter = LineSplitter(lines.append)
    splitter.feed(text)
    splitter.flush()
    return lines


def pump_stream(stream: BinaryIO, callback: Callable[[str], None], encoding: str = 'utf-8') -> None:
    """Read a binary stream until EOF, emitting each line to callback.

    Decoding is incremental so multi-byte characters split across reads
    survive; undecodable bytes are replaced rather than raising.
    """
    decoder = codecs.getincrementaldecoder(encoding)(errors='replace')
    splitter = LineSplitter(callback)
    read = getattr(stream, 'read1', stream.read)
    while True:
        data = read(READ_CHUNK_SIZE)
        if not data:
            break
        splitter.feed(decoder.decode(data))
    splitter.feed(decoder.decode(b'', final=True))
    splitter.flush()
