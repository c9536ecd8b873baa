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
job.py - The Job value type and its id allocator
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

PLACEHOLDER = "{clipboard}"


class JobState(Enum):
    ENQUEUED = "enqueued"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class JobIdAllocator:
    """Hands out strictly increasing job ids, starting at 1."""

    def __init__(self, start: int = 1):
        self._next = start
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            job_id = self._next
            self._next += 1
            return job_id


@dataclass(frozen=True)
class Job:
    """One triggered execution of an external command. Immutable once built."""
    id: int
    display_name: str
    command: str
    args: Tuple[str, ...] = ()
    working_directory: Optional[str] = None
    pause_after_run: bool = False

    def __post_init__(self):
        # Accept any sequence but store a tuple so the job stays immutable
        if not isinstance(self.args, tuple):
            object.__setattr__(self, 'args', tuple(self.args))

    @classmethod
    def from_template(cls, job_id: int, display_name: str, command: str,
                      arg_template: Sequence[str], text: str,
                      working_directory: Optional[str] = None,
                      pause_after_run: bool = False) -> 'Job':
        """Build a job, substituting every placeholder in the argument template with text."""
        args = tuple(a.replace(PLACEHOLDER, text) for a in arg_template)
        return cls(
            id=job_id,
            display_name=display_name,
            command=command,
            args=args,
            working_directory=working_directory,
            pause_after_run=pause_after_run,
        )
