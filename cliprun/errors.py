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
errors.py - Exception types shared across cliprun
A non-zero exit code is not an error here, it is returned as data on ProcessResult
"""

from typing import Optional


class CliprunError(Exception):
    """Base class for cliprun errors"""


class ConfigError(CliprunError):
    """Configuration file is missing or invalid"""


class LaunchFailure(CliprunError):
    """The external command could not be started"""

    def __init__(self, command: str, cause: Optional[BaseException] = None):
        self.command = command
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to start process: {command}{detail}")


class JobCancelled(CliprunError):
    """The shutdown signal interrupted a running job"""

    def __init__(self, command: str = "", exit_code: Optional[int] = None):
        self.command = command
        self.exit_code = exit_code
        super().__init__(f"Cancelled: {command}" if command else "Cancelled")
