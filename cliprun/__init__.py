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

"""ClipRun - watches copied text and runs matching commands one at a time through a FIFO job queue with live terminal progress."""

from .__version__ import __version__, __author__, __license__

# Errors
from .errors import (
    CliprunError,
    ConfigError,
    JobCancelled,
    LaunchFailure,
)

# Queue engine
from .lines import LineSplitter, pump_stream, split_lines
from .runner import ProcessResult, build_argv, format_command_line, run_process
from .job import Job, JobIdAllocator, JobState
from .state import EngineContext
from .worker import JobQueue
from .console import ConsoleRenderer, StatusBoard, fit
from .patterns import LineClassifier, LineKind

# Rules and sources
from .config import AppConfig, Rule, load_config
from .dispatcher import Dispatcher, build_jobs
from .watcher import ClipboardWatcher, StdinWatcher

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",

    # Errors
    "CliprunError",
    "ConfigError",
    "JobCancelled",
    "LaunchFailure",

    # Queue engine
    "LineSplitter",
    "pump_stream",
    "split_lines",
    "ProcessResult",
    "build_argv",
    "format_command_line",
    "run_process",
    "Job",
    "JobIdAllocator",
    "JobState",
    "EngineContext",
    "JobQueue",
    "ConsoleRenderer",
    "StatusBoard",
    "fit",
    "LineClassifier",
    "LineKind",

    # Rules and sources
    "AppConfig",
    "Rule",
    "load_config",
    "Dispatcher",
    "build_jobs",
    "ClipboardWatcher",
    "StdinWatcher",
]
