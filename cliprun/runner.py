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
runner.py - Run one external command and stream its output line by line
stdout and stderr each get their own reader thread and LineSplitter.
"""

import os
import shlex
import signal
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Union

from .errors import JobCancelled, LaunchFailure
from .lines import pump_stream
from .logs import log_message

POLL_INTERVAL = 0.05  # Seconds between exit / cancel checks
READER_JOIN_TIMEOUT = 5.0
KILL_WAIT_TIMEOUT = 2.0

IS_WINDOWS = sys.platform.startswith('win')

LineCallback = Callable[[str], None]


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of a finished process. A non-zero exit code is data, not an error."""
    exit_code: int
    stdout: str
    stderr: str

    @property
    def failed(self) -> bool:
        return self.exit_code != 0


def is_raw_parameter(args: Sequence[str]) -> bool:
    """One argument with whitespace and no quotes is a legacy raw parameter string"""
    return len(args) == 1 and any(c.isspace() for c in args[0]) and '"' not in args[0]


def build_argv(command: str, args: Sequence[str]) -> Union[str, List[str]]:
    """Build what Popen receives. The shell is never involved."""
    if is_raw_parameter(args):
        if IS_WINDOWS:
            return f'{subprocess.list2cmdline([command])} {args[0]}'
        return [command] + shlex.split(args[0])
    return [command] + list(args)


def format_command_line(command: str, args: Sequence[str]) -> str:
    """Human readable command line, quoting tokens that contain whitespace."""
    def quote(token: str) -> str:
        return f'"{token}"' if any(c.isspace() for c in token) else token
    return ' '.join([command] + [quote(a) for a in args])


def kill_process_tree(proc: subprocess.Popen) -> None:
    """Best-effort forceful termination of the process and its descendants."""
    if proc.poll() is not None:
        return
    try:
        if IS_WINDOWS:
            subprocess.run(
                ['taskkill', '/T', '/F', '/PID', str(proc.pid)],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=KILL_WAIT_TIMEOUT,
            )
        else:
            # The child leads its own session, so its pgid is its pid
            os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        log_message("DEBUG", f"Process {proc.pid} already terminated")
    except Exception as e:
        log_message("DEBUG", f"Could not kill process tree {proc.pid}: {e}")
        try:
            proc.kill()
        except OSError as kill_error:
            log_message("DEBUG", f"Fallback kill of {proc.pid} failed: {kill_error}")

    try:
        proc.wait(timeout=KILL_WAIT_TIMEOUT)
    except subprocess.TimeoutExpired:
        log_message("WARNING", f"Process {proc.pid} did not exit after kill")


def _start_reader(name: str, stream, sink: List[str], on_line: Optional[LineCallback],
                  gate: threading.Lock, closed: threading.Event) -> threading.Thread:
    def handle(line: str) -> None:
        with gate:
            # A grandchild may hold the pipe past the run; its output belongs to no job
            if closed.is_set():
                log_message("DEBUG", f"{name} dropped late line: {line}")
                return
            sink.append(line)
            if on_line is None:
                return
            try:
                on_line(line)
            except Exception as e:
                log_message("ERROR", f"{name} line callback failed: {e}")

    def read() -> None:
        try:
            pump_stream(stream, handle)
        except Exception as e:
            log_message("ERROR", f"{name} reader failed: {e}")
        finally:
            try:
                stream.close()
            except OSError as e:
                log_message("DEBUG", f"{name} close failed: {e}")

    thread = threading.Thread(target=read, name=name, daemon=True)
    thread.start()
    return thread


def run_process(command: str,
                args: Sequence[str],
                working_directory: Optional[str] = None,
                cancel_event: Optional[threading.Event] = None,
                on_output: Optional[LineCallback] = None,
                on_error: Optional[LineCallback] = None) -> ProcessResult:
    """Run command to completion, streaming lines to the callbacks.

    Raises LaunchFailure if the command cannot be started and JobCancelled if
    cancel_event fires while it runs. In the cancelled case the process tree
    is killed and both readers are drained before raising.
    """
    cwd = os.path.expanduser(working_directory) if working_directory and working_directory.strip() else None

    popen_kwargs = {
        'cwd': cwd,
        'stdin': subprocess.DEVNULL,
        'stdout': subprocess.PIPE,
        'stderr': subprocess.PIPE,
    }
    if IS_WINDOWS:
        popen_kwargs['creationflags'] = subprocess.CREATE_NEW_PROCESS_GROUP | subprocess.CREATE_NO_WINDOW
    else:
        popen_kwargs['start_new_session'] = True

    try:
        proc = subprocess.Popen(build_argv(command, args), **popen_kwargs)
    except (OSError, ValueError) as e:
        log_message("ERROR", f"Failed to start {command}: {e}")
        raise LaunchFailure(command, e) from e

    log_message("DEBUG", f"Started process {proc.pid}: {format_command_line(command, args)}")

    stdout_lines: List[str] = []
    stderr_lines: List[str] = []
    gate = threading.Lock()
    closed = threading.Event()
    readers = [
        _start_reader(f"stdout-{proc.pid}", proc.stdout, stdout_lines, on_output, gate, closed),
        _start_reader(f"stderr-{proc.pid}", proc.stderr, stderr_lines, on_error, gate, closed),
    ]

    cancelled = False
    try:
        while proc.poll() is None:
            if cancel_event is not None and cancel_event.wait(POLL_INTERVAL):
                cancelled = True
                log_message("INFO", f"Cancellation requested, killing process {proc.pid}")
                kill_process_tree(proc)
                break
            if cancel_event is None:
                try:
                    proc.wait(timeout=POLL_INTERVAL)
                except subprocess.TimeoutExpired:
                    pass
    finally:
        # One shared deadline for both readers
        deadline = time.monotonic() + READER_JOIN_TIMEOUT
        for reader in readers:
            reader.join(timeout=max(0.0, deadline - time.monotonic()))
        with gate:
            closed.set()
        if any(reader.is_alive() for reader in readers):
            log_message("WARNING", f"Output pipes of {command} still open after exit; later output is dropped")

    exit_code = proc.poll()
    if exit_code is None:
        exit_code = proc.wait()

    if cancelled:
        raise JobCancelled(command, exit_code)

    log_message("DEBUG", f"Process {proc.pid} exited with {exit_code}")
    return ProcessResult(
        exit_code=exit_code,
        stdout='\n'.join(stdout_lines),
        stderr='\n'.join(stderr_lines),
    )
