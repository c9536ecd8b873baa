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
worker.py - FIFO job queue drained by exactly one worker thread

Producers call enqueue() from any thread. The worker dequeues one job, runs it
to completion through the process runner and only then looks at the queue
again, so two commands never compete for bandwidth or disk.

A job with pause_after_run blocks the worker until acknowledged, which stalls
every job queued behind it.
"""

import sys
import threading
import traceback
from collections import deque
from typing import Callable, Deque, Dict, Optional

from .console import ConsoleRenderer, StatusBoard
from .errors import JobCancelled, LaunchFailure
from .job import Job, JobState
from .logs import log_message
from .patterns import ALREADY_DONE_MESSAGE, LineClassifier, LineKind
from .runner import ProcessResult, format_command_line, run_process
from .state import EngineContext

PAUSE_PROMPT = "Press Enter to continue..."
WAKE_INTERVAL = 0.5  # Upper bound on wait between shutdown checks


def read_acknowledgement() -> None:
    """Block until the operator presses Enter on the controlling terminal."""
    try:
        with open('CONIN$' if sys.platform.startswith('win') else '/dev/tty', 'r') as tty:
            tty.readline()
    except OSError:
        sys.stdin.readline()


class JobQueue:
    """Unbounded FIFO of jobs with a single consumer thread."""

    def __init__(self,
                 context: EngineContext,
                 renderer: ConsoleRenderer,
                 classifier: Optional[LineClassifier] = None,
                 runner: Callable[..., ProcessResult] = run_process,
                 acknowledge: Callable[[], None] = read_acknowledgement,
                 board: Optional[StatusBoard] = None):
        self.context = context
        self.renderer = renderer
        self.classifier = classifier or LineClassifier()
        self.runner = runner
        self.acknowledge = acknowledge
        self.board = board

        self._jobs: Deque[Job] = deque()
        self._condition = threading.Condition()
        self._states: Dict[int, JobState] = {}
        self._slots: Dict[int, int] = {}
        self._thread: Optional[threading.Thread] = None
        self.running_job: Optional[Job] = None

        context.add_shutdown_callback(self.wake)

    # Producer side ---------------------------------------------------

    def enqueue(self, job: Job) -> bool:
        """Append job to the tail and wake the worker. False once shutting down."""
        # Console lock before the condition, the same order the worker takes them
        with self.renderer.lock, self._condition:
            if self.context.shutting_down:
                log_message("INFO", f"Refusing job #{job.id} during shutdown")
                return False
            self._jobs.append(job)
            self._states[job.id] = JobState.ENQUEUED

            # The slot must exist before the worker can see the job
            self.renderer.log(f"[Queue] Enqueued #{job.id}: {job.display_name}")
            self.renderer.log(f"[Queue] Status: {len(self._jobs)} waiting")
            if self.board is not None:
                self._slots[job.id] = self.board.add(f"#{job.id} {job.display_name}")
                self.board.update(self._slots[job.id], "queued")
            self._condition.notify()

        log_message("INFO", f"Enqueued job #{job.id}: {job.display_name}")
        return True

    def wake(self) -> None:
        with self._condition:
            self._condition.notify_all()

    # Introspection ----------------------------------------------------

    def pending(self) -> int:
        with self._condition:
            return len(self._jobs)

    def state_of(self, job_id: int) -> Optional[JobState]:
        with self._condition:
            return self._states.get(job_id)

    def is_idle(self) -> bool:
        with self._condition:
            return not self._jobs and self.running_job is None

    # Worker lifecycle -------------------------------------------------

    def start(self) -> threading.Thread:
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._thread = threading.Thread(target=self._worker_loop, name="cliprun-worker", daemon=True)
        self._thread.start()
        log_message("INFO", "Job worker started")
        return self._thread

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker to exit. True if it did."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _next_job(self) -> Optional[Job]:
        """Block until a job is available; None means shut down."""
        with self._condition:
            while not self._jobs and not self.context.shutting_down:
                self._condition.wait(WAKE_INTERVAL)
            if self.context.shutting_down:
                return None
            job = self._jobs.popleft()
            self._states[job.id] = JobState.RUNNING
            self.running_job = job
            return job

    def _finish(self, job: Job, state: JobState) -> None:
        with self._condition:
            self._states[job.id] = state
            self.running_job = None

    def _worker_loop(self) -> None:
        while True:
            job = self._next_job()
            if job is None:
                break

            with self.renderer.lock:
                self.renderer.log()
                self.renderer.log(f"===== Starting #{job.id}: {job.display_name} =====")
                self.renderer.log(f"[Queue] {self.pending()} still waiting")
            self._update_slot(job, "running")

            try:
                self.run_job(job)
            except JobCancelled:
                self.renderer.end_progress()
                self.renderer.job_log(job.id, "Cancelled.")
                log_message("INFO", f"Job #{job.id} cancelled")
                self._update_slot(job, "cancelled")
                self._finish(job, JobState.CANCELLED)
                break
            except LaunchFailure as e:
                self.renderer.end_progress()
                self.renderer.job_error(job.id, str(e))
                log_message("ERROR", f"Job #{job.id} launch failed: {e}")
                self._update_slot(job, "failed to start")
            except Exception as e:
                self.renderer.end_progress()
                self.renderer.job_error(job.id, "Unhandled error:")
                self.renderer.error(traceback.format_exc().rstrip())
                log_message("ERROR", f"Job #{job.id} unhandled error: {e}\n{traceback.format_exc()}")
                self._update_slot(job, "error")

            self._finish(job, JobState.COMPLETED)
            self.renderer.log(f"[Queue] Done with #{job.id}. {self.pending()} waiting.")

        self._discard_pending()
        log_message("INFO", "Job worker stopped")

    def _discard_pending(self) -> None:
        with self._condition:
            discarded = list(self._jobs)
            self._jobs.clear()
        if discarded:
            self.renderer.log(f"[Queue] Discarded {len(discarded)} queued job(s) on shutdown")
            log_message("INFO", f"Discarded jobs: {[j.id for j in discarded]}")

    def _update_slot(self, job: Job, text: str) -> None:
        if self.board is not None and job.id in self._slots:
            self.board.update(self._slots[job.id], text)

    # Single job execution ---------------------------------------------

    def _handle_line(self, job: Job, line: str, is_error: bool) -> None:
        kind = self.classifier.classify(line)
        if kind is LineKind.ALREADY_DONE:
            self.renderer.job_log(job.id, ALREADY_DONE_MESSAGE)
        elif kind is LineKind.PROGRESS:
            self.renderer.progress(job.id, line)
        elif is_error:
            self.renderer.job_error(job.id, line)
        else:
            self.renderer.job_log(job.id, line)

    def run_job(self, job: Job) -> ProcessResult:
        """Run one job and report its outcome. Raises LaunchFailure or JobCancelled."""
        self.renderer.job_log(job.id, f"Command: {format_command_line(job.command, job.args)}")

        result = self.runner(
            job.command,
            job.args,
            job.working_directory,
            self.context.shutdown_event,
            lambda line: self._handle_line(job, line, False),
            lambda line: self._handle_line(job, line, True),
        )

        self.renderer.end_progress()
        self.renderer.job_log(job.id, f"Exit code: {result.exit_code}")
        if result.failed:
            if result.stderr.strip():
                self.renderer.job_error(job.id, result.stderr)
            elif result.stdout.strip():
                self.renderer.job_error(job.id, result.stdout)
        self._update_slot(job, f"exit {result.exit_code}")

        if job.pause_after_run and not self.context.shutting_down:
            self.renderer.log(PAUSE_PROMPT)
            self.acknowledge()

        return result
