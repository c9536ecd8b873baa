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
dispatcher.py - Turn observed text into queued jobs
Source monitors put text on a channel; one dispatcher thread matches it
against the rules and enqueues a Job per matching rule.
"""

import queue
import threading
import traceback
from typing import List, Optional

from .config import AppConfig
from .console import ConsoleRenderer
from .job import Job, JobIdAllocator
from .logs import log_message
from .state import EngineContext
from .worker import JobQueue

CHANNEL_POLL_INTERVAL = 0.2


def build_jobs(text: str, config: AppConfig, allocator: JobIdAllocator) -> List[Job]:
    """One job per enabled rule whose pattern matches text, in rule order."""
    jobs = []
    for rule in config.enabled_rules():
        if not rule.matches(text):
            continue
        jobs.append(Job.from_template(
            job_id=allocator.next_id(),
            display_name=rule.display_name,
            command=rule.command,
            arg_template=rule.effective_args(),
            text=text,
            working_directory=rule.working_directory,
            pause_after_run=config.pause_after_run if rule.pause_after_run is None else bool(rule.pause_after_run),
        ))
    return jobs


class Dispatcher:
    """Consumes observed text from a channel and feeds the job queue."""

    def __init__(self, config: AppConfig, job_queue: JobQueue, context: EngineContext,
                 renderer: ConsoleRenderer, channel: Optional[queue.Queue] = None):
        self.config = config
        self.job_queue = job_queue
        self.context = context
        self.renderer = renderer
        self.channel: queue.Queue = channel if channel is not None else queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def handle_text(self, text: str) -> List[Job]:
        jobs = build_jobs(text, self.config, self.context.job_ids)
        if not jobs:
            log_message("DEBUG", f"No rule matched text ({len(text)} chars)")
        for job in jobs:
            self.job_queue.enqueue(job)
        return jobs

    def _loop(self) -> None:
        while not self.context.shutting_down:
            try:
                text = self.channel.get(timeout=CHANNEL_POLL_INTERVAL)
            except queue.Empty:
                continue
            try:
                self.handle_text(text)
            except Exception as e:
                self.renderer.error("[cliprun] Error handling clipboard text:")
                self.renderer.error(traceback.format_exc().rstrip())
                log_message("ERROR", f"Dispatcher error: {e}")
            finally:
                self.channel.task_done()
        log_message("INFO", "Dispatcher stopped")

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self._loop, name="cliprun-dispatcher", daemon=True)
        self._thread.start()
        return self._thread

    def drained(self) -> bool:
        """True when every observed text has been handled"""
        return self.channel.unfinished_tasks == 0

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
