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

"""ClipRun CLI - Command-line interface for the cliprun package"""

import argparse
import signal
import sys
import traceback
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import AppConfig
from .console import ConsoleRenderer, StatusBoard
from .dispatcher import Dispatcher
from .errors import ConfigError
from .logs import log_message, setup_logging
from .state import EngineContext
from .watcher import ClipboardWatcher, StdinWatcher
from .worker import JobQueue

# Check Python version
if sys.version_info < (3, 10):
    print("Error: Python 3.10 or higher required", file=sys.stderr)
    print("Your version:", sys.version, file=sys.stderr)
    sys.exit(1)

WORKER_JOIN_TIMEOUT = 2.0
MAIN_WAIT_INTERVAL = 0.25
EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog='cliprun',
        description='ClipRun - Run commands when copied text matches a rule',
        usage='%(prog)s [options] [config]'
    )

    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('config', nargs='?',
                        help='Path to the JSON config file (default: config.json)')
    parser.add_argument('--source', choices=['clipboard', 'stdin'],
                        help='Where observed text comes from (default: clipboard)')
    parser.add_argument('--poll-interval', type=int, metavar='MS',
                        help='Clipboard poll interval in milliseconds (minimum 100)')
    parser.add_argument('--pause-after-run', action='store_true',
                        help='Wait for Enter after every job')
    parser.add_argument('--board', action='store_true',
                        help='Show a status board with one line per job')

    # Verbosity levels
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='Increase verbosity (can be used multiple times: -v, -vv)')
    parser.add_argument('--log-file', type=str, metavar='FILE',
                        help='Enable logging and write to specified file')

    return parser.parse_args(argv)


def install_signal_handlers(context: EngineContext) -> None:
    """Deliver SIGINT/SIGTERM into the shared shutdown signal"""
    def signal_handler(signum, frame=None):
        log_message("INFO", f"Received signal {signum}")
        context.request_shutdown()

    signal.signal(signal.SIGINT, signal_handler)
    if hasattr(signal, 'SIGTERM'):
        signal.signal(signal.SIGTERM, signal_handler)


def run(config: AppConfig, context: EngineContext) -> int:
    """Wire the engine together and block until shutdown."""
    renderer = ConsoleRenderer(context)
    board = StatusBoard(renderer) if config.show_board else None
    job_queue = JobQueue(context, renderer, config.build_classifier(), board=board)
    dispatcher = Dispatcher(config, job_queue, context, renderer)

    renderer.log(f"[cliprun] Loaded config: {Path(config.config_path).resolve()}")
    renderer.log(f"[cliprun] PollIntervalMs={config.poll_interval_ms}, Rules={len(config.rules)}")

    job_queue.start()
    dispatcher.start()

    stdin_watcher = None
    if config.source == 'stdin':
        stdin_watcher = StdinWatcher(dispatcher.channel, context.shutdown_event)
        stdin_watcher.start()
        renderer.log("[cliprun] Reading text from standard input. Press Ctrl+C to exit.")
    else:
        ClipboardWatcher(dispatcher.channel, context.shutdown_event, config.poll_interval_ms).start()
        renderer.log("[cliprun] Monitoring clipboard. Press Ctrl+C to exit.")

    while not context.shutdown_event.wait(MAIN_WAIT_INTERVAL):
        if stdin_watcher is not None and stdin_watcher.finished.is_set() \
                and dispatcher.drained() and job_queue.is_idle():
            log_message("INFO", "Input exhausted and queue idle")
            context.request_shutdown()

    if not job_queue.join(WORKER_JOIN_TIMEOUT):
        log_message("WARNING", "Worker did not stop within timeout")
    dispatcher.join(WORKER_JOIN_TIMEOUT)
    renderer.end_progress()
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI"""
    args = parse_arguments(argv)

    config = AppConfig.from_env()
    config.merge_with_args(args)

    # Set up logging early if log file specified (before any other operations)
    if config.log_file:
        setup_logging(config.log_file, mode='w', verbosity=config.verbosity)

    context = EngineContext()
    install_signal_handlers(context)

    try:
        config.load_file()
        config.apply_overrides(args)
    except ConfigError as e:
        print(f"[cliprun] Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    try:
        return run(config, context)
    except Exception as e:
        print("[cliprun] Fatal error:", file=sys.stderr)
        traceback.print_exc()
        log_message("ERROR", f"Fatal error: {e}")
        return EXIT_FATAL


if __name__ == '__main__':
    sys.exit(main())
