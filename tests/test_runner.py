from __future__ import annotations

import os
import sys
import threading
import time
from pathlib import Path

import pytest

from cliprun import runner
from cliprun.errors import JobCancelled, LaunchFailure
from cliprun.runner import build_argv, format_command_line, is_raw_parameter, run_process

posix_only = pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX argument splitting")


def test_progress_updates_stream_as_separate_lines(python: str) -> None:
    seen: list[str] = []
    script = "import sys; sys.stdout.write('progress 10%\\rprogress 20%\\rprogress 30%\\n')"

    result = run_process(python, ["-c", script], on_output=seen.append)

    assert seen == ["progress 10%", "progress 20%", "progress 30%"]
    assert result.stdout == "progress 10%\nprogress 20%\nprogress 30%"
    assert result.exit_code == 0


def test_stdout_and_stderr_are_routed_and_accumulated_separately(python: str) -> None:
    out: list[str] = []
    err: list[str] = []
    script = (
        "import sys\n"
        "print('out one'); print('out two')\n"
        "sys.stderr.write('err one\\n')\n"
        "sys.exit(3)\n"
    )

    result = run_process(python, ["-c", script], on_output=out.append, on_error=err.append)

    assert out == ["out one", "out two"]
    assert err == ["err one"]
    assert result.exit_code == 3
    assert result.failed
    assert result.stderr == "err one"


def test_working_directory_is_used(python: str, tmp_path: Path) -> None:
    result = run_process(python, ["-c", "import os; print(os.getcwd())"], working_directory=str(tmp_path))

    assert os.path.realpath(result.stdout.strip()) == os.path.realpath(str(tmp_path))


def test_blank_working_directory_means_current_directory(python: str) -> None:
    result = run_process(python, ["-c", "import os; print(os.getcwd())"], working_directory="  ")

    assert os.path.realpath(result.stdout.strip()) == os.path.realpath(os.getcwd())


def test_missing_executable_raises_launch_failure() -> None:
    with pytest.raises(LaunchFailure) as excinfo:
        run_process("definitely-not-a-real-command-cliprun", ["x"])

    assert excinfo.value.command == "definitely-not-a-real-command-cliprun"


def test_cancellation_kills_process_and_raises(python: str) -> None:
    cancel = threading.Event()
    started = threading.Event()
    script = "import time\nprint('ready', flush=True)\ntime.sleep(60)\n"

    def on_output(line: str) -> None:
        if line == "ready":
            started.set()

    def cancel_when_started() -> None:
        started.wait(10)
        cancel.set()

    threading.Thread(target=cancel_when_started, daemon=True).start()
    begin = time.monotonic()
    with pytest.raises(JobCancelled) as excinfo:
        run_process(python, ["-c", script], cancel_event=cancel, on_output=on_output)

    assert time.monotonic() - begin < 30
    assert excinfo.value.exit_code is not None


def test_discrete_arguments_are_not_reparsed(python: str) -> None:
    result = run_process(python, ["-c", "import sys; print('|'.join(sys.argv[1:]))", "a b", "c"])

    assert result.stdout == "a b|c"


@posix_only
def test_single_raw_parameter_is_split_like_a_command_line() -> None:
    assert is_raw_parameter(["-f best --no-playlist"])
    assert build_argv("yt-dlp", ["-f best --no-playlist"]) == ["yt-dlp", "-f", "best", "--no-playlist"]


def test_quoted_or_multiple_arguments_stay_discrete() -> None:
    assert not is_raw_parameter(['-o "my file"'])
    assert not is_raw_parameter(["a b", "c"])
    assert not is_raw_parameter(["single"])
    assert build_argv("tool", ['-o "my file"']) == ["tool", '-o "my file"']
    assert build_argv("tool", ["a b", "c"]) == ["tool", "a b", "c"]


def test_format_command_line_quotes_tokens_with_spaces() -> None:
    assert format_command_line("yt-dlp", ["-o", "%(title)s.%(ext)s", "my url"]) == 'yt-dlp -o %(title)s.%(ext)s "my url"'


def test_failing_line_callback_does_not_stop_the_stream(python: str) -> None:
    seen: list[str] = []

    def on_output(line: str) -> None:
        if line == "first":
            raise TypeError("bad classifier entry")
        seen.append(line)

    script = "for word in ('first', 'second', 'third'): print(word)"
    result = run_process(python, ["-c", script], on_output=on_output)

    assert seen == ["second", "third"]
    assert result.stdout == "first\nsecond\nthird"
    assert result.exit_code == 0


def test_output_after_return_is_not_delivered(python: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(runner, "READER_JOIN_TIMEOUT", 0.5)
    seen: list[str] = []
    script = (
        "import subprocess, sys\n"
        "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(2); print(\"late\", flush=True)'])\n"
        "print('early', flush=True)\n"
    )

    begin = time.monotonic()
    result = run_process(python, ["-c", script], on_output=seen.append)

    assert time.monotonic() - begin < 2
    assert result.stdout == "early"
    time.sleep(3)
    assert seen == ["early"]
