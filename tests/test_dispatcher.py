from __future__ import annotations

import queue

from cliprun.config import AppConfig, Rule
from cliprun.console import ConsoleRenderer
from cliprun.dispatcher import Dispatcher, build_jobs
from cliprun.job import JobIdAllocator, JobState
from cliprun.runner import ProcessResult
from cliprun.state import EngineContext
from cliprun.worker import JobQueue


def _config(*rules: Rule, pause_after_run: bool = False) -> AppConfig:
    return AppConfig(rules=list(rules), pause_after_run=pause_after_run)


def test_matching_rules_build_jobs_in_rule_order() -> None:
    config = _config(
        Rule(pattern=r"youtu", command="yt-dlp", name="YouTube", args=["-o", "%(title)s", "{clipboard}"]),
        Rule(pattern=r"^https://", command="curl", args=["-LO", "{clipboard}"]),
        Rule(pattern=r"vimeo", command="never"),
    )

    jobs = build_jobs("https://youtu.be/abc", config, JobIdAllocator())

    assert [(j.id, j.display_name, j.command) for j in jobs] == [
        (1, "YouTube", "yt-dlp"),
        (2, "^https://", "curl"),
    ]
    assert jobs[0].args == ("-o", "%(title)s", "https://youtu.be/abc")
    assert jobs[1].args == ("-LO", "https://youtu.be/abc")


def test_disabled_rules_never_match() -> None:
    config = _config(Rule(pattern="x", command="t", enabled=False))

    assert build_jobs("x", config, JobIdAllocator()) == []


def test_parameter_string_is_substituted() -> None:
    config = _config(Rule(pattern="gallery", command="gallery-dl", parameter="--range 1-5 {clipboard}"))

    (job,) = build_jobs("gallery/123", config, JobIdAllocator())

    assert job.args == ("--range 1-5 gallery/123",)


def test_pause_after_run_falls_back_to_global_setting() -> None:
    config = _config(
        Rule(pattern="a", command="inherits"),
        Rule(pattern="a", command="opts-out", pause_after_run=False),
        pause_after_run=True,
    )

    jobs = build_jobs("a", config, JobIdAllocator())

    assert [j.pause_after_run for j in jobs] == [True, False]


def test_rule_working_directory_is_carried_to_the_job() -> None:
    config = _config(Rule(pattern="a", command="t", working_directory="/srv/downloads"))

    (job,) = build_jobs("a", config, JobIdAllocator())

    assert job.working_directory == "/srv/downloads"


def test_dispatcher_thread_enqueues_observed_text(
    context: EngineContext, renderer: ConsoleRenderer, wait_for
) -> None:
    ran: list[tuple[str, tuple[str, ...]]] = []

    def runner(command, args, working_directory, cancel_event, on_output, on_error):
        ran.append((command, tuple(args)))
        return ProcessResult(0, "", "")

    job_queue = JobQueue(context, renderer, runner=runner)
    channel: queue.Queue = queue.Queue()
    dispatcher = Dispatcher(_config(Rule(pattern="^go:", command="echo", args=["{clipboard}"])),
                            job_queue, context, renderer, channel)
    job_queue.start()
    dispatcher.start()

    for text in ("go:one", "ignored", "go:two"):
        channel.put(text)

    assert wait_for(lambda: dispatcher.drained() and job_queue.is_idle() and len(ran) == 2)
    assert ran == [("echo", ("go:one",)), ("echo", ("go:two",))]
    output = context.output.getvalue()
    assert "[Queue] Enqueued #1: ^go:" in output
    assert "[Queue] Enqueued #2: ^go:" in output
    assert job_queue.state_of(2) is JobState.COMPLETED


def test_dispatcher_survives_handler_errors(context: EngineContext, renderer: ConsoleRenderer, wait_for) -> None:
    job_queue = JobQueue(context, renderer, runner=lambda *a: ProcessResult(0, "", ""))
    dispatcher = Dispatcher(_config(Rule(pattern="(", command="t")), job_queue, context, renderer)
    dispatcher.start()

    dispatcher.channel.put("anything")
    dispatcher.channel.put("again")

    assert wait_for(dispatcher.drained)
    assert context.error_output.getvalue().count("Error handling clipboard text") == 2
