"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import io
import sys
import time
from collections.abc import Callable, Generator

import pytest

from cliprun.console import ConsoleRenderer
from cliprun.state import EngineContext


class Console(io.StringIO):
    """StringIO that pretends not to be a terminal."""

    def isatty(self) -> bool:
        return False


@pytest.fixture
def context() -> Generator[EngineContext, None, None]:
    """Engine context writing to in-memory streams with a fixed 80x24 screen."""

    ctx = EngineContext(output=Console(), error_output=Console(), width=80, height=24)
    yield ctx
    ctx.request_shutdown()


@pytest.fixture
def renderer(context: EngineContext) -> ConsoleRenderer:
    return ConsoleRenderer(context)


@pytest.fixture
def python() -> str:
    """Interpreter used to spawn portable child processes."""

    return sys.executable


@pytest.fixture
def wait_for() -> Callable[..., bool]:
    """Poll a predicate until it is true or the timeout expires."""

    def _wait(predicate: Callable[[], bool], timeout: float = 10.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()

    return _wait
