import datetime
import random

import pytest

from core.command_engine import Terminal
from core.commands import Context
from core.state import Session

FIXED_NOW = datetime.datetime(2024, 12, 14, 12, 0, 0, tzinfo=datetime.timezone.utc)


class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def terminal(clock):
    return Terminal(rng=random.Random(1234), clock=clock, wallclock=lambda: FIXED_NOW)


@pytest.fixture
def run(terminal):
    """Submit a line, drive any deferred task to completion, return the new output texts."""
    def _run(line: str) -> list[str]:
        start = len(terminal.transcript)
        terminal.submit(line)
        terminal.run_pending()
        return [l.text for l in terminal.transcript[start + 1:]]
    return _run


@pytest.fixture
def ctx():
    return Context(Session(), random.Random(1234), lambda: FIXED_NOW)
