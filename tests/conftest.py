"""Shared fakes for loop, CLI and server tests (no real `go` needed)."""

import threading
import time
from typing import List, Optional, Sequence

import pytest

from flake.presenter import Presenter
from flake.state import AttemptResult, FlakeResult


class ScriptedRunner:
    """Fake runner that replays a list of outcomes.

    Each entry is True (pass), bytes (fail with that output), or a callable
    taking the token and returning an AttemptResult. Once the script runs
    out the last entry repeats. Records spawn/exit times to detect overlap.
    """

    def __init__(self, script: Sequence):
        self.script = list(script)
        self.calls: List[str] = []
        self.intervals: List[tuple] = []
        self._lock = threading.Lock()
        self._live = 0
        self.max_live = 0

    def __call__(self, directory, token, **kwargs) -> AttemptResult:
        with self._lock:
            self._live += 1
            self.max_live = max(self.max_live, self._live)
        started = time.monotonic()
        try:
            self.calls.append(directory)
            step = self.script[min(len(self.calls) - 1, len(self.script) - 1)]
            if step is True:
                return AttemptResult(success=True, returncode=0, cancelled=token.armed)
            if isinstance(step, bytes):
                return AttemptResult(success=False, output=step, returncode=1, cancelled=token.armed)
            return step(token)
        finally:
            self.intervals.append((started, time.monotonic()))
            with self._lock:
                self._live -= 1

    @property
    def spawned(self) -> int:
        return len(self.calls)


class RecordingPresenter(Presenter):
    """Presenter that records every event it receives."""

    def __init__(self):
        self.events: List[tuple] = []
        self.result: Optional[FlakeResult] = None

    def run_started(self, attempts):
        self.events.append(("run_started", attempts))

    def attempt_started(self, attempt):
        self.events.append(("attempt_started", attempt))

    def attempt_finished(self, attempt):
        self.events.append(("attempt_finished", attempt))

    def attempt_passed(self, attempt):
        self.events.append(("attempt_passed", attempt))

    def run_finished(self, result):
        self.events.append(("run_finished", result.status))
        self.result = result


def killed_by_cancel(token) -> AttemptResult:
    """Simulate Ctrl+C arriving while a child runs: token armed, child dies."""
    token.arm()
    return AttemptResult(success=False, output=b"signal: killed\n", returncode=-15, cancelled=True)


@pytest.fixture
def presenter():
    return RecordingPresenter()
