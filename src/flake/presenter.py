"""Presenters: turn loop events into terminal output or a tool result."""

import itertools
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Sequence

import click

from flake.constants import SPINNER_FRAMES, SPINNER_INTERVAL_S, TEST_COMMAND
from flake.state import FlakeResult


class Presenter(ABC):
    """Receives the repetition loop's events in order:

    run_started, then per attempt attempt_started / attempt_finished
    (and attempt_passed when it passed), then run_finished exactly once.
    """

    def run_started(self, attempts: int) -> None:
        pass

    def attempt_started(self, attempt: int) -> None:
        pass

    def attempt_finished(self, attempt: int) -> None:
        pass

    def attempt_passed(self, attempt: int) -> None:
        pass

    @abstractmethod
    def run_finished(self, result: FlakeResult) -> None:
        ...


class Spinner:
    """Rotating glyph drawn in place until stopped."""

    def __init__(
        self,
        write: Callable[[str], None],
        frames: Sequence[str] = SPINNER_FRAMES,
        interval_s: float = SPINNER_INTERVAL_S,
    ):
        self._write = write
        self.frames = frames
        self.interval_s = interval_s
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(target=self._spin, name="flake-spinner", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop and wait for the ticker; no frame is written after this returns."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _spin(self) -> None:
        for frame in itertools.cycle(self.frames):
            if self._stop.is_set():
                return
            # Backspace so the next frame overwrites this one
            self._write(frame + "\b")
            if self._stop.wait(self.interval_s):
                return


class InteractivePresenter(Presenter):
    """Spinner, one dot per passing attempt, and a final banner on stdout."""

    def __init__(self, file=None, color: Optional[bool] = None):
        self.file = file
        self.color = color
        self._spinner = Spinner(self._write)

    def _write(self, message: Any) -> None:
        click.echo(message, file=self.file, nl=False, color=self.color)

    def run_started(self, attempts: int) -> None:
        command = " ".join(TEST_COMMAND)
        self._write(f"Running '{command}' up to {attempts} times (use -h for help)\n")

    def attempt_started(self, attempt: int) -> None:
        self._spinner.start()

    def attempt_finished(self, attempt: int) -> None:
        self._spinner.stop()
        self._write(" \b")

    def attempt_passed(self, attempt: int) -> None:
        self._write(".")

    def run_finished(self, result: FlakeResult) -> None:
        if result.is_failed:
            self._write(f"\n{result.error_message}:\n")
            if result.output:
                self._write(result.output)
            banner = click.style(f"Test failed after {result.attempts} attempts", fg="red")
            self._write(f"{banner}\n")
        else:
            self._write(f"\n{result.message}\n")


class ToolPresenter(Presenter):
    """No incremental output; keeps only the terminal result for the MCP reply."""

    def __init__(self, directory: str):
        self.directory = directory
        self.result: Optional[FlakeResult] = None

    def run_finished(self, result: FlakeResult) -> None:
        self.result = result

    def structured(self) -> Dict[str, Any]:
        """Result object returned to the agent.

        `interrupted` is only present for interrupted runs and
        `error_message` only for failed ones.
        """
        result = self._require_result()
        payload: Dict[str, Any] = {
            "success": result.success,
            "attempts": result.attempts,
            "output": result.output_text() if result.is_failed else result.message,
        }
        if result.is_interrupted:
            payload["interrupted"] = True
        if result.is_failed:
            payload["error_message"] = result.error_message
        return payload

    def message(self) -> str:
        result = self._require_result()
        if result.is_failed:
            return (
                f"Tests failed after {result.attempts} attempts in directory: {self.directory}\n\n"
                f"Output:\n{result.output_text()}\n\n"
                f"Error: {result.error_message}"
            )
        if result.is_interrupted:
            return f"Tests interrupted after {result.attempts} attempts in directory: {self.directory}"
        return f"All {result.attempts} test attempts passed successfully in directory: {self.directory}"

    def _require_result(self) -> FlakeResult:
        if self.result is None:
            raise RuntimeError("run_finished() has not been called")
        return self.result
