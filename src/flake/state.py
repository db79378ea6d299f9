"""Attempt and run results for the repetition loop."""

from dataclasses import dataclass
from typing import Optional

PASSED = "PASSED"
FAILED = "FAILED"
INTERRUPTED = "INTERRUPTED"


@dataclass(frozen=True)
class AttemptResult:
    """Outcome of one invocation of the test command."""

    success: bool
    output: bytes = b""
    cancelled: bool = False
    returncode: Optional[int] = None  # None when the child never started
    duration_seconds: float = 0.0


@dataclass(frozen=True)
class FlakeResult:
    """Terminal outcome of a run.

    `attempts` is the budget for PASSED, the failing attempt index for
    FAILED, and the number of completed attempts for INTERRUPTED.
    `output` is only populated for FAILED.
    """

    status: str  # PASSED | FAILED | INTERRUPTED
    attempts: int
    output: bytes = b""

    @classmethod
    def passed(cls, attempts: int) -> "FlakeResult":
        return cls(status=PASSED, attempts=attempts)

    @classmethod
    def failed(cls, attempt: int, output: bytes) -> "FlakeResult":
        return cls(status=FAILED, attempts=attempt, output=output)

    @classmethod
    def interrupted(cls, completed: int) -> "FlakeResult":
        return cls(status=INTERRUPTED, attempts=completed)

    @property
    def success(self) -> bool:
        return self.status == PASSED

    @property
    def is_failed(self) -> bool:
        return self.status == FAILED

    @property
    def is_interrupted(self) -> bool:
        return self.status == INTERRUPTED

    @property
    def error_message(self) -> Optional[str]:
        if self.status != FAILED:
            return None
        return f"Test failed on attempt {self.attempts}"

    @property
    def message(self) -> str:
        """One-line human summary of the outcome."""
        if self.status == FAILED:
            return f"Test failed on attempt {self.attempts}"
        if self.status == INTERRUPTED:
            return f"Interrupted after {self.attempts} attempts"
        return f"All {self.attempts} test attempts passed successfully!"

    def output_text(self) -> str:
        return self.output.decode("utf-8", errors="replace")
