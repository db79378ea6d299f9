"""Repetition loop: run the test command until it fails, is interrupted, or the budget runs out."""

import logging
from typing import Callable, Optional

from flake.cancellation import CancelToken
from flake.presenter import Presenter
from flake.runner import run_attempt
from flake.state import AttemptResult, FlakeResult

logger = logging.getLogger(__name__)

Runner = Callable[[str, CancelToken], AttemptResult]


def _drive(
    directory: str,
    attempts: int,
    presenter: Presenter,
    token: CancelToken,
    runner: Runner,
) -> FlakeResult:
    for i in range(1, attempts + 1):
        if token.armed:
            return FlakeResult.interrupted(i - 1)

        presenter.attempt_started(i)
        try:
            attempt = runner(directory, token)
        finally:
            presenter.attempt_finished(i)

        logger.debug(
            "Attempt %d/%d: rc=%s in %.2fs",
            i, attempts, attempt.returncode, attempt.duration_seconds,
        )

        if not attempt.success:
            # Cancellation wins over the child's death by signal
            if token.armed or attempt.cancelled:
                return FlakeResult.interrupted(i - 1)
            return FlakeResult.failed(i, attempt.output)

        presenter.attempt_passed(i)

    return FlakeResult.passed(attempts)


def run_flake_tests(
    directory: str,
    attempts: int,
    presenter: Presenter,
    token: CancelToken,
    runner: Optional[Runner] = None,
) -> FlakeResult:
    """
    Main repetition loop.

    Logic, for attempt i = 1..attempts:
    1. If the token is armed → Interrupted(i-1)
    2. Run one attempt (presenter brackets it with started/finished)
    3. Non-success and token armed (or attempt cancelled) → Interrupted(i-1)
    4. Non-success otherwise → Failed(i, output)
    5. Success → pulse and continue

    Exhausting the budget → Passed(attempts). attempts=0 never spawns.
    Exactly one child at a time; no retries.
    """
    if runner is None:
        runner = run_attempt

    logger.info("Starting flake run in %s (up to %d attempts)", directory, attempts)
    presenter.run_started(attempts)

    result = _drive(directory, attempts, presenter, token, runner)

    logger.info("Run finished: %s", result.message)
    presenter.run_finished(result)
    return result
