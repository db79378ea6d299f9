"""Child process runner: one supervised invocation of the test command."""

import logging
import os
import signal
import subprocess
import threading
import time
from typing import List, Optional, Sequence

from flake.cancellation import CancelToken
from flake.constants import DEFAULT_KILL_GRACE_S, POLL_INTERVAL_S, TEST_COMMAND
from flake.state import AttemptResult

logger = logging.getLogger(__name__)


def _drain(stream, chunks: List[bytes]) -> None:
    """Read the merged stdout/stderr pipe to EOF."""
    try:
        for chunk in iter(lambda: stream.read1(65536), b""):
            chunks.append(chunk)
    finally:
        stream.close()


def _signal_group(proc: subprocess.Popen, sig: int) -> None:
    if os.name == "nt":
        proc.kill()
        return
    try:
        os.killpg(proc.pid, sig)
    except ProcessLookupError:
        pass


def _terminate(proc: subprocess.Popen, reader: threading.Thread, grace_s: float) -> None:
    """
    Stop the child and everything in its process group.

    SIGTERM first. If the leader has not exited, or some other group member
    still holds the output pipe open, once `grace_s` is up, the whole group
    gets SIGKILL. Returns once the leader has been reaped.
    """
    logger.info("Cancelling attempt: terminating process group %s", proc.pid)
    _signal_group(proc, signal.SIGTERM)
    deadline = time.monotonic() + grace_s
    try:
        proc.wait(timeout=grace_s)
    except subprocess.TimeoutExpired:
        pass
    reader.join(max(0.0, deadline - time.monotonic()))

    if proc.poll() is None or reader.is_alive():
        logger.info("Process group %s still alive after %.1fs, killing", proc.pid, grace_s)
        _signal_group(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
    proc.wait()


def run_attempt(
    directory: str,
    token: CancelToken,
    command: Sequence[str] = TEST_COMMAND,
    kill_grace_s: Optional[float] = None,
) -> AttemptResult:
    """
    Run `command` once in `directory` and wait for it to exit.

    Stdout and stderr share one pipe, so the captured bytes keep arrival
    order. The attempt lasts until the child has exited and the pipe is
    closed, so processes the child leaves behind are waited for too. The
    child runs in its own session; arming `token` terminates its whole
    process group. Nothing in the group outlives this call.

    A spawn failure (e.g. the runner is not on PATH) is reported as an
    unsuccessful attempt with the error text as output. Never raises for
    child-side problems.
    """
    grace_s = DEFAULT_KILL_GRACE_S if kill_grace_s is None else kill_grace_s
    started = time.monotonic()

    popen_kwargs = {
        "cwd": directory,
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.PIPE,
        "stderr": subprocess.STDOUT,
    }
    if os.name == "nt":
        popen_kwargs["creationflags"] = getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
    else:
        popen_kwargs["start_new_session"] = True

    try:
        proc = subprocess.Popen(list(command), **popen_kwargs)
    except OSError as e:
        logger.warning("Failed to start %s: %s", command[0], e)
        return AttemptResult(
            success=False,
            output=f"{e}\n".encode("utf-8"),
            cancelled=token.armed,
            returncode=None,
            duration_seconds=time.monotonic() - started,
        )

    chunks: List[bytes] = []
    reader = threading.Thread(target=_drain, args=(proc.stdout, chunks), daemon=True)
    reader.start()

    try:
        while proc.poll() is None or reader.is_alive():
            if token.wait(POLL_INTERVAL_S):
                _terminate(proc, reader, grace_s)
                break
    finally:
        if proc.poll() is None:
            # Interrupted by an exception in this thread
            _terminate(proc, reader, grace_s)
        reader.join(max(grace_s, POLL_INTERVAL_S))
        if reader.is_alive():
            # A process that left the group still holds the pipe
            logger.warning("Output pipe of pid %s still open, abandoning reader", proc.pid)

    returncode = proc.wait()
    duration = time.monotonic() - started
    logger.debug("pid %s exited with %s after %.2fs", proc.pid, returncode, duration)

    return AttemptResult(
        success=returncode == 0,
        output=b"".join(list(chunks)),
        cancelled=token.armed,
        returncode=returncode,
        duration_seconds=duration,
    )
