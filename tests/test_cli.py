"""End-to-end tests for the flake CLI (fake runner, CliRunner)."""

import os
import signal

import pytest
from click.testing import CliRunner

import flake.cli
import flake.runner
import flake.server
from flake.cli import cli
from flake.constants import HELP_SUMMARY

from conftest import ScriptedRunner, killed_by_cancel


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(flake.cli, "init_logging", lambda level: None)
    monkeypatch.delenv("FLAKE_LOG_LEVEL", raising=False)
    monkeypatch.delenv("FLAKE_KILL_GRACE_S", raising=False)


@pytest.fixture
def fake_runner(monkeypatch):
    def install(script):
        runner = ScriptedRunner(script)
        monkeypatch.setattr(flake.runner, "run_attempt", runner)
        return runner
    return install


def strip_spinner(text: str) -> str:
    """Drop spinner frames and erase sequences, keeping the dot stream."""
    for frame in ("|\b", "/\b", "-\b", "\\\b", " \b"):
        text = text.replace(frame, "")
    return text


# =============================================================================
# Interactive runs
# =============================================================================


class TestInteractiveRun:

    def test_all_pass(self, fake_runner):
        """N=5 all passing → exit 0 and the success line last."""
        runner = fake_runner([True])
        result = CliRunner().invoke(cli, ["--attempts", "5"])

        assert result.exit_code == 0
        assert result.output.endswith("All 5 test attempts passed successfully!\n")
        assert strip_spinner(result.output) == (
            "Running 'go test -race -count=1 -v ./...' up to 5 times (use -h for help)\n"
            ".....\n"
            "All 5 test attempts passed successfully!\n"
        )
        assert runner.spawned == 5
        assert runner.calls == [os.getcwd()] * 5

    def test_failure_on_third_attempt(self, fake_runner):
        """Two passes then `boom` → exit 1 with header, output and red banner.

        The banner keeps its colour codes even though the output is not a terminal.
        """
        runner = fake_runner([True, True, b"boom\n"])
        result = CliRunner().invoke(cli, ["--attempts", "10"])

        assert result.exit_code == 1
        assert runner.spawned == 3
        out = strip_spinner(result.output)
        preamble, rest = out.split("\n", 1)
        assert rest.startswith("..\nTest failed on attempt 3:")
        header = out.index("Test failed on attempt 3:")
        boom = out.index("boom")
        banner = out.index("\x1b[31mTest failed after 3 attempts\x1b[0m")
        assert header < boom < banner

    def test_interrupted_during_fourth_attempt(self, fake_runner):
        """Cancelled after 3 passes → exit 0, interruption line."""
        runner = fake_runner([True, True, True, killed_by_cancel])
        result = CliRunner().invoke(cli, [])

        assert result.exit_code == 0
        assert runner.spawned == 4
        assert strip_spinner(result.output).endswith("...\nInterrupted after 3 attempts\n")
        assert "Test failed" not in result.output

    def test_zero_attempts(self, fake_runner):
        runner = fake_runner([True])
        result = CliRunner().invoke(cli, ["--attempts", "0"])

        assert result.exit_code == 0
        assert runner.spawned == 0
        assert result.output.endswith("All 0 test attempts passed successfully!\n")

    def test_default_budget(self, fake_runner):
        runner = fake_runner([True])
        result = CliRunner().invoke(cli, [])

        assert result.exit_code == 0
        assert runner.spawned == 100
        assert "up to 100 times" in result.output

    def test_signal_handlers_restored(self, fake_runner):
        fake_runner([True])
        before = signal.getsignal(signal.SIGINT)
        CliRunner().invoke(cli, ["--attempts", "2"])
        assert signal.getsignal(signal.SIGINT) == before


# =============================================================================
# Flags and usage
# =============================================================================


class TestUsage:

    @pytest.mark.parametrize("flag", ["-h", "--help"])
    def test_help(self, flag):
        result = CliRunner().invoke(cli, [flag])

        assert result.exit_code == 0
        assert "Usage:" in result.output
        assert HELP_SUMMARY in result.output
        assert "--attempts" in result.output
        assert "--mcp" in result.output

    def test_unknown_flag(self):
        result = CliRunner().invoke(cli, ["--bogus"])
        assert result.exit_code == 2
        assert "No such option" in result.output

    def test_positional_rejected(self):
        result = CliRunner().invoke(cli, ["extra"])
        assert result.exit_code == 2

    def test_negative_attempts_rejected(self):
        result = CliRunner().invoke(cli, ["--attempts", "-1"])
        assert result.exit_code == 2

    def test_non_integer_attempts_rejected(self):
        result = CliRunner().invoke(cli, ["--attempts", "many"])
        assert result.exit_code == 2

    def test_bad_config(self, monkeypatch, fake_runner):
        """Invalid environment configuration stops before any attempt."""
        runner = fake_runner([True])
        monkeypatch.setenv("FLAKE_LOG_LEVEL", "LOUD")
        result = CliRunner().invoke(cli, ["--attempts", "1"])

        assert result.exit_code == 2
        assert "Error: FLAKE_LOG_LEVEL" in result.output
        assert runner.spawned == 0


# =============================================================================
# MCP mode
# =============================================================================


class TestMcpMode:

    def test_starts_server_instead_of_running(self, monkeypatch, fake_runner):
        runner = fake_runner([True])
        started = []
        monkeypatch.setattr(flake.server, "run_server", lambda config: started.append(config))

        result = CliRunner().invoke(cli, ["--mcp"])

        assert result.exit_code == 0
        assert len(started) == 1
        assert runner.spawned == 0
        assert result.output == ""

    def test_server_crash_exits_nonzero(self, monkeypatch):
        def crash(config):
            raise RuntimeError("transport closed")

        monkeypatch.setattr(flake.server, "run_server", crash)
        result = CliRunner().invoke(cli, ["--mcp"])

        assert result.exit_code == 1
