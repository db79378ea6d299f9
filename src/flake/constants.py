"""Constants for the flake runner."""

# Default upper bound on test attempts per run
DEFAULT_ATTEMPTS = 100

# Fixed test runner invocation, executed in the target directory
TEST_COMMAND = ["go", "test", "-race", "-count=1", "-v", "./..."]

# Interactive spinner
SPINNER_FRAMES = ("|", "/", "-", "\\")
SPINNER_INTERVAL_S = 0.05

# How often the child runner re-checks the cancel token while a child is alive
POLL_INTERVAL_S = 0.05

# Seconds between SIGTERM and SIGKILL when a run is cancelled
DEFAULT_KILL_GRACE_S = 2.0

# Tool-protocol server identity
SERVER_NAME = "flake"
SERVER_VERSION = "1.0.0"
TOOL_NAME = "run_flake_tests"
TOOL_DESCRIPTION = "Run Go tests repeatedly using flake to detect flaky tests in any directory"

HELP_SUMMARY = "flake - Run Go tests repeatedly until they fail"
