"""flake: run a test command repeatedly to expose flaky tests."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("flake")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
