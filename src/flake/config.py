"""Configuration loading for the flake CLI."""

import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional

from dotenv import dotenv_values, find_dotenv

from flake.constants import DEFAULT_KILL_GRACE_S

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class Config:
    """Runtime tuning loaded from environment."""

    log_level: str = "WARNING"
    kill_grace_s: float = DEFAULT_KILL_GRACE_S


class ConfigError(Exception):
    """Raised when a configuration value cannot be used."""
    pass


def load_config() -> Config:
    """
    Load configuration from environment variables and .env, if present.

    Exported variables win over .env values. The .env file is read, never
    loaded into os.environ, so the test command only inherits what the
    caller actually exported.

    Recognised variables:
        FLAKE_LOG_LEVEL: DEBUG | INFO | WARNING | ERROR | CRITICAL
        FLAKE_KILL_GRACE_S: seconds between SIGTERM and SIGKILL on cancel

    Raises:
        ConfigError: If a variable is set to an unusable value.
    """
    dotenv_path = find_dotenv(usecwd=True)
    file_values = dotenv_values(dotenv_path) if dotenv_path else {}

    def lookup(name: str) -> Optional[str]:
        value = os.environ.get(name)
        return value if value is not None else file_values.get(name)

    log_level = (lookup("FLAKE_LOG_LEVEL") or "WARNING").strip().upper() or "WARNING"
    if log_level not in LOG_LEVELS:
        raise ConfigError(
            f"FLAKE_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)} (got {log_level!r})"
        )

    raw_grace = lookup("FLAKE_KILL_GRACE_S")
    kill_grace_s = DEFAULT_KILL_GRACE_S
    if raw_grace is not None and raw_grace.strip():
        try:
            kill_grace_s = float(raw_grace)
        except ValueError:
            raise ConfigError(f"FLAKE_KILL_GRACE_S must be a number (got {raw_grace!r})")
        if kill_grace_s < 0:
            raise ConfigError(f"FLAKE_KILL_GRACE_S must not be negative (got {raw_grace!r})")

    return Config(log_level=log_level, kill_grace_s=kill_grace_s)


def init_logging(level: str = "WARNING") -> None:
    """Send log records to stderr; stdout belongs to the presenter or the MCP transport."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
