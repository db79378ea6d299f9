"""CLI entrypoint for flake."""

import logging
import os
from functools import partial

import click

from flake.config import ConfigError, init_logging, load_config
from flake.constants import DEFAULT_ATTEMPTS, HELP_SUMMARY

logger = logging.getLogger(__name__)


@click.command(
    help=f"{HELP_SUMMARY}\n\nRuns 'go test -race -count=1 -v ./...' in the current "
    "directory until an attempt fails or the attempt budget is used up.",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(package_name="flake")
@click.option(
    "--attempts",
    type=click.IntRange(min=0),
    default=DEFAULT_ATTEMPTS,
    show_default=True,
    help="Maximum number of test attempts",
)
@click.option(
    "--mcp",
    "mcp_mode",
    is_flag=True,
    help="Run as MCP server for agentic clients",
)
def cli(attempts: int, mcp_mode: bool):
    try:
        config = load_config()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(2)

    init_logging(config.log_level)

    if mcp_mode:
        from flake.server import run_server

        try:
            run_server(config)
        except Exception:
            logger.exception("MCP server failed")
            raise SystemExit(1)
        return

    from flake.cancellation import CancelToken, signal_scope
    from flake.loop import run_flake_tests
    from flake.presenter import InteractivePresenter
    from flake.runner import run_attempt

    token = CancelToken()
    with signal_scope(token):
        result = run_flake_tests(
            os.getcwd(),
            attempts,
            InteractivePresenter(color=True),
            token,
            runner=partial(run_attempt, kill_grace_s=config.kill_grace_s),
        )

    if result.is_failed:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
