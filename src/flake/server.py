"""MCP server exposing the flake loop as the `run_flake_tests` tool.

Agents call the tool with a working directory; the loop runs there with
no incremental output and the outcome comes back as one text block plus
a structured result:

- success: bool
- attempts: int
- output: str
- interrupted: true (interrupted runs only)
- error_message: str (failed runs only)
"""

import asyncio
import logging
import os
from functools import partial
from typing import Optional

from fastmcp import FastMCP
from fastmcp.tools.tool import ToolResult
from mcp.types import TextContent
from pydantic import Field

from flake.cancellation import CancelToken, signal_scope
from flake.config import Config
from flake.constants import (
    DEFAULT_ATTEMPTS,
    SERVER_NAME,
    SERVER_VERSION,
    TOOL_DESCRIPTION,
    TOOL_NAME,
)
from flake.loop import Runner, run_flake_tests
from flake.presenter import ToolPresenter
from flake.runner import run_attempt

logger = logging.getLogger(__name__)


def _text_result(text: str, structured: Optional[dict] = None) -> ToolResult:
    return ToolResult(
        content=[TextContent(type="text", text=text)],
        structured_content=structured,
    )


def normalize_attempts(attempts: Optional[int]) -> int:
    """Missing, zero or negative budgets fall back to the default."""
    if attempts is None or attempts <= 0:
        return DEFAULT_ATTEMPTS
    return attempts


def handle_run_flake_tests(
    directory: Optional[str],
    attempts: Optional[int] = None,
    token: Optional[CancelToken] = None,
    runner: Optional[Runner] = None,
) -> ToolResult:
    """
    Validate the request, run the loop, and build the tool reply.

    Invalid directories produce an `Error: ...` text reply without
    running any attempt; the request itself still succeeds.
    """
    attempts = normalize_attempts(attempts)
    if token is None:
        token = CancelToken()

    directory = (directory or "").strip()
    if not directory:
        return _text_result("Error: directory parameter is required")

    try:
        clean_dir = os.path.abspath(directory)
    except (ValueError, OSError) as e:
        return _text_result(f"Error: invalid directory path: {e}")

    if not os.path.exists(clean_dir):
        return _text_result(f"Error: directory does not exist: {clean_dir}")

    presenter = ToolPresenter(clean_dir)
    run_flake_tests(clean_dir, attempts, presenter, token, runner=runner)
    return _text_result(presenter.message(), presenter.structured())


def build_server(config: Optional[Config] = None, runner: Optional[Runner] = None) -> FastMCP:
    """Create the MCP server with its single tool registered.

    Tool calls are served one at a time: each call owns the process's
    signal handlers and at most one child runs at any instant.
    """
    if config is None:
        config = Config()
    if runner is None:
        runner = partial(run_attempt, kill_grace_s=config.kill_grace_s)

    server = FastMCP(name=SERVER_NAME, version=SERVER_VERSION)
    lock = asyncio.Lock()

    @server.tool(name=TOOL_NAME, description=TOOL_DESCRIPTION)
    async def run_flake_tests_tool(
        directory: str = Field(
            "", description="Working directory where tests should be run (required)"
        ),
        attempts: Optional[int] = Field(
            None, description=f"Maximum number of test attempts (default: {DEFAULT_ATTEMPTS})"
        ),
    ) -> ToolResult:
        async with lock:
            token = CancelToken()
            with signal_scope(token):
                work = asyncio.ensure_future(
                    asyncio.to_thread(handle_run_flake_tests, directory, attempts, token, runner)
                )
                try:
                    return await asyncio.shield(work)
                except asyncio.CancelledError:
                    # Request cancelled by the client; stop the child before the next call
                    token.arm()
                    await asyncio.wait([work])
                    raise
                except Exception:
                    logger.exception("%s failed unexpectedly, shutting down", TOOL_NAME)
                    os._exit(1)
                    raise

    # A blank directory still reaches the handler, which answers with a text error
    run_flake_tests_tool.parameters.setdefault("required", [])
    if "directory" not in run_flake_tests_tool.parameters["required"]:
        run_flake_tests_tool.parameters["required"].insert(0, "directory")

    return server


def run_server(config: Optional[Config] = None) -> None:
    """Serve the tool over stdio until the client disconnects."""
    server = build_server(config)
    logger.info("Starting %s %s MCP server on stdio", SERVER_NAME, SERVER_VERSION)
    server.run(transport="stdio")
