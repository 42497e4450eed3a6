"""MCP server exposing the review operations as tools.

Each tool forwards its arguments to the RequestRouter and returns the
response envelope serialized as JSON text. The server itself holds no review
logic.
"""

from __future__ import annotations

import json

from mcp.server.fastmcp import FastMCP

from pr_reviewer import __version__
from pr_reviewer.app import open_app
from pr_reviewer.config import PRReviewerConfig
from pr_reviewer.logging import get_logger
from pr_reviewer.router import RequestRouter

logger = get_logger(__name__)

SERVER_NAME = "pr-reviewer"


def build_server(router: RequestRouter) -> FastMCP:
    """Create a FastMCP server whose tools are backed by router."""
    mcp = FastMCP(
        SERVER_NAME,
        instructions=(
            "Review a Bitbucket pull request one file at a time. Call "
            "start_review once, then next_review_item until the result's "
            "customPrompt reads 'PR review completed!'."
        ),
    )

    @mcp.tool()
    async def start_review(prNumber: str | int) -> str:
        """Start reviewing a pull request and return the first file's diff."""
        return json.dumps(await router.start_review(prNumber))

    @mcp.tool()
    async def next_review_item(prNumber: str | int) -> str:
        """Return the diff of the next file in an in-progress review."""
        return json.dumps(await router.next_review_item(prNumber))

    @mcp.tool()
    async def reset_review(prNumber: str | int) -> str:
        """Discard review progress for a pull request."""
        return json.dumps(await router.reset_review(prNumber))

    @mcp.tool()
    async def add_review_comment(prNumber: str | int, filePath: str, line: int, text: str) -> str:
        """Post an inline comment on a line of a file in the pull request."""
        return json.dumps(await router.add_review_comment(prNumber, filePath, line, text))

    return mcp


async def run_stdio(config: PRReviewerConfig) -> None:
    """Serve the review tools over stdio until the client disconnects."""
    async with open_app(config) as ctx:
        server = build_server(ctx.router)
        logger.info("mcp_server_starting", name=SERVER_NAME, version=__version__, transport="stdio")
        await server.run_stdio_async()
        logger.info("mcp_server_stopped", name=SERVER_NAME)
