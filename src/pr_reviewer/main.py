"""Main CLI entry point for pr-reviewer.

This module provides the Typer application that runs the MCP server and
drives reviews from a terminal.

Usage:
    pr-reviewer serve
    pr-reviewer start 42
    pr-reviewer next 42
    pr-reviewer status 42
    pr-reviewer reset 42
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from pr_reviewer.app import AppContext, open_app
from pr_reviewer.config import PRReviewerConfig, load_config
from pr_reviewer.errors import ConfigurationError
from pr_reviewer.logging import get_logger, setup_logging

app = typer.Typer(
    name="pr-reviewer",
    help="pr-reviewer: file-by-file pull request review over MCP",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)
logger = get_logger(__name__)


def _config(ctx: typer.Context) -> PRReviewerConfig:
    return ctx.obj


def _run(
    config: PRReviewerConfig,
    action: Callable[[AppContext], Awaitable[dict[str, Any]]],
    with_bitbucket: bool = True,
) -> dict[str, Any]:
    """Open the application, run one action and close it again.

    Startup failures (missing credentials, unreachable database) end the
    process with exit code 1.
    """

    async def _go() -> dict[str, Any]:
        async with open_app(config, with_bitbucket=with_bitbucket) as app_ctx:
            return await action(app_ctx)

    try:
        return asyncio.run(_go())
    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error:[/red] {e.message}")
        raise typer.Exit(code=1)
    except Exception as e:
        logger.exception("startup_failed", error=str(e))
        err_console.print(f"[red]Failed to initialize:[/red] {e}")
        raise typer.Exit(code=1)


def _print_envelope(envelope: dict[str, Any]) -> None:
    console.print_json(data=envelope)
    if not envelope["success"]:
        raise typer.Exit(code=1)


@app.command()
def serve(ctx: typer.Context) -> None:
    """Run the MCP server over stdio."""
    from pr_reviewer.server import run_stdio

    config = _config(ctx)
    err_console.print("[bold cyan]Starting pr-reviewer MCP server on stdio[/bold cyan]")

    try:
        asyncio.run(run_stdio(config))
    except KeyboardInterrupt:
        err_console.print("[dim]Interrupted, shutting down[/dim]")
    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error:[/red] {e.message}")
        raise typer.Exit(code=1)
    except Exception as e:
        logger.exception("server_failed", error=str(e))
        err_console.print(f"[red]Server failed:[/red] {e}")
        raise typer.Exit(code=1)


@app.command()
def start(
    ctx: typer.Context,
    pr_number: Annotated[str, typer.Argument(help="Pull request number")],
) -> None:
    """Start a review and print the first file's diff."""
    _print_envelope(_run(_config(ctx), lambda a: a.router.start_review(pr_number)))


@app.command(name="next")
def next_item(
    ctx: typer.Context,
    pr_number: Annotated[str, typer.Argument(help="Pull request number")],
) -> None:
    """Print the next file's diff of an in-progress review."""
    _print_envelope(_run(_config(ctx), lambda a: a.router.next_review_item(pr_number)))


@app.command()
def reset(
    ctx: typer.Context,
    pr_number: Annotated[str, typer.Argument(help="Pull request number")],
) -> None:
    """Discard review progress for a pull request."""
    _print_envelope(
        _run(_config(ctx), lambda a: a.router.reset_review(pr_number), with_bitbucket=False)
    )


@app.command()
def status(
    ctx: typer.Context,
    pr_number: Annotated[str, typer.Argument(help="Pull request number")],
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the raw response envelope"),
    ] = False,
) -> None:
    """Show how far a review has progressed."""
    envelope = _run(
        _config(ctx), lambda a: a.router.review_status(pr_number), with_bitbucket=False
    )
    if as_json or not envelope["success"]:
        _print_envelope(envelope)
        return

    data = envelope["data"]
    console.print(
        f"[bold]PR {data['prNumber']}[/bold]: {data['state']} "
        f"({data['current']}/{data['total']} files served)"
    )
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("File")
    table.add_column("Reviewed")
    for index, path in enumerate(data["reviewed"] + data["remaining"], start=1):
        table.add_row(str(index), path, "yes" if path in data["reviewed"] else "no")
    console.print(table)


@app.command(name="init-db")
def init_db(ctx: typer.Context) -> None:
    """Create the review tables if they do not exist."""

    async def _noop(app_ctx: AppContext) -> dict[str, Any]:
        return {"success": True, "data": {"backend": app_ctx.config.database.backend}}

    _run(_config(ctx), _noop, with_bitbucket=False)
    console.print("[green]Review store initialized[/green]")


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file (TOML format)",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Load configuration and set up logging for every command."""
    try:
        config = load_config(config_path)
    except Exception as e:
        err_console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(code=1)

    if verbose:
        config.logging.level = "DEBUG"
    setup_logging(config.logging)

    ctx.obj = config


if __name__ == "__main__":
    app()
