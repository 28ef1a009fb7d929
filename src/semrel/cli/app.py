"""Command-line entry point for semrel."""

from __future__ import annotations

import typer
from rich.console import Console

from semrel import __version__
from semrel.cli.commands.release import run_release
from semrel.config.loader import parse_switch
from semrel.logging import configure_logging

app = typer.Typer(
    name="semrel",
    help="Semantic releases from conventional commits.",
    add_completion=False,
    no_args_is_help=False,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True)


@app.command()
def release(
    path: str | None = typer.Option(
        None, "--path", "-p", help="Repository path (defaults to the current directory)."
    ),
    write: bool = typer.Option(
        False, "--write", "-w", help="Apply the changes instead of a dry run."
    ),
    release_switch: str = typer.Option(
        "yes",
        "--release",
        "-r",
        help="Push, create the GitHub release and publish (write mode only): yes/no.",
    ),
    branch: str | None = typer.Option(
        None, "--branch", "-b", help="Branch on which releases happen."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    json_log: bool = typer.Option(False, "--json-log", help="Emit logs as JSON lines on stderr."),
    version: bool = typer.Option(False, "--version", help="Show the version and exit."),
) -> None:
    """Decide whether a release is due and perform it."""
    if version:
        console.print(f"semrel v{__version__}")
        raise typer.Exit(code=0)

    configure_logging(verbose=verbose, json_log=json_log)
    run_release(
        path=path,
        write=write,
        release=parse_switch(release_switch),
        branch=branch,
        console=console,
        err_console=err_console,
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
