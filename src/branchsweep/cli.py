"""Command line interface for branch-sweep."""

import os
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape

from branchsweep import __version__
from branchsweep.cleanup import sweep
from branchsweep.config import DEFAULT_REMOTE, DEFAULT_TIMEOUT, Config, parse_patterns
from branchsweep.errors import BranchSweepError
from branchsweep.git import GitRepo
from branchsweep.logging_config import setup_logging
from branchsweep.runner import CommandRunner

app = typer.Typer(help="Delete local branches already merged into the default branch")
err_console = Console(stderr=True)


def fail(message: str) -> None:
    """Report a fatal error on stderr."""
    err_console.print(f"[red]{escape('[error]')}[/red] {escape(message)}", soft_wrap=True)


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"branch-sweep {__version__}")
        raise typer.Exit()


def echo(line: str) -> None:
    """Print a report line, keeping any undecodable bytes from git as they were."""
    typer.echo(os.fsencode(line))


@app.command()
def main(
    force: bool = typer.Option(False, "--force", "-f", help="Delete the branches instead of listing them"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Echo git commands and stream their output"),
    path: Annotated[Path, typer.Option(help="Path to git repository")] = Path("."),
    remote: str = typer.Option(DEFAULT_REMOTE, help="Remote that reports the default branch"),
    protect: str = typer.Option("", "--protect", "-p", help="Comma-separated list of branch patterns to never delete"),
    timeout: float = typer.Option(DEFAULT_TIMEOUT, help="Seconds each git command may run"),
    debug: bool = typer.Option(False, "--debug", help="Show debug logging"),
    version: Optional[bool] = typer.Option(
        None, "--version", callback=version_callback, is_eager=True, help="Show the version and exit"
    ),
) -> None:
    """Sweep branches merged into the default branch. Dry run unless -f is given."""
    try:
        config = Config(
            force=force,
            verbose=verbose,
            debug=debug,
            timeout=timeout,
            remote=remote,
            protect=parse_patterns(protect),
            path=path,
        )
    except ValueError as err:
        fail(str(err))
        raise typer.Exit(code=1) from err

    setup_logging(verbose=config.verbose, debug=config.debug)

    try:
        runner = CommandRunner(config, cwd=config.path)
        repo = GitRepo(config.path, runner)
        sweep(repo, config, echo=echo)
    except BranchSweepError as err:
        fail(str(err))
        raise typer.Exit(code=1) from err


if __name__ == "__main__":
    app()
