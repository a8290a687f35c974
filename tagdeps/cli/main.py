"""Main CLI application for tagdeps."""

import logging
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from tagdeps import __version__
from tagdeps.config.parser import MANIFEST_FILE, ConfigError, ConfigMissingError
from tagdeps.config.schemas import DEFAULT_SOURCE, DependencySpec
from tagdeps.core.installer import IntegrityError, PluginInstaller, remove_dependency
from tagdeps.core.lockfile import LockFileManager
from tagdeps.core.project import DependencyNotFoundError, Project
from tagdeps.core.resolver import LATEST, InvalidRequirementError, check_requirement
from tagdeps.sources.cache import ArchiveCache


class ExitCode:
    """Process exit codes."""

    OK = 0
    ERROR = 1
    INSTALL_FAILED = 3
    INTEGRITY = 4


# Create the main Typer app
app = typer.Typer(
    name="tagdeps",
    help="Install dependencies from the tagged releases of source repositories",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

# Set up logger for the tagdeps package
logger = logging.getLogger("tagdeps")

PathOption = Annotated[
    Path | None,
    typer.Option(
        "--path",
        "-p",
        help="Project directory (defaults to current directory)",
    ),
]


def setup_logging(verbosity: int) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2+=DEBUG
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logger.setLevel(level)

    # Only add handler if not already configured
    if not logger.handlers:
        handler = RichHandler(
            console=error_console,
            show_time=verbosity >= 2,
            show_path=verbosity >= 3,
            rich_tracebacks=True,
        )
        handler.setLevel(level)
        logger.addHandler(handler)
    else:
        for h in logger.handlers:
            h.setLevel(level)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]⚠[/yellow] {message}")


def resolve_root(path: Path | None) -> Path:
    return Path.cwd() if path is None else path.resolve()


def get_project(path: Path | None = None) -> Project:
    """Get the project at a path, exiting with an error if there is none."""
    try:
        return Project.load(resolve_root(path))
    except ConfigMissingError as e:
        print_error(str(e))
        print_error("Run 'tagdeps init' to create a new project")
        raise typer.Exit(ExitCode.ERROR) from e
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(ExitCode.ERROR) from e


@app.callback()
def callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Increase verbosity (-v info, -vv debug)",
        ),
    ] = 0,
) -> None:
    """tagdeps - dependencies pinned to repository tags."""
    setup_logging(verbose)


@app.command()
def version() -> None:
    """Show the tagdeps version."""
    console.print(f"tagdeps {__version__}")


@app.command()
def init(
    install_path: Annotated[
        str,
        typer.Option(
            "--install-path",
            "-i",
            help="Directory dependencies are installed into, relative to the project",
        ),
    ] = ".",
    path: PathOption = None,
) -> None:
    """Initialize a new tagdeps project.

    Creates an empty tagdeps.yml in the specified directory.
    """
    root = resolve_root(path)

    if not root.exists():
        print_error(f"Directory does not exist: {root}")
        raise typer.Exit(ExitCode.ERROR)

    try:
        Project.init(root, install_path)
    except FileExistsError as e:
        print_error(f"Project already initialized in {root}")
        print_error(f"To reinitialize, delete {MANIFEST_FILE} first")
        raise typer.Exit(ExitCode.ERROR) from e
    except OSError as e:
        print_error(f"Failed to initialize project: {e}")
        raise typer.Exit(ExitCode.ERROR) from e

    print_success("Initialized tagdeps project")
    console.print(f"  Created: {root / MANIFEST_FILE}")


@app.command()
def add(
    name: Annotated[str, typer.Argument(help="Dependency name (its install directory)")],
    repo: Annotated[
        str,
        typer.Option("--repo", "-r", help="Repository as owner/name"),
    ],
    requirement: Annotated[
        str,
        typer.Option(
            "--version",
            help="'latest', an exact version (1.2.0) or a range (^1.0.0, ~1.2, >=1.0 <2.0)",
        ),
    ] = LATEST,
    token_env: Annotated[
        str | None,
        typer.Option(
            "--token-env",
            "-t",
            help="Environment variable holding an access token for this repository",
        ),
    ] = None,
    source: Annotated[
        str,
        typer.Option("--source", "-s", help="Source kind"),
    ] = DEFAULT_SOURCE,
    path: PathOption = None,
) -> None:
    """Add a dependency to tagdeps.yml, or update it if already declared.

    Nothing is downloaded; run 'tagdeps install' afterwards.
    """
    project = get_project(path)

    try:
        check_requirement(requirement)
        spec = DependencySpec(
            name=name,
            version=requirement,
            repo=repo,
            source=source,
            token_env=token_env,
        )
    except InvalidRequirementError as e:
        print_error(str(e))
        raise typer.Exit(ExitCode.ERROR) from e
    except ValidationError as e:
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"])
            print_error(f"{field}: {error['msg']}")
        raise typer.Exit(ExitCode.ERROR) from e

    added = project.add_dependency(spec)
    project.save()

    if added:
        print_success(f"Added {spec.name} ({spec.repo} {spec.version}) to {MANIFEST_FILE}")
    else:
        print_success(f"Updated {spec.name} ({spec.repo} {spec.version}) in {MANIFEST_FILE}")


@app.command()
def remove(
    name: Annotated[str, typer.Argument(help="Dependency to remove")],
    path: PathOption = None,
) -> None:
    """Remove a dependency.

    Drops it from tagdeps.yml and tagdeps.lock and deletes its installed files.
    """
    project = get_project(path)

    try:
        dep = remove_dependency(project, name)
    except DependencyNotFoundError as e:
        print_error(str(e))
        raise typer.Exit(ExitCode.ERROR) from e
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(ExitCode.ERROR) from e
    except OSError as e:
        print_error(f"Failed to remove {name}: {e}")
        raise typer.Exit(ExitCode.ERROR) from e

    print_success(f"Removed {dep.name}")


@app.command()
def install(
    update: Annotated[
        bool,
        typer.Option(
            "--update",
            "-u",
            help="Re-resolve every dependency instead of reusing locked versions",
        ),
    ] = False,
    path: PathOption = None,
) -> None:
    """Install all dependencies declared in tagdeps.yml.

    Locked versions are reused while they still satisfy the declared
    requirement; their archives are re-verified against the recorded hash.
    """
    project = get_project(path)

    if not project.dependencies:
        console.print("No dependencies to install")

    try:
        summary = PluginInstaller(project, update=update).install()
    except IntegrityError as e:
        print_error(str(e))
        print_error("The lock file was not updated")
        raise typer.Exit(ExitCode.INTEGRITY) from e
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(ExitCode.ERROR) from e
    except OSError as e:
        print_error(f"Installation failed: {e}")
        raise typer.Exit(ExitCode.ERROR) from e

    for result in summary.results:
        if result.success:
            print_success(result.message)
            for warning in result.warnings:
                print_warning(f"  {warning}")
        else:
            print_error(f"Failed to install {result.name} ({result.error_kind}): {result.message}")

    if not summary.all_successful:
        console.print(
            f"\n{summary.success_count} succeeded, {summary.failure_count} failed"
        )
        raise typer.Exit(ExitCode.INSTALL_FAILED)


@app.command("list")
def list_dependencies(path: PathOption = None) -> None:
    """List declared dependencies and their locked versions."""
    project = get_project(path)

    if not project.dependencies:
        console.print("No dependencies declared")
        return

    lock_manager = LockFileManager(project.root)
    try:
        lock_manager.load()
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(ExitCode.ERROR) from e

    table = Table(title="Dependencies")
    table.add_column("Name", style="cyan")
    table.add_column("Repository", style="dim")
    table.add_column("Requirement")
    table.add_column("Locked", style="green")

    for dep in project.dependencies:
        locked = lock_manager.get_locked_version(dep.name)
        table.add_row(dep.name, dep.repo, dep.version, locked or "[yellow]not installed[/yellow]")

    console.print(table)

    declared = {dep.name.lower() for dep in project.dependencies}
    stale = [name for name in lock_manager.list_locked() if name.lower() not in declared]
    if stale:
        print_warning(
            f"Locked but no longer declared: {', '.join(stale)} (run 'tagdeps install' to prune)"
        )


@app.command("cache-clean")
def cache_clean(path: PathOption = None) -> None:
    """Delete every cached archive."""
    project = get_project(path)

    if not project.cache_dir.exists():
        console.print("Cache is already empty")
        return

    removed = ArchiveCache(project.cache_dir).clear()
    print_success(f"Removed {removed} cached archive(s)")


if __name__ == "__main__":
    app()
