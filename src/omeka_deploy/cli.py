"""
omeka-deploy CLI

Usage:
    omeka-deploy install <name|list> [revision]
    omeka-deploy update <name|all> [revision]
    omeka-deploy update-core [version|latest] [--dry-run]
    omeka-deploy bootstrap [command...]

Operations assume exclusive access to the application root; do not run two
of them against the same root at the same time.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, List, Optional

import typer
from pydantic import ValidationError

from .bootstrap import CoreBootstrapper
from .config import Settings
from .exceptions import DeployError
from .installer import ComponentInstaller
from .registry import Registry
from .schema import ComponentKind
from .schema import InstallResult
from .schema import SourceHost
from .updater import CoreUpdater

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="omeka-deploy",
    help="Install and update Omeka S, its modules and themes",
    no_args_is_help=True,
)


def configure_logging(verbose: bool = False) -> None:
    """Leveled status lines on stderr: [INFO] ..., [WARNING] ..., [ERROR] ..."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
        stream=sys.stderr,
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def output_error(message: str) -> None:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run a coroutine, turning DeployError into exit status 1."""
    try:
        return asyncio.run(coro)
    except DeployError as e:
        output_error(e.message)
        raise typer.Exit(1)


def get_settings(ctx: typer.Context) -> Settings:
    return ctx.obj


def load_registry(settings: Settings) -> Registry:
    try:
        return Registry.load(settings.registry_path)
    except DeployError as e:
        output_error(e.message)
        raise typer.Exit(1)


def require_known(registry: Registry, name: str) -> None:
    if name not in registry:
        output_error(f"Unknown component: {name}")
        typer.echo("Use 'omeka-deploy install list' to see available components")
        raise typer.Exit(1)


def print_results(results: list[InstallResult]) -> None:
    for result in results:
        typer.echo(f"  - {result.name}: {result.status.value}")
        for warning in result.warnings:
            typer.secho(f"    {warning}", fg=typer.colors.YELLOW)


@app.callback()
def main(
    ctx: typer.Context,
    root: Optional[Path] = typer.Option(None, "--root", help="Application root (default: $OMEKA_ROOT or /var/www/html)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug output"),
):
    """Omeka S deployment tooling."""
    configure_logging(verbose)
    overrides = {"root": root} if root is not None else {}
    try:
        ctx.obj = Settings(**overrides)
    except ValidationError as e:
        output_error(f"Invalid settings: {e}")
        raise typer.Exit(1)


@app.command("list")
def list_components(ctx: typer.Context):
    """List registered modules and themes."""
    registry = load_registry(get_settings(ctx))

    typer.echo("Pre-installed modules (included by default):")
    for entry in registry.entries(ComponentKind.MODULE):
        if entry.preinstalled:
            typer.echo(f"  - {entry.name}")

    for kind in (ComponentKind.MODULE, ComponentKind.THEME):
        for host in SourceHost:
            entries = [e for e in registry.entries(kind) if e.host == host]
            if not entries:
                continue
            typer.echo("")
            typer.echo(f"Available {kind.value}s ({'GitHub' if host == SourceHost.GITHUB else 'GitLab'}):")
            for entry in entries:
                suffix = " (pre-installed)" if entry.preinstalled else ""
                requires = f" requires: {', '.join(entry.dependencies)}" if entry.dependencies else ""
                typer.echo(f"  - {entry.name} [branch: {entry.revision}]{requires}{suffix}")


@app.command("install")
def install(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Module or theme name, or 'list'"),
    revision: Optional[str] = typer.Argument(None, help="Override the default branch/tag"),
):
    """Install a module or theme plus its missing dependencies."""
    if name == "list":
        list_components(ctx)
        return

    settings = get_settings(ctx)
    registry = load_registry(settings)
    installer = ComponentInstaller(registry, settings)

    require_known(registry, name)
    installer.layout.ensure_directories()

    result = run_async(installer.install(name, revision))
    print_results([result])

    entry = registry.lookup(name)
    typer.echo("")
    typer.echo("Don't forget to:")
    typer.echo(f"  1. Activate the {entry.kind.value} (and any dependencies) in the Omeka S admin panel")
    typer.echo(f"  2. Configure the {entry.kind.value} as needed")
    if entry.dependencies:
        typer.echo(f"Note: Dependencies: {' '.join(entry.dependencies)}")
        typer.echo("  Make sure to activate them in the correct order in Omeka S admin.")


@app.command("update")
def update(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Module or theme name, or 'all'"),
    revision: Optional[str] = typer.Argument(None, help="Override the default branch/tag"),
):
    """Re-install a module or theme (or every installed one) at a new revision."""
    settings = get_settings(ctx)
    registry = load_registry(settings)
    installer = ComponentInstaller(registry, settings)

    if name != "all":
        require_known(registry, name)
    installer.layout.ensure_directories()

    if name == "all":
        results = run_async(installer.update_all(revision))
    else:
        results = [run_async(installer.update(name, revision))]
    print_results(results)

    typer.echo("")
    typer.echo("Don't forget to:")
    typer.echo("  1. Clear Omeka S cache if needed")
    typer.echo("  2. Check the components in the Omeka S admin panel")


@app.command("update-core")
def update_core(
    ctx: typer.Context,
    version: str = typer.Argument("latest", help="Target version (e.g. 4.1.1) or 'latest'"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be done without making changes"),
):
    """Update the Omeka S core, keeping files/, config, modules and themes."""
    updater = CoreUpdater(get_settings(ctx))
    run_async(updater.run(version, dry_run=dry_run))


@app.command(
    "bootstrap",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def bootstrap(
    ctx: typer.Context,
    command: Optional[List[str]] = typer.Argument(None, help="Command to exec afterwards (e.g. php-fpm)"),
):
    """Container entrypoint: install the core on first run, then default modules and themes."""
    settings = get_settings(ctx)
    registry = load_registry(settings)
    report = run_async(CoreBootstrapper(settings, registry).run())

    for warning in report.warnings:
        typer.secho(warning, fg=typer.colors.YELLOW, err=True)

    argv = list(command or []) + list(ctx.args)
    if argv:
        logger.info(f"Starting {argv[0]}...")
        os.execvp(argv[0], argv)


if __name__ == "__main__":
    app()
