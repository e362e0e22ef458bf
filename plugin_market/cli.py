"""CLI entry point: plugin-market.

Subcommands:
    plugin-market deps [--json]                 # print the dependency snapshot
    plugin-market install left-pad=^1.0.0 ...   # apply overrides, install if needed
    plugin-market install left-pad=             # remove a dependency
    plugin-market resolve echo                  # latest version of a short plugin name
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import click
from pydantic import ValidationError

from plugin_market.core.config import InstallerConfig
from plugin_market.core.exceptions import MarketError
from plugin_market.core.logging import setup_logging
from plugin_market.installer import Installer

T = TypeVar("T")


def parse_overrides(specs: tuple[str, ...]) -> dict[str, str]:
    """Parse ``name=range`` pairs; an empty range means removal.

    Scoped names keep their leading ``@``: ``@scope/pkg=^1.0.0``.
    """
    overrides: dict[str, str] = {}
    for spec in specs:
        name, sep, request = spec.partition("=")
        name = name.strip()
        if not sep or not name:
            raise click.BadParameter(f"expected NAME=RANGE, got {spec!r}")
        overrides[name] = request.strip()
    return overrides


def _run(config: InstallerConfig, fn: Callable[[Installer], Awaitable[T]]) -> T:
    async def _main() -> T:
        async with Installer(config) as installer:
            return await fn(installer)

    try:
        return asyncio.run(_main())
    except MarketError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.option(
    "-C",
    "--base-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Project root holding package.json",
)
@click.option("--endpoint", default=None, help="Registry URL (auto-discovered if omitted)")
@click.option("--timeout", type=float, default=None, help="Registry request timeout in seconds")
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.pass_context
def main(
    ctx: click.Context,
    base_dir: Path | None,
    endpoint: str | None,
    timeout: float | None,
    verbose: bool,
) -> None:
    """plugin-market: inspect and install project plugin dependencies."""
    setup_logging("DEBUG" if verbose else None)
    try:
        ctx.obj = InstallerConfig.from_env(base_dir=base_dir, endpoint=endpoint, timeout=timeout)
    except ValidationError as exc:
        raise click.UsageError(str(exc)) from exc


@main.command("deps")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
@click.pass_obj
def deps(config: InstallerConfig, as_json: bool) -> None:
    """Show requested, installed and latest versions of every dependency."""
    snapshot = _run(config, lambda installer: installer.get_deps())

    if as_json:
        click.echo(json.dumps({name: dep.to_dict() for name, dep in snapshot.items()}, indent=2))
        return

    if not snapshot:
        click.echo("No dependencies declared.")
        return

    width = max(len(name) for name in snapshot)
    for name, dep in sorted(snapshot.items()):
        if dep.workspace:
            state = "workspace"
        elif dep.invalid:
            state = "invalid range"
        elif dep.resolved is None:
            state = "not installed"
        else:
            state = dep.resolved
        latest = f"  (latest {dep.latest})" if dep.latest and dep.latest != dep.resolved else ""
        click.echo(f"  {name:<{width}}  {dep.request:<12} {state}{latest}")


@main.command("install")
@click.argument("specs", nargs=-1)
@click.option("--force", is_flag=True, help="Run the package manager even if nothing changed")
@click.pass_obj
def install(config: InstallerConfig, specs: tuple[str, ...], force: bool) -> None:
    """Apply NAME=RANGE overrides and install when required."""
    overrides = parse_overrides(specs)
    code = _run(config, lambda installer: installer.install(overrides, force))
    if code:
        click.echo(f"Install failed with exit code {code}", err=True)
        sys.exit(code if code > 0 else 1)
    click.echo("Dependencies are up to date.")


@main.command("resolve")
@click.argument("name")
@click.pass_obj
def resolve(config: InstallerConfig, name: str) -> None:
    """Find the full package name and latest version for NAME."""

    async def _find(installer: Installer) -> dict[str, str] | None:
        return await installer.find_version(installer.resolve_name(name))

    found = _run(config, _find)
    if not found:
        click.echo(f"No package found for {name!r}", err=True)
        sys.exit(1)
    for full_name, version in found.items():
        click.echo(f"{full_name}@{version}")
