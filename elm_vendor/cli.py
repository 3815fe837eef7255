"""CLI entry point for elm-vendor."""

from __future__ import annotations

import functools
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from .catalog import ElmHomeCatalog, VersionCatalog, default_elm_home
from .drift import format_report
from .errors import DriftDetected, VendorError
from .pipeline import check, init_project, install, unvendor, vendor

INIT_PROMPT = (
    "I'm going to extract all the user-set fields from elm.json, "
    "and add them to elm-vendor's registry."
)


class VendorFailure(click.ClickException):
    """A VendorError reported with its own exit code."""

    def __init__(self, error: VendorError) -> None:
        super().__init__(str(error))
        self.exit_code = error.exit_code


def _reports_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except VendorError as exc:
            raise VendorFailure(exc) from exc

    return wrapper


def _catalog() -> VersionCatalog | None:
    """The local Elm package cache, when there is one."""
    elm_home = default_elm_home()
    return ElmHomeCatalog(elm_home) if elm_home.is_dir() else None


@click.group()
@click.version_option(package_name="elm-vendor")
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Project directory containing elm.json.",
)
@click.pass_context
def cli(ctx: click.Context, root: Path) -> None:
    """Keep elm.json in sync with vendored Elm packages."""
    ctx.obj = root


@cli.command()
@click.option(
    "--format",
    "registry_format",
    type=click.Choice(["json", "toml"]),
    default="json",
    show_default=True,
    help="File format of the registry.",
)
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_obj
@_reports_errors
def init(root: Path, registry_format: str, yes: bool) -> None:
    """Record elm.json's current fields in a new registry."""
    if not yes:
        click.echo(INIT_PROMPT)
        if not click.confirm("Sound good?"):
            return
    init_project(root, registry_format)
    click.echo()
    click.echo("Next steps:")
    click.echo("  1. Copy a package's source tree into your project")
    click.echo("  2. Vendor it:")
    click.echo("       elm-vendor vendor path/to/package")


@cli.command("vendor")
@click.argument("directory", required=False, type=click.Path(path_type=Path))
@click.option(
    "--allow-dirty",
    is_flag=True,
    help="Run even if elm.json has uncommitted changes.",
)
@click.pass_obj
@_reports_errors
def vendor_cmd(root: Path, directory: Path | None, allow_dirty: bool) -> None:
    """Vendor DIRECTORY, then resync every vendored package into elm.json."""
    vendor(root, directory, catalog=_catalog(), require_clean=not allow_dirty)


@cli.command("unvendor")
@click.argument("directory", required=False, type=click.Path(path_type=Path))
@click.pass_obj
@_reports_errors
def unvendor_cmd(root: Path, directory: Path | None) -> None:
    """Stop vendoring DIRECTORY (or everything) and restore elm.json."""
    unvendor(root, directory, catalog=_catalog())


@cli.command("check")
@click.pass_obj
@_reports_errors
def check_cmd(root: Path) -> None:
    """Fail if elm.json has drifted from the registry. Run this in CI."""
    report = check(root, catalog=_catalog())
    if report.is_empty:
        click.echo("  No drift")
        return
    for line in format_report(report):
        click.echo(line, err=True)
    raise DriftDetected(report)


@cli.command("install")
@click.argument("dependency")
@click.option(
    "--version",
    "version",
    default=None,
    help='Constraint the installed version must satisfy, e.g. ">=1.1 <2.0".',
)
@click.pass_obj
@_reports_errors
def install_cmd(root: Path, dependency: str, version: str | None) -> None:
    """Install DEPENDENCY with elm or lamdera and record it."""
    install(root, dependency, version)
