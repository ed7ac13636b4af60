"""Command line interface for dep-advisor.

Commands
--------
* ``upgrade`` - propose constraint upgrades for dependencies in package.json
* ``scan`` - check declared dependencies against advisory databases
* ``check`` - test whether a version satisfies a constraint
* ``config`` - show the merged configuration
* ``info`` - show package metadata

Exit codes: 0 on success, 1 on usage or input errors, 2 when ``scan
--fail-on-findings`` found a vulnerable package.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import click

from . import __init__conf__
from .advisor import Advisor, load_manifest_constraints, write_scan_json, write_upgrades_json
from .config import get_advisor_settings
from .config_show import display_config
from .errors import AdvisorError
from .manifest import find_package_json
from .report import render_summary, render_upgrade_table
from .semver import is_compatible

logger = logging.getLogger(__name__)

EXIT_FINDINGS = 2
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _resolve_manifest(manifest: Path | None) -> Path:
    try:
        return manifest if manifest is not None else find_package_json()
    except AdvisorError as exc:
        raise click.ClickException(str(exc)) from exc


def _load_constraints(manifest: Path | None, include_dev: bool) -> dict[str, str]:
    path = _resolve_manifest(manifest)
    try:
        return load_manifest_constraints(path, include_dev=include_dev)
    except AdvisorError as exc:
        raise click.ClickException(str(exc)) from exc


def _make_advisor(ctx: click.Context, **overrides: Any) -> Advisor:
    factory = ctx.obj["advisor_factory"]
    try:
        return factory(ctx.obj["settings"], **overrides)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__init__conf__.version, prog_name=__init__conf__.shell_command)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Logging level (defaults to the [logging] level setting).",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """Propose dependency upgrades and scan for known vulnerabilities."""
    ctx.ensure_object(dict)
    if "settings" not in ctx.obj:
        ctx.obj["settings"] = get_advisor_settings()
    ctx.obj.setdefault("advisor_factory", Advisor.from_settings)
    _configure_logging(log_level or ctx.obj["settings"].log_level)


@cli.command("upgrade")
@click.argument("packages", nargs=-1)
@click.option("--all", "upgrade_all", is_flag=True, help="Plan upgrades for every declared dependency.")
@click.option("--manifest", type=click.Path(path_type=Path), default=None, help="package.json or its directory.")
@click.option("--registry", "registry_url", default=None, help="npm registry URL.")
@click.option("--output", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Write the plan as JSON.")
@click.option("--dev/--no-dev", "include_dev", default=True, show_default=True, help="Include devDependencies.")
@click.pass_context
def upgrade_command(
    ctx: click.Context,
    packages: tuple[str, ...],
    upgrade_all: bool,
    manifest: Path | None,
    registry_url: str | None,
    output: Path | None,
    include_dev: bool,
) -> None:
    """Propose upgraded constraints for PACKAGES (or --all)."""
    if not packages and not upgrade_all:
        click.echo("Name one or more packages, or pass --all to plan every dependency.", err=True)
        ctx.exit(1)

    constraints = _load_constraints(manifest, include_dev)
    if packages and not upgrade_all:
        for name in packages:
            if name not in constraints:
                click.echo(f"Warning: {name} is not declared in the manifest", err=True)
        constraints = {name: constraints[name] for name in packages if name in constraints}

    result = _make_advisor(ctx, registry_url=registry_url).plan_upgrades(constraints)
    click.echo(render_upgrade_table(result))
    if output is not None:
        write_upgrades_json(result.entries, output)
        click.echo(f"Plan written to {output}")


@cli.command("scan")
@click.option("--manifest", type=click.Path(path_type=Path), default=None, help="package.json or its directory.")
@click.option("--dev/--no-dev", "include_dev", default=True, show_default=True, help="Include devDependencies.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "table"], case_sensitive=False),
    default="text",
    show_default=True,
    help="Layout of the per-package reports.",
)
@click.option("--output", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Write results as JSON.")
@click.option("--fail-on-findings", is_flag=True, help=f"Exit with {EXIT_FINDINGS} when anything is vulnerable.")
@click.pass_context
def scan_command(
    ctx: click.Context,
    manifest: Path | None,
    include_dev: bool,
    output_format: str,
    output: Path | None,
    fail_on_findings: bool,
) -> None:
    """Scan declared dependencies for known vulnerabilities."""
    constraints = _load_constraints(manifest, include_dev)
    result = _make_advisor(ctx).scan(constraints)
    detail = "table" if output_format.lower() == "table" else "text"
    click.echo(render_summary(result, detail=detail))
    if output is not None:
        write_scan_json(result, output)
        click.echo(f"Results written to {output}")
    if fail_on_findings and result.has_findings:
        ctx.exit(EXIT_FINDINGS)


@cli.command("check")
@click.argument("version")
@click.argument("constraint")
def check_command(version: str, constraint: str) -> None:
    """Print whether VERSION satisfies CONSTRAINT."""
    try:
        compatible = is_compatible(version, constraint)
    except AdvisorError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo("true" if compatible else "false")


@cli.command("config")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
)
@click.option("--section", default=None, help="Only show this section.")
def config_command(output_format: str, section: str | None) -> None:
    """Show the merged configuration."""
    display_config(format=output_format, section=section)


@cli.command("info")
def info_command() -> None:
    """Show package metadata."""
    __init__conf__.print_info()


def main() -> None:
    """Console script entry point."""
    cli(prog_name=__init__conf__.shell_command)


__all__ = [
    "cli",
    "main",
]
