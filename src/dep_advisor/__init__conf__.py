"""Static package metadata and configuration identifiers.

Purpose
-------
Keep the distribution name, version and the lib_layered_config identifiers
in one place so the CLI, the HTTP user agent and the configuration loader
agree on them.

Contents
--------
* ``name``, ``title``, ``version``, ``shell_command``
* ``LAYEREDCONF_VENDOR``, ``LAYEREDCONF_APP``, ``LAYEREDCONF_SLUG``
* :func:`print_info` - echo the metadata block
"""

from __future__ import annotations

import click

name = "dep_advisor"
title = "Dependency upgrade and vulnerability advisor for npm manifests"
version = "0.1.0"
shell_command = "dep-advisor"

LAYEREDCONF_VENDOR = "dep-advisor"
LAYEREDCONF_APP = "dep-advisor"
LAYEREDCONF_SLUG = "dep-advisor"


def print_info() -> None:
    """Echo the package metadata in a small aligned block."""
    fields = (
        ("name", name),
        ("title", title),
        ("version", version),
        ("shell_command", shell_command),
    )
    pad = max(len(label) for label, _ in fields)
    click.echo(f"Info for {name}:\n")
    for label, value in fields:
        click.echo(f"    {label.ljust(pad)} = {value}")


__all__ = [
    "LAYEREDCONF_APP",
    "LAYEREDCONF_SLUG",
    "LAYEREDCONF_VENDOR",
    "name",
    "print_info",
    "shell_command",
    "title",
    "version",
]
