"""Display of the merged configuration for the ``config`` command.

Secrets (``github_token``, ``nvd_api_key``) are masked before printing.
"""

from __future__ import annotations

import json
from typing import Any, cast

import click

from .config import get_config

_SECRET_KEYS = frozenset({"github_token", "nvd_api_key"})


def _mask_secrets(data: Any) -> Any:
    """Return a copy of ``data`` with non-empty secret values replaced."""
    if isinstance(data, dict):
        masked: dict[str, Any] = {}
        for key, value in cast(dict[str, Any], data).items():
            if key in _SECRET_KEYS and value:
                masked[key] = "***"
            else:
                masked[key] = _mask_secrets(value)
        return masked
    return data


def _format_value(value: Any) -> str:
    """Format a value the way it would appear in a TOML file."""
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    if isinstance(value, str):
        return f'"{value}"'
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _render_human(data: dict[str, Any]) -> str:
    lines: list[str] = []
    for section_name, section_data in data.items():
        lines.append(f"[{section_name}]")
        if isinstance(section_data, dict):
            for key, value in cast(dict[str, Any], section_data).items():
                lines.append(f"  {key} = {_format_value(value)}")
        else:
            lines.append(f"  {_format_value(section_data)}")
        lines.append("")
    return "\n".join(lines).rstrip()


def display_config(*, format: str = "human", section: str | None = None) -> None:
    """Print the merged configuration.

    Args:
        format: "human" for a TOML-like listing, "json" for JSON.
        section: Only print this section.

    Raises:
        click.ClickException: If ``section`` is missing or empty.
    """
    data: dict[str, Any] = _mask_secrets(get_config().as_dict())
    if section:
        if not data.get(section):
            raise click.ClickException(f"Section '{section}' not found or empty")
        data = {section: data[section]}

    if format.lower() == "json":
        click.echo(json.dumps(data, indent=2))
    else:
        click.echo(_render_human(data))


__all__ = [
    "display_config",
]
