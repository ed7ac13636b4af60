"""Reader for dependencies declared in package.json.

Purpose
-------
Locate and load a package.json file and collect the declared dependency
constraints from its dependency sections.

Contents
--------
* :func:`find_package_json` - Walk up from a directory to the nearest manifest
* :func:`load_package_json` - Load and validate a package.json file
* :func:`extract_dependencies` - Collect declared dependencies
* :func:`declared_constraints` - Map package names to raw constraints
* :class:`DependencySource` - Enum of known dependency sections

System Role
-----------
The first stage of the advisor pipeline. Produces the package name to raw
constraint mapping consumed by the upgrade planner and the scanner.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

from .errors import ManifestError
from .models import DependencyInfo

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"


class DependencySource(str, Enum):
    """Sections of package.json that declare dependencies, in priority order."""

    DEPENDENCIES = "dependencies"
    DEV_DEPENDENCIES = "devDependencies"
    PEER_DEPENDENCIES = "peerDependencies"
    OPTIONAL_DEPENDENCIES = "optionalDependencies"


def find_package_json(start: Path | str | None = None) -> Path:
    """Find the nearest package.json at or above ``start``.

    Args:
        start: Directory to start from. Defaults to the current directory.

    Returns:
        Path to the package.json file.

    Raises:
        ManifestError: If no package.json exists in ``start`` or its parents.
    """
    current = Path(start) if start is not None else Path.cwd()
    current = current.resolve()
    for directory in (current, *current.parents):
        candidate = directory / MANIFEST_NAME
        if candidate.is_file():
            logger.debug("Found manifest at %s", candidate)
            return candidate
    raise ManifestError(f"{MANIFEST_NAME} not found in {current} or any parent directory")


def load_package_json(path: Path | str) -> dict[str, Any]:
    """Load and parse a package.json file.

    Args:
        path: Path to package.json, or to the directory containing it.

    Returns:
        Parsed JSON content.

    Raises:
        ManifestError: If the file is missing or unreadable, not valid UTF-8 JSON,
            or not an object.
    """
    path = Path(path)
    if path.is_dir():
        path = path / MANIFEST_NAME
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as exc:
        raise ManifestError(f"Manifest not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Invalid JSON in {path}: {exc.msg} (line {exc.lineno})") from exc
    except UnicodeDecodeError as exc:
        raise ManifestError(f"Manifest {path} is not valid UTF-8: {exc.reason} at byte {exc.start}") from exc
    except OSError as exc:
        raise ManifestError(f"Cannot read manifest {path}: {exc.strerror or exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError(f"Manifest {path} must contain a JSON object")
    return cast(dict[str, Any], data)


def _sections(include_dev: bool) -> list[DependencySource]:
    """Return the sections to read, in priority order."""
    return [source for source in DependencySource if include_dev or source is not DependencySource.DEV_DEPENDENCIES]


def _extract_section(data: dict[str, Any], source: DependencySource) -> list[DependencyInfo]:
    """Extract dependencies from one section.

    Args:
        data: Parsed package.json.
        source: The section to read.

    Returns:
        Dependencies with string constraints; other values are skipped.
    """
    section = data.get(source.value)
    if not isinstance(section, dict):
        return []
    result: list[DependencyInfo] = []
    for name, spec in cast(dict[str, Any], section).items():
        if not isinstance(spec, str):
            logger.warning("Skipping %s in %s: constraint is not a string", name, source.value)
            continue
        result.append(DependencyInfo(name=name, raw_spec=spec.strip(), source=source.value))
    return result


def extract_dependencies(data: dict[str, Any], *, include_dev: bool = True) -> list[DependencyInfo]:
    """Extract declared dependencies from package.json content.

    A name declared in several sections is reported once, from the first
    section in :class:`DependencySource` order.

    Args:
        data: Parsed package.json.
        include_dev: Whether to read ``devDependencies``.

    Returns:
        Declared dependencies.
    """
    seen: set[str] = set()
    result: list[DependencyInfo] = []
    for source in _sections(include_dev):
        for dep in _extract_section(data, source):
            if dep.name in seen:
                continue
            seen.add(dep.name)
            result.append(dep)
    logger.debug("Extracted %d dependencies", len(result))
    return result


def declared_constraints(dependencies: Iterable[DependencyInfo]) -> dict[str, str]:
    """Return a mapping of package name to raw declared constraint."""
    return {dep.name: dep.raw_spec for dep in dependencies}


__all__ = [
    "DependencySource",
    "MANIFEST_NAME",
    "declared_constraints",
    "extract_dependencies",
    "find_package_json",
    "load_package_json",
]
