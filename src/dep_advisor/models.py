"""Domain models for upgrade planning and vulnerability scans (dataclasses).

Purpose
-------
Define core data structures for the advisor's domain layer. These are pure
dataclasses used for internal business logic.

For external data serialization, use the Pydantic schemas in schemas.py.

Contents
--------
* :class:`Action` - Enumeration of recommended actions for a dependency
* :class:`DependencyInfo` - A dependency declared in package.json
* :class:`UpgradeEntry` - Upgrade recommendation for one dependency
* :class:`UpgradeResult` - Complete upgrade plan
* :class:`Vulnerability` - One advisory affecting a package version
* :class:`VulnerabilityReport` - All advisories found for one package
* :class:`ScanResult` - Complete vulnerability scan

Data Flow Pattern
-----------------
External Input → Pydantic (validate) → Dataclass (domain) → Pydantic (serialize) → Output

System Role
-----------
Provides the canonical data structures that flow through the advisor
pipeline. These dataclasses are dependency-free and used for pure business
logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class Action(str, Enum):
    """Actions that can be recommended for a dependency.

    Attributes:
        UPDATE: A newer eligible version exists.
        NONE: The declared version is already the newest eligible one.
        NO_UPGRADE: No published version qualifies for the constraint.
        CHECK_MANUALLY: The constraint or the registry lookup failed.
    """

    UPDATE = "update"
    NONE = "none"
    NO_UPGRADE = "no eligible upgrade"
    CHECK_MANUALLY = "check manually"


@dataclass(frozen=True, slots=True)
class DependencyInfo:
    """A single dependency declared in package.json.

    Attributes:
        name: The package name, scoped names included (``@scope/pkg``).
        raw_spec: The declared constraint string, e.g. "^1.2.3".
        source: The section it was found in, e.g. "dependencies".
    """

    name: str
    raw_spec: str
    source: str = ""


@dataclass(frozen=True, slots=True)
class UpgradeEntry:
    """Upgrade recommendation for one dependency.

    Attributes:
        package: The package name.
        current: The declared constraint.
        proposed: The re-constrained upgrade, e.g. "^17.0.2", or None.
        action: The recommended action.
        error: Failure message when ``action`` is CHECK_MANUALLY.
    """

    package: str
    current: str
    proposed: str | None
    action: Action
    error: str | None = None


def _empty_upgrade_list() -> list[UpgradeEntry]:
    """Return an empty UpgradeEntry list for dataclass defaults."""
    return []


@dataclass(slots=True)
class UpgradeResult:
    """Complete upgrade plan for a manifest.

    Attributes:
        entries: One entry per analysed dependency, sorted by package name.
        total_dependencies: Number of dependencies analysed.
        update_count: Entries with an upgrade available.
        check_manually_count: Entries that failed to parse or resolve.
    """

    entries: list[UpgradeEntry] = field(default_factory=_empty_upgrade_list)
    total_dependencies: int = 0
    update_count: int = 0
    check_manually_count: int = 0

    @property
    def upgrades(self) -> list[UpgradeEntry]:
        """Return only the entries with an upgrade."""
        return [entry for entry in self.entries if entry.action is Action.UPDATE]


@dataclass(frozen=True, slots=True)
class Vulnerability:
    """One advisory that affects a package version.

    Attributes:
        id: Advisory identifier (GHSA id or CVE id).
        package: The affected package.
        version: The version that was checked.
        description: Human-readable summary.
        severity: Severity label as reported by the source.
        published: Publication time, if known.
        references: Reference URLs.
        source: Which database reported it ("github" or "nvd").
    """

    id: str
    package: str
    version: str
    description: str = ""
    severity: str = "UNKNOWN"
    published: datetime | None = None
    references: tuple[str, ...] = ()
    source: str = ""


def _empty_vulnerability_list() -> list[Vulnerability]:
    """Return an empty Vulnerability list for dataclass defaults."""
    return []


def _utc_now() -> datetime:
    """Return the current UTC time for dataclass defaults."""
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class VulnerabilityReport:
    """All advisories found for one package version.

    Attributes:
        package: The package name.
        version: The declared version that was checked.
        vulnerabilities: Advisories affecting that version.
        timestamp: When the report was produced.
    """

    package: str
    version: str
    vulnerabilities: list[Vulnerability] = field(default_factory=_empty_vulnerability_list)
    timestamp: datetime = field(default_factory=_utc_now)

    @property
    def has_vulnerabilities(self) -> bool:
        """Return True if any advisory affects the version."""
        return bool(self.vulnerabilities)


def _empty_report_map() -> dict[str, VulnerabilityReport]:
    """Return an empty report mapping for dataclass defaults."""
    return {}


def _empty_error_map() -> dict[str, str]:
    """Return an empty error mapping for dataclass defaults."""
    return {}


@dataclass(slots=True)
class ScanResult:
    """Complete vulnerability scan of a manifest.

    Attributes:
        reports: Report per successfully scanned package.
        errors: Failure message per package that could not be scanned.
    """

    reports: dict[str, VulnerabilityReport] = field(default_factory=_empty_report_map)
    errors: dict[str, str] = field(default_factory=_empty_error_map)

    @property
    def vulnerable_packages(self) -> list[str]:
        """Return sorted names of packages with at least one advisory."""
        return sorted(name for name, report in self.reports.items() if report.has_vulnerabilities)

    @property
    def clean_packages(self) -> list[str]:
        """Return sorted names of packages without advisories."""
        return sorted(name for name, report in self.reports.items() if not report.has_vulnerabilities)

    @property
    def has_findings(self) -> bool:
        """Return True if any package is vulnerable."""
        return bool(self.vulnerable_packages)


__all__ = [
    "Action",
    "DependencyInfo",
    "ScanResult",
    "UpgradeEntry",
    "UpgradeResult",
    "Vulnerability",
    "VulnerabilityReport",
]
