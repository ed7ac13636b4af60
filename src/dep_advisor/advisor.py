"""Upgrade planning and vulnerability scanning for a set of dependencies.

Purpose
-------
Combine the manifest reader, the registry client, the upgrade selector and
the advisory sources into the two operations the CLI exposes: plan
upgrades, and scan for vulnerabilities.

Contents
--------
* :class:`Advisor` - Holds the clients and runs both operations
* :func:`plan_manifest_upgrades` / :func:`scan_manifest` - File-level entry points
* :func:`write_upgrades_json` / :func:`write_scan_json` - JSON output

Partial failure
---------------
A malformed declared constraint, a failed registry lookup or a failed
advisory lookup affects only its own package. Upgrade plans mark such a
package ``CHECK_MANUALLY`` with the message; scans record it in
:attr:`ScanResult.errors <dep_advisor.models.ScanResult.errors>`.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx

from .advisories import AdvisorySource, GitHubAdvisoryClient, NvdClient, VulnerabilityScanner
from .errors import AdvisorError, MalformedConstraint, RegistryError
from .manifest import declared_constraints, extract_dependencies, load_package_json
from .models import Action, ScanResult, UpgradeEntry, UpgradeResult, VulnerabilityReport
from .registry import DEFAULT_CONCURRENCY, DEFAULT_REGISTRY, DEFAULT_TIMEOUT, RegistryClient, RegistryResult
from .schemas import ScanResultSchema, UpgradeEntrySchema, VulnerabilityReportSchema, VulnerabilitySchema
from .semver import parse_constraint
from .upgrade import UpgradeStatus, select_best_upgrade_from_strings

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from .config import AdvisorSettings

logger = logging.getLogger(__name__)

_STATUS_ACTIONS: dict[UpgradeStatus, Action] = {
    UpgradeStatus.UPGRADE: Action.UPDATE,
    UpgradeStatus.ALREADY_LATEST: Action.NONE,
    UpgradeStatus.NO_ELIGIBLE_UPGRADE: Action.NO_UPGRADE,
}


def _manual_entry(package: str, current: str, error: AdvisorError) -> UpgradeEntry:
    logger.warning("Cannot plan upgrade for %s: %s", package, error)
    return UpgradeEntry(package=package, current=current, proposed=None, action=Action.CHECK_MANUALLY, error=str(error))


def _entry_for(package: str, current: str, result: RegistryResult) -> UpgradeEntry:
    """Decide the upgrade entry for one package from its registry result."""
    if result.error:
        return _manual_entry(package, current, RegistryError(package, result.error))
    try:
        decision = select_best_upgrade_from_strings(current, result.versions)
    except MalformedConstraint as exc:
        return _manual_entry(package, current, exc)
    return UpgradeEntry(
        package=package,
        current=current,
        proposed=decision.new_constraint,
        action=_STATUS_ACTIONS[decision.status],
    )


def _count(entries: Sequence[UpgradeEntry], action: Action) -> int:
    return sum(1 for entry in entries if entry.action is action)


@dataclass
class Advisor:
    """Runs upgrade planning and vulnerability scans.

    Attributes:
        github_token: Optional GitHub token for the advisory database.
        nvd_api_key: Optional NVD API key.
        registry_url: npm registry base URL.
        timeout: Request timeout in seconds.
        concurrency: Maximum concurrent requests.
        sources: Advisory sources; GitHub and NVD when None.
        transport: Optional httpx transport shared by the default clients.
    """

    github_token: str | None = field(default=None, repr=False)
    nvd_api_key: str | None = field(default=None, repr=False)
    registry_url: str = DEFAULT_REGISTRY
    timeout: float = DEFAULT_TIMEOUT
    concurrency: int = DEFAULT_CONCURRENCY
    sources: list[AdvisorySource] | None = field(default=None, repr=False)
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)
    registry: RegistryClient = field(init=False, repr=False)
    scanner: VulnerabilityScanner = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate settings and build the clients."""
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.concurrency <= 0:
            raise ValueError(f"concurrency must be positive, got {self.concurrency}")

        self.registry = RegistryClient(registry_url=self.registry_url, timeout=self.timeout, transport=self.transport)
        if self.sources is None:
            self.sources = [
                GitHubAdvisoryClient(token=self.github_token or None, timeout=self.timeout, transport=self.transport),
                NvdClient(api_key=self.nvd_api_key or None, timeout=self.timeout, transport=self.transport),
            ]
        self.scanner = VulnerabilityScanner(sources=self.sources)

    @classmethod
    def from_settings(cls, settings: AdvisorSettings, **overrides: Any) -> Advisor:
        """Build an Advisor from resolved settings, with keyword overrides."""
        values: dict[str, Any] = {
            "github_token": settings.github_token or None,
            "nvd_api_key": settings.nvd_api_key or None,
            "registry_url": settings.registry_url,
            "timeout": settings.timeout,
            "concurrency": settings.concurrency,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    async def plan_upgrades_async(self, constraints: Mapping[str, str]) -> UpgradeResult:
        """Plan an upgrade for every declared constraint.

        Args:
            constraints: Package name to declared constraint.

        Returns:
            One entry per package, sorted by package name.
        """
        logger.info("Planning upgrades for %d packages", len(constraints))
        entries: list[UpgradeEntry] = []
        resolvable: dict[str, str] = {}
        for package, current in constraints.items():
            try:
                parse_constraint(current)
            except MalformedConstraint as exc:
                entries.append(_manual_entry(package, current, exc))
                continue
            resolvable[package] = current

        results = await self.registry.fetch_many_async(resolvable, concurrency=self.concurrency)
        entries.extend(_entry_for(package, current, results[package]) for package, current in resolvable.items())
        entries.sort(key=lambda entry: entry.package)

        return UpgradeResult(
            entries=entries,
            total_dependencies=len(entries),
            update_count=_count(entries, Action.UPDATE),
            check_manually_count=_count(entries, Action.CHECK_MANUALLY),
        )

    def plan_upgrades(self, constraints: Mapping[str, str]) -> UpgradeResult:
        """Synchronous wrapper for :meth:`plan_upgrades_async`."""
        return asyncio.run(self.plan_upgrades_async(constraints))

    async def scan_async(self, constraints: Mapping[str, str]) -> ScanResult:
        """Scan every declared dependency for known vulnerabilities.

        The version checked is the one named by the declared constraint
        (``^4.17.19`` is checked as ``4.17.19``).

        Args:
            constraints: Package name to declared constraint.

        Returns:
            A report per scanned package and an error per failed one.
        """
        logger.info("Scanning %d packages", len(constraints))
        result = ScanResult()
        semaphore = asyncio.Semaphore(self.concurrency)

        async def scan_one(package: str, current: str) -> None:
            try:
                version = str(parse_constraint(current).version)
                async with semaphore:
                    found = await self.scanner.scan_package_async(package, version)
            except AdvisorError as exc:
                logger.warning("Cannot scan %s: %s", package, exc)
                result.errors[package] = str(exc)
                return
            result.reports[package] = VulnerabilityReport(package=package, version=version, vulnerabilities=found)

        await asyncio.gather(*(scan_one(package, current) for package, current in constraints.items()))
        logger.info(
            "Scan finished: %d vulnerable, %d clean, %d failed",
            len(result.vulnerable_packages),
            len(result.clean_packages),
            len(result.errors),
        )
        return result

    def scan(self, constraints: Mapping[str, str]) -> ScanResult:
        """Synchronous wrapper for :meth:`scan_async`."""
        return asyncio.run(self.scan_async(constraints))


def load_manifest_constraints(manifest_path: Path | str, *, include_dev: bool = True) -> dict[str, str]:
    """Read package.json and return package name to declared constraint.

    Raises:
        ManifestError: If the manifest cannot be read.
    """
    path = Path(manifest_path)
    logger.info("Reading %s", path)
    constraints = declared_constraints(extract_dependencies(load_package_json(path), include_dev=include_dev))
    logger.info("Found %d dependencies", len(constraints))
    return constraints


def plan_manifest_upgrades(
    manifest_path: Path | str,
    *,
    include_dev: bool = True,
    advisor: Advisor | None = None,
) -> UpgradeResult:
    """Plan upgrades for every dependency declared in a package.json."""
    constraints = load_manifest_constraints(manifest_path, include_dev=include_dev)
    return (advisor or Advisor()).plan_upgrades(constraints)


def scan_manifest(
    manifest_path: Path | str,
    *,
    include_dev: bool = True,
    advisor: Advisor | None = None,
) -> ScanResult:
    """Scan every dependency declared in a package.json."""
    constraints = load_manifest_constraints(manifest_path, include_dev=include_dev)
    return (advisor or Advisor()).scan(constraints)


def entry_to_dict(entry: UpgradeEntry) -> dict[str, Any]:
    """Convert an UpgradeEntry to a JSON-ready dictionary."""
    schema = UpgradeEntrySchema(
        package=entry.package,
        current=entry.current,
        proposed=entry.proposed,
        action=entry.action,
        error=entry.error,
    )
    return schema.model_dump()


def scan_result_to_dict(result: ScanResult) -> dict[str, Any]:
    """Convert a ScanResult to a JSON-ready dictionary."""
    reports = [
        VulnerabilityReportSchema(
            package=report.package,
            version=report.version,
            timestamp=report.timestamp,
            vulnerabilities=[
                VulnerabilitySchema(
                    id=vuln.id,
                    severity=vuln.severity,
                    description=vuln.description,
                    published=vuln.published,
                    references=list(vuln.references),
                    source=vuln.source,
                )
                for vuln in report.vulnerabilities
            ],
        )
        for _, report in sorted(result.reports.items())
    ]
    return ScanResultSchema(reports=reports, errors=dict(sorted(result.errors.items()))).model_dump(mode="json")


def _prepare_output(output_path: Path | str) -> Path:
    path = Path(output_path).resolve()
    if path.is_dir():
        raise ValueError(f"Output path must be a file, not a directory: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def write_upgrades_json(entries: Sequence[UpgradeEntry], output_path: Path | str) -> None:
    """Write upgrade entries to a JSON file.

    Raises:
        ValueError: If ``output_path`` is a directory.
    """
    path = _prepare_output(output_path)
    with path.open("w", encoding="utf-8") as f:
        json.dump([entry_to_dict(entry) for entry in entries], f, indent=2)
    logger.info("Wrote %d entries to %s", len(entries), path)


def write_scan_json(result: ScanResult, output_path: Path | str) -> None:
    """Write a scan result to a JSON file.

    Raises:
        ValueError: If ``output_path`` is a directory.
    """
    path = _prepare_output(output_path)
    with path.open("w", encoding="utf-8") as f:
        json.dump(scan_result_to_dict(result), f, indent=2)
    logger.info("Wrote scan of %d packages to %s", len(result.reports), path)


__all__ = [
    "Advisor",
    "entry_to_dict",
    "load_manifest_constraints",
    "plan_manifest_upgrades",
    "scan_manifest",
    "scan_result_to_dict",
    "write_scan_json",
    "write_upgrades_json",
]
