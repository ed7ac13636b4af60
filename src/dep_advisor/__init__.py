"""Public package surface for npm dependency upgrades and advisories.

This package reads the dependencies declared in a package.json, proposes
upgraded constraints that stay inside each constraint's compatibility
range, and checks the declared versions against the GitHub Advisory
Database and the NVD.

Main API
--------
* :class:`Advisor` - Plans upgrades and runs scans for a set of constraints
* :func:`plan_manifest_upgrades` / :func:`scan_manifest` - File-level entry points
* :func:`parse_version`, :func:`parse_constraint`, :func:`satisfies` - Version core
* :func:`select_best_upgrade` - Pick the best eligible upgrade
* :func:`is_affected` - Evaluate advisory ranges
"""

from __future__ import annotations

from .__init__conf__ import print_info
from .advisor import Advisor, plan_manifest_upgrades, scan_manifest, write_scan_json, write_upgrades_json
from .config import get_advisor_settings, get_config
from .errors import (
    AdvisorError,
    AdvisoryError,
    MalformedConstraint,
    MalformedVersion,
    ManifestError,
    RegistryError,
)
from .models import (
    Action,
    DependencyInfo,
    ScanResult,
    UpgradeEntry,
    UpgradeResult,
    Vulnerability,
    VulnerabilityReport,
)
from .ranges import BoundedRange, is_affected, is_affected_raw
from .semver import Constraint, Operator, Version, compare, is_compatible, parse_constraint, parse_version, satisfies
from .upgrade import UpgradeDecision, UpgradeStatus, select_best_upgrade, select_best_upgrade_from_strings

__all__ = [
    "Action",
    "Advisor",
    "AdvisorError",
    "AdvisoryError",
    "BoundedRange",
    "Constraint",
    "DependencyInfo",
    "MalformedConstraint",
    "MalformedVersion",
    "ManifestError",
    "Operator",
    "RegistryError",
    "ScanResult",
    "UpgradeDecision",
    "UpgradeEntry",
    "UpgradeResult",
    "UpgradeStatus",
    "Version",
    "Vulnerability",
    "VulnerabilityReport",
    "compare",
    "get_advisor_settings",
    "get_config",
    "is_affected",
    "is_affected_raw",
    "is_compatible",
    "parse_constraint",
    "parse_version",
    "plan_manifest_upgrades",
    "print_info",
    "satisfies",
    "scan_manifest",
    "select_best_upgrade",
    "select_best_upgrade_from_strings",
    "write_scan_json",
    "write_upgrades_json",
]
