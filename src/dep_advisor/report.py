"""Plain-text rendering of vulnerability reports.

Purpose
-------
Order findings by severity and render them for the terminal, either as a
detailed listing or as an aligned table, plus a summary over a whole scan.

Contents
--------
* :data:`SEVERITY_WEIGHT` - Ranking of severity labels
* :func:`sort_by_severity` - Most severe first, newest first within a level
* :func:`count_by_severity` - Findings per upper-cased severity label
* :func:`render_text` - Detailed report for one package
* :func:`render_table` - Tabular report for one package
* :func:`render_summary` - Overview of a complete scan
* :func:`render_upgrade_table` - Upgrade plan as an aligned table
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .models import ScanResult, UpgradeResult, Vulnerability, VulnerabilityReport

SEVERITY_WEIGHT: dict[str, int] = {
    "CRITICAL": 4,
    "HIGH": 3,
    "MEDIUM": 2,
    "LOW": 1,
    "UNKNOWN": 0,
}

SEVERITY_ORDER: tuple[str, ...] = tuple(SEVERITY_WEIGHT)

DESCRIPTION_WIDTH = 80
DIVIDER = "-" * DESCRIPTION_WIDTH


def _sort_key(vuln: Vulnerability) -> tuple[int, float]:
    weight = SEVERITY_WEIGHT.get(vuln.severity.upper(), 0)
    published = vuln.published.timestamp() if vuln.published else float("-inf")
    return (-weight, -published)


def sort_by_severity(vulnerabilities: Iterable[Vulnerability]) -> list[Vulnerability]:
    """Return findings ordered by severity, then by publication date.

    Highest severity comes first; within a level, newer advisories come
    first and advisories without a date come last. The sort is stable.
    """
    return sorted(vulnerabilities, key=_sort_key)


def count_by_severity(vulnerabilities: Iterable[Vulnerability]) -> dict[str, int]:
    """Count findings per upper-cased severity label."""
    return dict(Counter(vuln.severity.upper() for vuln in vulnerabilities))


def _published(vuln: Vulnerability) -> str:
    return vuln.published.strftime("%Y-%m-%d") if vuln.published else "unknown"


def _truncate(text: str, width: int = DESCRIPTION_WIDTH) -> str:
    text = " ".join(text.split())
    if len(text) <= width:
        return text
    return text[: width - 3] + "..."


def _severity_lines(counts: dict[str, int], indent: str = "  ") -> list[str]:
    return [f"{indent}- {label}: {counts[label]}" for label in SEVERITY_ORDER if counts.get(label)]


def render_text(report: VulnerabilityReport) -> str:
    """Render a detailed report for one package.

    Example:
        >>> from dep_advisor.models import VulnerabilityReport
        >>> print(render_text(VulnerabilityReport("left-pad", "1.3.0")).splitlines()[0])
        Security Vulnerability Report for left-pad@1.3.0
    """
    lines = [
        f"Security Vulnerability Report for {report.package}@{report.version}",
        f"Generated: {report.timestamp:%a, %d %b %Y %H:%M:%S %Z}".rstrip(),
        "",
    ]
    if not report.has_vulnerabilities:
        lines.append("No vulnerabilities found")
        return "\n".join(lines)

    ordered = sort_by_severity(report.vulnerabilities)
    lines.append(f"Found {len(ordered)} vulnerabilities:")
    lines.extend(_severity_lines(count_by_severity(ordered)))
    lines.extend(["", "Vulnerability Details:", "-" * 22])
    for index, vuln in enumerate(ordered, start=1):
        lines.append(f"[{index}] {vuln.id} ({vuln.severity})")
        lines.append(f"    Description: {vuln.description}")
        lines.append(f"    Published: {_published(vuln)}")
        if vuln.references:
            lines.append("    References:")
            lines.extend(f"      - {ref}" for ref in vuln.references)
        lines.append("")
    return "\n".join(lines).rstrip()


def render_table(report: VulnerabilityReport) -> str:
    """Render one package's findings as an aligned table.

    Descriptions longer than 80 characters are cut to 77 plus ``...``.
    """
    header = ("ID", "Severity", "Published", "Description")
    rows = [
        (vuln.id, vuln.severity, _published(vuln), _truncate(vuln.description))
        for vuln in sort_by_severity(report.vulnerabilities)
    ]
    underline = tuple("-" * len(title) for title in header)
    table = [header, underline, *rows]
    widths = [max(len(row[col]) for row in table) for col in range(3)]
    lines = []
    for row in table:
        cells = [row[col].ljust(widths[col]) for col in range(3)]
        lines.append("  ".join([*cells, row[3]]).rstrip())
    return "\n".join(lines)


def render_summary(result: ScanResult, *, detail: Literal["text", "table"] = "text") -> str:
    """Render an overview of a scan, followed by a report per vulnerable package.

    Args:
        result: The scan to summarize.
        detail: Renderer used for the per-package reports.
    """
    vulnerable = result.vulnerable_packages
    clean = result.clean_packages
    lines = [
        "Vulnerability Scan Summary",
        DIVIDER,
        f"Total packages scanned: {len(result.reports)}",
        f"Vulnerable packages: {len(vulnerable)}",
        f"Clean packages: {len(clean)}",
    ]
    if result.errors:
        lines.append(f"Packages not scanned: {len(result.errors)}")
    lines.append("")

    if vulnerable:
        lines.extend(["Vulnerable Packages:", DIVIDER])
        for name in vulnerable:
            report = result.reports[name]
            counts = count_by_severity(report.vulnerabilities)
            lines.append(f"- {name}@{report.version}: {len(report.vulnerabilities)} vulnerabilities")
            breakdown = [f"{counts[label]} {label}" for label in SEVERITY_ORDER[:-1] if counts.get(label)]
            if breakdown:
                lines.append(f"  ({', '.join(breakdown)})")
        lines.append("")

    if clean:
        lines.extend(["Clean Packages:", DIVIDER])
        lines.extend(f"- {name}@{result.reports[name].version}" for name in clean)
        lines.append("")

    if result.errors:
        lines.extend(["Not Scanned:", DIVIDER])
        lines.extend(f"- {name}: {message}" for name, message in sorted(result.errors.items()))
        lines.append("")

    render = render_table if detail == "table" else render_text
    for name in vulnerable:
        lines.extend([DIVIDER, render(result.reports[name]), ""])
    return "\n".join(lines).rstrip()


def _align(rows: list[tuple[str, ...]]) -> str:
    widths = [max(len(row[col]) for row in rows) for col in range(len(rows[0]))]
    return "\n".join("  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip() for row in rows)


def render_upgrade_table(result: UpgradeResult) -> str:
    """Render an upgrade plan as an aligned table with a closing tally."""
    header = ("Package", "Current", "Proposed", "Action")
    rows = [header, tuple("-" * len(title) for title in header)]
    for entry in result.entries:
        action = entry.action.value if not entry.error else f"{entry.action.value}: {entry.error}"
        rows.append((entry.package, entry.current, entry.proposed or "-", action))
    tally = (
        f"{result.total_dependencies} dependencies, {result.update_count} upgradable, "
        f"{result.check_manually_count} to check manually"
    )
    return f"{_align(rows)}\n\n{tally}"


__all__ = [
    "SEVERITY_ORDER",
    "SEVERITY_WEIGHT",
    "count_by_severity",
    "render_summary",
    "render_table",
    "render_text",
    "render_upgrade_table",
    "sort_by_severity",
]
