"""Advisor stories: a manifest becomes an upgrade plan and a scan result.

The Advisor drives the registry client, the upgrade selector and the
advisory sources. Every package stands alone: a malformed constraint or a
failed lookup marks that package and the rest carry on.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from dep_advisor.advisor import (
    Advisor,
    entry_to_dict,
    load_manifest_constraints,
    plan_manifest_upgrades,
    scan_manifest,
    scan_result_to_dict,
    write_scan_json,
    write_upgrades_json,
)
from dep_advisor.config import AdvisorSettings
from dep_advisor.errors import AdvisoryError
from dep_advisor.models import Action, UpgradeEntry, Vulnerability

PACKUMENTS: dict[str, dict[str, Any]] = {
    "react": {"versions": {"16.14.0": {}, "17.0.1": {}, "17.0.2": {}, "18.2.0": {}}},
    "left-pad": {"versions": {"1.3.0": {}}},
    "lodash": {"versions": {"4.17.19": {}, "4.17.21": {}}},
}


def registry_transport() -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        name = request.url.raw_path.decode().lstrip("/").replace("%2F", "/")
        if name in PACKUMENTS:
            return httpx.Response(200, json=PACKUMENTS[name])
        return httpx.Response(404)

    return httpx.MockTransport(handler)


class StubSource:
    source_name = "stub"

    def __init__(self, affected: dict[str, str]) -> None:
        self.affected = affected
        self.seen: list[tuple[str, str]] = []

    async def find_vulnerabilities_async(self, name: str, version: str) -> list[Vulnerability]:
        self.seen.append((name, version))
        if name == "flaky":
            raise AdvisoryError(name, "service unavailable")
        if self.affected.get(name) == version:
            return [Vulnerability(id=f"GHSA-{name}", package=name, version=version, severity="HIGH")]
        return []


def make_advisor(source: StubSource | None = None) -> Advisor:
    return Advisor(transport=registry_transport(), sources=[source or StubSource({})], concurrency=2)


# ════════════════════════════════════════════════════════════════════════════
# Advisor: Construction
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_advisor_rejects_non_positive_timeout() -> None:
    with pytest.raises(ValueError, match="timeout"):
        Advisor(timeout=0)


@pytest.mark.os_agnostic
def test_advisor_rejects_non_positive_concurrency() -> None:
    with pytest.raises(ValueError, match="concurrency"):
        Advisor(concurrency=0)


@pytest.mark.os_agnostic
def test_advisor_builds_github_and_nvd_sources_by_default() -> None:
    advisor = Advisor(github_token="gh", nvd_api_key="nvd")

    assert [source.source_name for source in advisor.scanner.sources] == ["github", "nvd"]


@pytest.mark.os_agnostic
def test_advisor_repr_hides_credentials() -> None:
    assert "gh-secret" not in repr(Advisor(github_token="gh-secret"))


@pytest.mark.os_agnostic
def test_advisor_from_settings_applies_overrides() -> None:
    settings = AdvisorSettings(
        github_token="",
        nvd_api_key="",
        registry_url="https://registry.npmjs.org",
        timeout=5.0,
        concurrency=3,
        log_level="WARNING",
    )

    advisor = Advisor.from_settings(settings, registry_url="https://npm.example.test/", timeout=None)

    assert advisor.registry.registry_url == "https://npm.example.test"
    assert advisor.timeout == 5.0
    assert advisor.github_token is None


# ════════════════════════════════════════════════════════════════════════════
# plan_upgrades: Upgrade planning with partial failure
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_plan_upgrades_decides_every_package() -> None:
    result = make_advisor().plan_upgrades(
        {"react": "^17.0.1", "left-pad": "1.3.0", "lodash": "<4.0.0", "odd": "^next", "ghost": "^1.0.0"}
    )

    by_name = {entry.package: entry for entry in result.entries}
    assert by_name["react"] == UpgradeEntry("react", "^17.0.1", "^17.0.2", Action.UPDATE)
    assert by_name["left-pad"].action is Action.NONE
    assert by_name["lodash"].action is Action.NO_UPGRADE
    assert by_name["odd"].action is Action.CHECK_MANUALLY
    assert by_name["odd"].error == "Malformed constraint: '^next'"
    assert by_name["ghost"].action is Action.CHECK_MANUALLY
    assert by_name["ghost"].error is not None and "404" in by_name["ghost"].error


@pytest.mark.os_agnostic
def test_plan_upgrades_sorts_entries_and_counts_actions() -> None:
    result = make_advisor().plan_upgrades({"react": "^17.0.1", "odd": "^next", "left-pad": "1.3.0"})

    assert [entry.package for entry in result.entries] == ["left-pad", "odd", "react"]
    assert result.total_dependencies == 3
    assert result.update_count == 1
    assert result.check_manually_count == 1
    assert [entry.package for entry in result.upgrades] == ["react"]


@pytest.mark.os_agnostic
def test_plan_upgrades_of_nothing_is_empty() -> None:
    result = make_advisor().plan_upgrades({})

    assert result.entries == []
    assert result.total_dependencies == 0


# ════════════════════════════════════════════════════════════════════════════
# scan: Vulnerability scanning with partial failure
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_scan_checks_the_declared_version() -> None:
    source = StubSource({"lodash": "4.17.19"})

    result = make_advisor(source).scan({"lodash": "^4.17.19", "react": "~17.0.1"})

    assert ("lodash", "4.17.19") in source.seen
    assert ("react", "17.0.1") in source.seen
    assert result.vulnerable_packages == ["lodash"]
    assert result.clean_packages == ["react"]
    assert result.has_findings is True


@pytest.mark.os_agnostic
def test_scan_records_failures_per_package() -> None:
    result = make_advisor(StubSource({})).scan({"odd": "latest", "flaky": "1.0.0", "react": "17.0.1"})

    assert set(result.errors) == {"odd", "flaky"}
    assert "Malformed constraint" in result.errors["odd"]
    assert "service unavailable" in result.errors["flaky"]
    assert list(result.reports) == ["react"]
    assert result.has_findings is False


# ════════════════════════════════════════════════════════════════════════════
# Manifest entry points
# ════════════════════════════════════════════════════════════════════════════


def write_manifest(directory: Path) -> Path:
    path = directory / "package.json"
    path.write_text(
        json.dumps(
            {
                "dependencies": {"react": "^17.0.1", "lodash": "^4.17.19"},
                "devDependencies": {"left-pad": "1.3.0"},
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.mark.os_agnostic
def test_load_manifest_constraints_honours_include_dev(tmp_path: Path) -> None:
    path = write_manifest(tmp_path)

    assert load_manifest_constraints(path) == {"react": "^17.0.1", "lodash": "^4.17.19", "left-pad": "1.3.0"}
    assert "left-pad" not in load_manifest_constraints(path, include_dev=False)


@pytest.mark.os_agnostic
def test_plan_manifest_upgrades_reads_the_file(tmp_path: Path) -> None:
    result = plan_manifest_upgrades(write_manifest(tmp_path), advisor=make_advisor())

    assert {entry.package: entry.proposed for entry in result.entries} == {
        "left-pad": None,
        "lodash": "^4.17.21",
        "react": "^17.0.2",
    }


@pytest.mark.os_agnostic
def test_scan_manifest_reads_the_file(tmp_path: Path) -> None:
    result = scan_manifest(
        write_manifest(tmp_path),
        include_dev=False,
        advisor=make_advisor(StubSource({"lodash": "4.17.19"})),
    )

    assert sorted(result.reports) == ["lodash", "react"]
    assert result.vulnerable_packages == ["lodash"]


# ════════════════════════════════════════════════════════════════════════════
# JSON output
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_entry_to_dict_uses_plain_values() -> None:
    entry = UpgradeEntry("react", "^17.0.1", "^17.0.2", Action.UPDATE)

    assert entry_to_dict(entry) == {
        "package": "react",
        "current": "^17.0.1",
        "proposed": "^17.0.2",
        "action": "update",
        "error": None,
    }


@pytest.mark.os_agnostic
def test_write_upgrades_json_creates_parent_directories(tmp_path: Path) -> None:
    target = tmp_path / "out" / "nested" / "upgrades.json"

    write_upgrades_json([UpgradeEntry("react", "^17.0.1", "^17.0.2", Action.UPDATE)], target)

    assert json.loads(target.read_text(encoding="utf-8"))[0]["proposed"] == "^17.0.2"


@pytest.mark.os_agnostic
def test_write_upgrades_json_rejects_a_directory(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="directory"):
        write_upgrades_json([], tmp_path)


@pytest.mark.os_agnostic
def test_scan_result_serialises_reports_and_errors(tmp_path: Path) -> None:
    result = make_advisor(StubSource({"lodash": "4.17.19"})).scan({"lodash": "^4.17.19", "odd": "^next"})
    target = tmp_path / "scan.json"

    write_scan_json(result, target)

    data = json.loads(target.read_text(encoding="utf-8"))
    assert data == scan_result_to_dict(result)
    assert data["reports"][0]["package"] == "lodash"
    assert data["reports"][0]["vulnerabilities"][0]["id"] == "GHSA-lodash"
    assert "odd" in data["errors"]
