"""CLI stories: a developer asks dep-advisor about their package.json.

Commands run through click's CliRunner. Settings and the Advisor factory are
handed in through the context object so no test reaches the network or the
user's configuration files.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import pytest
from click.testing import CliRunner, Result

from dep_advisor import __init__conf__
from dep_advisor import config_show as config_show_mod
from dep_advisor.advisor import Advisor
from dep_advisor.cli import EXIT_FINDINGS, cli
from dep_advisor.config import AdvisorSettings
from dep_advisor.models import Vulnerability

SETTINGS = AdvisorSettings(
    github_token="",
    nvd_api_key="",
    registry_url="https://registry.npmjs.org",
    timeout=5.0,
    concurrency=2,
    log_level="WARNING",
)

PACKUMENTS: dict[str, dict[str, Any]] = {
    "react": {"versions": {"17.0.1": {}, "17.0.2": {}, "18.2.0": {}}},
    "lodash": {"versions": {"4.17.19": {}, "4.17.21": {}}},
}


class StubSource:
    source_name = "stub"

    def __init__(self, vulnerable: set[str]) -> None:
        self.vulnerable = vulnerable

    async def find_vulnerabilities_async(self, name: str, version: str) -> list[Vulnerability]:
        if name in self.vulnerable:
            return [Vulnerability(id=f"GHSA-{name}", package=name, version=version, severity="HIGH")]
        return []


def registry_transport() -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        name = request.url.raw_path.decode().lstrip("/")
        if name in PACKUMENTS:
            return httpx.Response(200, json=PACKUMENTS[name])
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def factory_for(vulnerable: set[str] | None = None) -> Any:
    def factory(settings: AdvisorSettings, **overrides: Any) -> Advisor:
        return Advisor(
            registry_url=overrides.get("registry_url") or settings.registry_url,
            concurrency=settings.concurrency,
            transport=registry_transport(),
            sources=[StubSource(vulnerable or set())],
        )

    return factory


def invoke(args: list[str], vulnerable: set[str] | None = None) -> Result:
    obj = {"settings": SETTINGS, "advisor_factory": factory_for(vulnerable)}
    return CliRunner().invoke(cli, args, obj=obj)


def write_manifest(directory: Path) -> Path:
    path = directory / "package.json"
    path.write_text(
        json.dumps({"dependencies": {"react": "^17.0.1"}, "devDependencies": {"lodash": "^4.17.19"}}),
        encoding="utf-8",
    )
    return path


# ════════════════════════════════════════════════════════════════════════════
# check: Version against constraint
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_check_prints_true_for_satisfied_constraint() -> None:
    result = invoke(["check", "1.2.4", "~1.2.3"])

    assert result.exit_code == 0
    assert result.output.strip() == "true"


@pytest.mark.os_agnostic
def test_check_prints_false_for_unsatisfied_constraint() -> None:
    result = invoke(["check", "2.0.0", "^1.2.3"])

    assert result.exit_code == 0
    assert result.output.strip() == "false"


@pytest.mark.os_agnostic
def test_check_fails_for_malformed_version() -> None:
    result = invoke(["check", "one", "^1.0.0"])

    assert result.exit_code == 1
    assert "Malformed version: 'one'" in result.output


# ════════════════════════════════════════════════════════════════════════════
# upgrade: Proposing constraints
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_upgrade_without_packages_or_all_prints_hint() -> None:
    result = invoke(["upgrade"])

    assert result.exit_code == 1
    assert "--all" in result.output


@pytest.mark.os_agnostic
def test_upgrade_all_proposes_every_dependency(tmp_path: Path) -> None:
    manifest = write_manifest(tmp_path)

    result = invoke(["upgrade", "--all", "--manifest", str(manifest)])

    assert result.exit_code == 0
    assert "^17.0.2" in result.output
    assert "^4.17.21" in result.output
    assert "2 dependencies, 2 upgradable, 0 to check manually" in result.output


@pytest.mark.os_agnostic
def test_upgrade_named_packages_warns_about_unknown_names(tmp_path: Path) -> None:
    manifest = write_manifest(tmp_path)

    result = invoke(["upgrade", "react", "ghost", "--manifest", str(manifest)])

    assert result.exit_code == 0
    assert "ghost is not declared" in result.output
    assert "^17.0.2" in result.output
    assert "lodash" not in result.output


@pytest.mark.os_agnostic
def test_upgrade_no_dev_skips_dev_dependencies(tmp_path: Path) -> None:
    manifest = write_manifest(tmp_path)

    result = invoke(["upgrade", "--all", "--no-dev", "--manifest", str(manifest)])

    assert "lodash" not in result.output


@pytest.mark.os_agnostic
def test_upgrade_writes_json_plan(tmp_path: Path) -> None:
    manifest = write_manifest(tmp_path)
    output = tmp_path / "reports" / "upgrades.json"

    result = invoke(["upgrade", "--all", "--manifest", str(manifest), "--output", str(output)])

    assert result.exit_code == 0
    entries = json.loads(output.read_text(encoding="utf-8"))
    assert {entry["package"]: entry["proposed"] for entry in entries} == {"lodash": "^4.17.21", "react": "^17.0.2"}


@pytest.mark.os_agnostic
def test_upgrade_reports_missing_manifest(tmp_path: Path) -> None:
    result = invoke(["upgrade", "--all", "--manifest", str(tmp_path / "absent" / "package.json")])

    assert result.exit_code == 1
    assert "not found" in result.output


# ════════════════════════════════════════════════════════════════════════════
# scan: Vulnerability summary
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_scan_prints_summary(tmp_path: Path) -> None:
    result = invoke(["scan", "--manifest", str(write_manifest(tmp_path))], vulnerable={"lodash"})

    assert result.exit_code == 0
    assert "Vulnerable packages: 1" in result.output
    assert "GHSA-lodash" in result.output


@pytest.mark.os_agnostic
def test_scan_fail_on_findings_exits_with_findings_code(tmp_path: Path) -> None:
    result = invoke(["scan", "--manifest", str(write_manifest(tmp_path)), "--fail-on-findings"], vulnerable={"lodash"})

    assert result.exit_code == EXIT_FINDINGS


@pytest.mark.os_agnostic
def test_scan_fail_on_findings_passes_when_clean(tmp_path: Path) -> None:
    result = invoke(["scan", "--manifest", str(write_manifest(tmp_path)), "--fail-on-findings"])

    assert result.exit_code == 0
    assert "Vulnerable packages: 0" in result.output


@pytest.mark.os_agnostic
def test_scan_table_format_and_json_output(tmp_path: Path) -> None:
    output = tmp_path / "scan.json"

    result = invoke(
        ["scan", "--manifest", str(write_manifest(tmp_path)), "--format", "table", "--output", str(output)],
        vulnerable={"react"},
    )

    assert result.exit_code == 0
    assert "Severity" in result.output
    data = json.loads(output.read_text(encoding="utf-8"))
    assert [report["package"] for report in data["reports"]] == ["lodash", "react"]


# ════════════════════════════════════════════════════════════════════════════
# config, info, and the root group
# ════════════════════════════════════════════════════════════════════════════


class InMemoryConfig:
    def get(self, key: str, default: Any = None) -> Any:
        return self.as_dict().get(key, default)

    def as_dict(self) -> dict[str, Any]:
        return {"advisor": {"timeout": 10.0}, "logging": {"level": "WARNING"}}


@pytest.mark.os_agnostic
def test_config_command_shows_a_section(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_show_mod, "get_config", lambda **_: InMemoryConfig())

    result = invoke(["config", "--format", "json", "--section", "logging"])

    assert result.exit_code == 0
    assert json.loads(result.output) == {"logging": {"level": "WARNING"}}


@pytest.mark.os_agnostic
def test_info_command_prints_metadata() -> None:
    result = invoke(["info"])

    assert result.exit_code == 0
    assert f"Info for {__init__conf__.name}:" in result.output
    assert __init__conf__.version in result.output


@pytest.mark.os_agnostic
def test_version_option_prints_version() -> None:
    result = invoke(["--version"])

    assert result.exit_code == 0
    assert __init__conf__.version in result.output


@pytest.mark.os_agnostic
def test_log_level_option_accepts_known_levels() -> None:
    result = invoke(["--log-level", "debug", "check", "1.0.0", "1.0.0"])

    assert result.exit_code == 0
    assert result.output.strip() == "true"


@pytest.mark.os_agnostic
def test_log_level_option_rejects_unknown_levels() -> None:
    result = invoke(["--log-level", "chatty", "info"])

    assert result.exit_code == 2
