"""Advisory database clients: GitHub Advisory Database and NVD.

Purpose
-------
Query security advisory sources for a package and keep the advisories whose
affected range covers the installed version.

Contents
--------
* :class:`GitHubAdvisoryClient` - GitHub global advisories (comparator strings)
* :class:`NvdClient` - NIST NVD CVE API 2.0 (bounded CPE match records)
* :class:`VulnerabilityScanner` - Combines sources and de-duplicates findings
* :data:`GITHUB_ADVISORY_URL`, :data:`NVD_API_URL` - API endpoints

System Role
-----------
Feeds :mod:`dep_advisor.ranges` with range records and turns matches into
:class:`~dep_advisor.models.Vulnerability` values. A malformed installed
version raises :class:`~dep_advisor.errors.MalformedVersion` before any
request is made; transport and decoding failures raise
:class:`~dep_advisor.errors.AdvisoryError`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Protocol

import httpx
from pydantic import TypeAdapter, ValidationError

from . import __init__conf__
from .errors import AdvisoryError
from .models import Vulnerability
from .ranges import BoundedRange, is_affected
from .schemas import (
    GitHubAdvisorySchema,
    NvdCpeMatchSchema,
    NvdCveSchema,
    NvdMetricsSchema,
    NvdNodeSchema,
    NvdResponseSchema,
)
from .semver import Version, parse_version

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

logger = logging.getLogger(__name__)

GITHUB_ADVISORY_URL = "https://api.github.com/advisories"
NVD_API_URL = "https://services.nvd.nist.gov/rest/json/cves/2.0"
DEFAULT_GITHUB_TIMEOUT = 10.0
DEFAULT_NVD_TIMEOUT = 30.0

_ADVISORY_LIST = TypeAdapter(list[GitHubAdvisorySchema])


class AdvisorySource(Protocol):
    """Anything that can report vulnerabilities for a package version."""

    source_name: str

    async def find_vulnerabilities_async(self, name: str, version: str) -> list[Vulnerability]:
        """Return advisories affecting ``name`` at ``version``."""
        ...


def _parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp, assuming UTC when no offset is given."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _redact(secret: str | None) -> str:
    return "None" if not secret else "'***'"


async def _get_json(
    client: httpx.AsyncClient,
    url: str,
    params: dict[str, Any],
    *,
    package: str,
    label: str,
) -> Any:
    """GET ``url`` and decode JSON, wrapping failures in AdvisoryError."""
    try:
        response = await client.get(url, params=params)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as exc:
        raise AdvisoryError(package, f"{label} returned status {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        raise AdvisoryError(package, f"{label} request failed: {exc}") from exc
    except ValueError as exc:
        raise AdvisoryError(package, f"{label} returned invalid JSON") from exc


# ════════════════════════════════════════════════════════════════════════════
# GitHub Advisory Database
# ════════════════════════════════════════════════════════════════════════════


def _empty_ghsa_cache() -> dict[str, list[GitHubAdvisorySchema]]:
    """Return an empty cache for dataclass defaults."""
    return {}


@dataclass(repr=False)
class GitHubAdvisoryClient:
    """Client for the GitHub global security advisories endpoint.

    Attributes:
        token: Optional GitHub token; raises the API rate limit.
        timeout: Request timeout in seconds.
        url: Endpoint URL.
        ecosystem: Advisory ecosystem to query.
        cache: Advisories already fetched, keyed ``ghsa:<name>``.
        transport: Optional httpx transport, used to stub the network.
    """

    token: str | None = None
    timeout: float = DEFAULT_GITHUB_TIMEOUT
    url: str = GITHUB_ADVISORY_URL
    ecosystem: str = "npm"
    cache: dict[str, list[GitHubAdvisorySchema]] = field(default_factory=_empty_ghsa_cache)
    transport: httpx.AsyncBaseTransport | None = None
    source_name: str = field(default="github", init=False)

    def __repr__(self) -> str:
        """Return a representation with the token redacted."""
        return f"GitHubAdvisoryClient(url={self.url!r}, timeout={self.timeout}, token={_redact(self.token)})"

    def _get_headers(self) -> dict[str, str]:
        """Return GitHub REST API headers, with auth when a token is set."""
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": f"{__init__conf__.name}/{__init__conf__.version}",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def fetch_advisories_async(self, name: str) -> list[GitHubAdvisorySchema]:
        """Fetch the advisories that mention ``name``.

        Raises:
            AdvisoryError: On transport, status or decoding failures.
        """
        cache_key = f"ghsa:{name}"
        if cache_key in self.cache:
            return self.cache[cache_key]

        params = {"ecosystem": self.ecosystem, "affects": name, "per_page": 100}
        async with httpx.AsyncClient(
            timeout=self.timeout, headers=self._get_headers(), transport=self.transport
        ) as client:
            payload = await _get_json(client, self.url, params, package=name, label="GitHub API")

        try:
            advisories = _ADVISORY_LIST.validate_python(payload)
        except ValidationError as exc:
            raise AdvisoryError(name, f"Unexpected GitHub advisory payload: {exc.error_count()} errors") from exc
        self.cache[cache_key] = advisories
        return advisories

    def _matches(self, advisory: GitHubAdvisorySchema, name: str, installed: Version) -> bool:
        for vuln in advisory.vulnerabilities:
            if vuln.package.ecosystem.lower() != self.ecosystem or vuln.package.name != name:
                continue
            if is_affected(installed, vuln.ranges()):
                return True
        return False

    async def find_vulnerabilities_async(self, name: str, version: str) -> list[Vulnerability]:
        """Return GitHub advisories that affect ``name`` at ``version``.

        Raises:
            MalformedVersion: If ``version`` does not parse.
            AdvisoryError: If the API call fails.
        """
        installed = parse_version(version)
        advisories = await self.fetch_advisories_async(name)
        found: list[Vulnerability] = []
        for advisory in advisories:
            if advisory.withdrawn_at:
                continue
            if not self._matches(advisory, name, installed):
                continue
            found.append(
                Vulnerability(
                    id=advisory.ghsa_id,
                    package=name,
                    version=version,
                    description=advisory.summary or advisory.description or "",
                    severity=(advisory.severity or "unknown").upper(),
                    published=_parse_timestamp(advisory.published_at),
                    references=tuple(advisory.references),
                    source=self.source_name,
                )
            )
        logger.debug("GitHub: %d of %d advisories affect %s@%s", len(found), len(advisories), name, version)
        return found


# ════════════════════════════════════════════════════════════════════════════
# NVD
# ════════════════════════════════════════════════════════════════════════════


def _empty_nvd_cache() -> dict[str, NvdResponseSchema]:
    """Return an empty cache for dataclass defaults."""
    return {}


def cpe_prefix(name: str) -> str:
    """Return the CPE 2.3 prefix used to recognise a package in NVD records.

    Scoped npm names are matched by their bare package name.

    Example:
        >>> cpe_prefix("lodash")
        'cpe:2.3:a:lodash:lodash'
    """
    bare = name.rsplit("/", 1)[-1].lower()
    return f"cpe:2.3:a:{bare}:{bare}"


def _iter_cpe_matches(nodes: Sequence[NvdNodeSchema]) -> Iterator[NvdCpeMatchSchema]:
    for node in nodes:
        yield from node.cpe_match
        yield from _iter_cpe_matches(node.children)


def bounded_range(match: NvdCpeMatchSchema) -> BoundedRange:
    """Convert a CPE match record into a BoundedRange."""
    return BoundedRange(
        start_excluding=match.version_start_excluding,
        start_including=match.version_start_including,
        end_excluding=match.version_end_excluding,
        end_including=match.version_end_including,
    )


def severity_from_metrics(metrics: NvdMetricsSchema) -> str:
    """Pick a severity label: CVSS 3.1, then 3.0, then derived from CVSS 2."""
    for metric_list in (metrics.cvss_v31, metrics.cvss_v30):
        if metric_list and metric_list[0].severity():
            return str(metric_list[0].severity()).upper()
    if metrics.cvss_v2:
        score = metrics.cvss_v2[0].cvss_data.base_score
        if score >= 7.0:
            return "HIGH"
        if score >= 4.0:
            return "MEDIUM"
        return "LOW"
    return "UNKNOWN"


def _english_description(cve: NvdCveSchema) -> str:
    for description in cve.descriptions:
        if description.lang == "en":
            return description.value
    return ""


@dataclass(repr=False)
class NvdClient:
    """Client for the NVD CVE API 2.0.

    Attributes:
        api_key: Optional NVD API key; raises the rate limit.
        timeout: Request timeout in seconds.
        url: Endpoint URL.
        cache: Responses already fetched, keyed ``nvd:<name>``.
        transport: Optional httpx transport, used to stub the network.
    """

    api_key: str | None = None
    timeout: float = DEFAULT_NVD_TIMEOUT
    url: str = NVD_API_URL
    cache: dict[str, NvdResponseSchema] = field(default_factory=_empty_nvd_cache)
    transport: httpx.AsyncBaseTransport | None = None
    source_name: str = field(default="nvd", init=False)

    def __repr__(self) -> str:
        """Return a representation with the API key redacted."""
        return f"NvdClient(url={self.url!r}, timeout={self.timeout}, api_key={_redact(self.api_key)})"

    def _get_headers(self) -> dict[str, str]:
        """Return NVD request headers, with the API key when set."""
        headers = {
            "Accept": "application/json",
            "User-Agent": f"{__init__conf__.name}/{__init__conf__.version}",
        }
        if self.api_key:
            headers["apiKey"] = self.api_key
        return headers

    async def fetch_cves_async(self, name: str) -> NvdResponseSchema:
        """Fetch CVEs matching ``name`` by keyword.

        Raises:
            AdvisoryError: On transport, status or decoding failures.
        """
        cache_key = f"nvd:{name}"
        if cache_key in self.cache:
            return self.cache[cache_key]

        keyword = name.rsplit("/", 1)[-1]
        async with httpx.AsyncClient(
            timeout=self.timeout, headers=self._get_headers(), transport=self.transport
        ) as client:
            payload = await _get_json(client, self.url, {"keywordSearch": keyword}, package=name, label="NVD API")

        try:
            response = NvdResponseSchema.model_validate(payload)
        except ValidationError as exc:
            raise AdvisoryError(name, f"Unexpected NVD payload: {exc.error_count()} errors") from exc
        self.cache[cache_key] = response
        return response

    def _affects(self, cve: NvdCveSchema, prefix: str, installed: Version) -> bool:
        for configuration in cve.configurations:
            for match in _iter_cpe_matches(configuration.nodes):
                if not match.vulnerable or not match.criteria.startswith(prefix + ":"):
                    continue
                if is_affected(installed, bounded_range(match)):
                    return True
        return False

    async def find_vulnerabilities_async(self, name: str, version: str) -> list[Vulnerability]:
        """Return CVEs whose CPE ranges cover ``name`` at ``version``.

        Raises:
            MalformedVersion: If ``version`` does not parse.
            AdvisoryError: If the API call fails.
        """
        installed = parse_version(version)
        response = await self.fetch_cves_async(name)
        prefix = cpe_prefix(name)
        found: list[Vulnerability] = []
        for item in response.vulnerabilities:
            cve = item.cve
            if not self._affects(cve, prefix, installed):
                continue
            found.append(
                Vulnerability(
                    id=cve.id,
                    package=name,
                    version=version,
                    description=_english_description(cve),
                    severity=severity_from_metrics(cve.metrics),
                    published=_parse_timestamp(cve.published),
                    references=tuple(ref.url for ref in cve.references if ref.url),
                    source=self.source_name,
                )
            )
        logger.debug("NVD: %d of %d CVEs affect %s@%s", len(found), len(response.vulnerabilities), name, version)
        return found


# ════════════════════════════════════════════════════════════════════════════
# Combined scanner
# ════════════════════════════════════════════════════════════════════════════


def _default_sources() -> list[AdvisorySource]:
    """Return the default advisory sources for dataclass defaults."""
    return [GitHubAdvisoryClient(), NvdClient()]


@dataclass
class VulnerabilityScanner:
    """Query every advisory source and merge the findings.

    A failing source is logged and skipped as long as another source
    answered. Findings are de-duplicated by advisory id, first source wins.

    Attributes:
        sources: The advisory sources to query.
    """

    sources: list[AdvisorySource] = field(default_factory=_default_sources)

    async def scan_package_async(self, name: str, version: str) -> list[Vulnerability]:
        """Return the merged findings for ``name`` at ``version``.

        Raises:
            MalformedVersion: If ``version`` does not parse.
            AdvisoryError: If every source failed.
        """
        parse_version(version)
        outcomes = await asyncio.gather(
            *(source.find_vulnerabilities_async(name, version) for source in self.sources),
            return_exceptions=True,
        )

        merged: dict[str, Vulnerability] = {}
        failures: list[str] = []
        for source, outcome in zip(self.sources, outcomes):
            if isinstance(outcome, AdvisoryError):
                logger.warning("Advisory source %s failed for %s: %s", source.source_name, name, outcome)
                failures.append(str(outcome))
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            for vuln in outcome:
                merged.setdefault(vuln.id, vuln)

        if self.sources and len(failures) == len(self.sources):
            raise AdvisoryError(name, "all advisory sources failed: " + "; ".join(failures))
        return list(merged.values())


__all__ = [
    "AdvisorySource",
    "DEFAULT_GITHUB_TIMEOUT",
    "DEFAULT_NVD_TIMEOUT",
    "GITHUB_ADVISORY_URL",
    "GitHubAdvisoryClient",
    "NVD_API_URL",
    "NvdClient",
    "VulnerabilityScanner",
    "bounded_range",
    "cpe_prefix",
    "severity_from_metrics",
]
