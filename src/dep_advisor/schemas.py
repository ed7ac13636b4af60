"""Pydantic schemas for external data boundaries.

Purpose
-------
Define Pydantic models for data that crosses system boundaries:
- Input: npm registry packuments, GitHub advisories, NVD CVE responses
- Output: JSON serialization of upgrade plans and scan results

These models handle validation, coercion, and serialization at the edges
while internal business logic uses lightweight dataclasses.

Data Flow Pattern
-----------------
External Input → Pydantic (validate) → Dataclass (domain) → Pydantic (serialize) → External Output
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .models import Action

# ════════════════════════════════════════════════════════════════════════════
# Output schemas
# ════════════════════════════════════════════════════════════════════════════


class UpgradeEntrySchema(BaseModel):
    """Pydantic schema for serializing upgrade recommendations to JSON."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    package: str = Field(description="The name of the package")
    current: str = Field(description="Declared constraint")
    proposed: str | None = Field(description="Re-constrained upgrade, if any")
    action: Action = Field(description="Recommended action")
    error: str | None = Field(default=None, description="Failure message")


class VulnerabilitySchema(BaseModel):
    """Pydantic schema for one advisory in a scan result."""

    model_config = ConfigDict(frozen=True)

    id: str
    severity: str
    description: str = ""
    published: datetime | None = None
    references: list[str] = Field(default_factory=list)
    source: str = ""


class VulnerabilityReportSchema(BaseModel):
    """Pydantic schema for the advisories of one package."""

    model_config = ConfigDict(frozen=True)

    package: str
    version: str
    timestamp: datetime
    vulnerabilities: list[VulnerabilitySchema] = Field(default_factory=list)


class ScanResultSchema(BaseModel):
    """Pydantic schema for complete scan serialization."""

    model_config = ConfigDict(frozen=True)

    reports: list[VulnerabilityReportSchema] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)


# ════════════════════════════════════════════════════════════════════════════
# npm registry
# ════════════════════════════════════════════════════════════════════════════


class NpmPackumentSchema(BaseModel):
    """Schema for the npm registry package document (packument)."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    name: str = ""
    versions: dict[str, Any] = Field(default_factory=dict)
    dist_tags: dict[str, str] = Field(default_factory=dict, alias="dist-tags")


# ════════════════════════════════════════════════════════════════════════════
# GitHub Advisory Database
# ════════════════════════════════════════════════════════════════════════════


class GitHubAdvisoryPackageSchema(BaseModel):
    """Schema for the package an advisory vulnerability refers to."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    ecosystem: str = ""
    name: str = ""


class GitHubAdvisoryVulnerabilitySchema(BaseModel):
    """Schema for one affected package inside a GitHub advisory.

    ``vulnerable_version_range`` is a comparator string in the REST API
    (``">= 1.0.0, < 1.0.5"``); some mirrors ship a list of them.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    package: GitHubAdvisoryPackageSchema = Field(default_factory=GitHubAdvisoryPackageSchema)
    vulnerable_version_range: str | list[str] | None = None
    first_patched_version: str | dict[str, Any] | None = None

    def ranges(self) -> list[str]:
        """Return the affected ranges as a list of comparator strings."""
        if self.vulnerable_version_range is None:
            return []
        if isinstance(self.vulnerable_version_range, str):
            return [self.vulnerable_version_range]
        return list(self.vulnerable_version_range)


class GitHubAdvisorySchema(BaseModel):
    """Schema for a GitHub global security advisory."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    ghsa_id: str = ""
    summary: str | None = ""
    description: str | None = ""
    severity: str | None = "unknown"
    published_at: str | None = None
    withdrawn_at: str | None = None
    references: list[str] = Field(default_factory=list)
    vulnerabilities: list[GitHubAdvisoryVulnerabilitySchema] = Field(default_factory=list)


# ════════════════════════════════════════════════════════════════════════════
# NVD CVE API 2.0
# ════════════════════════════════════════════════════════════════════════════


class NvdCpeMatchSchema(BaseModel):
    """Schema for a CPE match condition with optional version bounds."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    vulnerable: bool = False
    criteria: str = ""
    version_start_excluding: str | None = Field(default=None, alias="versionStartExcluding")
    version_start_including: str | None = Field(default=None, alias="versionStartIncluding")
    version_end_excluding: str | None = Field(default=None, alias="versionEndExcluding")
    version_end_including: str | None = Field(default=None, alias="versionEndIncluding")


class NvdNodeSchema(BaseModel):
    """Schema for a node in the CVE configuration tree."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    operator: str = ""
    cpe_match: list[NvdCpeMatchSchema] = Field(default_factory=list, alias="cpeMatch")
    children: list[NvdNodeSchema] = Field(default_factory=list)


class NvdConfigurationSchema(BaseModel):
    """Schema for one CVE configuration."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    nodes: list[NvdNodeSchema] = Field(default_factory=list)


class NvdDescriptionSchema(BaseModel):
    """Schema for a localized CVE description."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    lang: str = ""
    value: str = ""


class NvdCvssDataSchema(BaseModel):
    """Schema for CVSS data inside a metric."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    base_score: float = Field(default=0.0, alias="baseScore")
    base_severity: str | None = Field(default=None, alias="baseSeverity")


class NvdCvssMetricSchema(BaseModel):
    """Schema for a CVSS metric entry (v2, v3.0 or v3.1)."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    cvss_data: NvdCvssDataSchema = Field(default_factory=NvdCvssDataSchema, alias="cvssData")
    base_severity: str | None = Field(default=None, alias="baseSeverity")

    def severity(self) -> str | None:
        """Return the base severity from whichever level carries it."""
        return self.cvss_data.base_severity or self.base_severity


class NvdMetricsSchema(BaseModel):
    """Schema for the CVSS metrics of a CVE."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    cvss_v31: list[NvdCvssMetricSchema] = Field(default_factory=list, alias="cvssMetricV31")
    cvss_v30: list[NvdCvssMetricSchema] = Field(default_factory=list, alias="cvssMetricV30")
    cvss_v2: list[NvdCvssMetricSchema] = Field(default_factory=list, alias="cvssMetricV2")


class NvdReferenceSchema(BaseModel):
    """Schema for a CVE reference."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    url: str = ""


class NvdCveSchema(BaseModel):
    """Schema for a CVE item."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = ""
    published: str | None = None
    descriptions: list[NvdDescriptionSchema] = Field(default_factory=list)
    metrics: NvdMetricsSchema = Field(default_factory=NvdMetricsSchema)
    configurations: list[NvdConfigurationSchema] = Field(default_factory=list)
    references: list[NvdReferenceSchema] = Field(default_factory=list)


class NvdVulnerabilitySchema(BaseModel):
    """Schema for one entry of the NVD ``vulnerabilities`` array."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    cve: NvdCveSchema = Field(default_factory=NvdCveSchema)


class NvdResponseSchema(BaseModel):
    """Schema for the NVD CVE API response."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    vulnerabilities: list[NvdVulnerabilitySchema] = Field(default_factory=list)
    total_results: int = Field(default=0, alias="totalResults")


__all__ = [
    "GitHubAdvisoryPackageSchema",
    "GitHubAdvisorySchema",
    "GitHubAdvisoryVulnerabilitySchema",
    "NpmPackumentSchema",
    "NvdConfigurationSchema",
    "NvdCpeMatchSchema",
    "NvdCveSchema",
    "NvdCvssDataSchema",
    "NvdCvssMetricSchema",
    "NvdDescriptionSchema",
    "NvdMetricsSchema",
    "NvdNodeSchema",
    "NvdReferenceSchema",
    "NvdResponseSchema",
    "NvdVulnerabilitySchema",
    "ScanResultSchema",
    "UpgradeEntrySchema",
    "VulnerabilityReportSchema",
    "VulnerabilitySchema",
]
