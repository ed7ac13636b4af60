"""npm registry client that lists published versions.

Purpose
-------
Fetch package documents from an npm-compatible registry and hand the
published version strings to the upgrade selector.

Contents
--------
* :class:`RegistryResult` - Published versions (or an error) for one package
* :class:`RegistryClient` - Async client with per-instance caching

System Role
-----------
Supplies candidate lists to :mod:`dep_advisor.upgrade`. Network failures are
reported as :class:`RegistryResult` errors rather than raised, so one
unreachable package does not abort a batch.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from . import __init__conf__
from .errors import RegistryError
from .schemas import NpmPackumentSchema
from .semver import parse_constraint
from .upgrade import UpgradeDecision, select_best_upgrade_from_strings

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY = "https://registry.npmjs.org"
DEFAULT_TIMEOUT = 10.0
DEFAULT_CONCURRENCY = 10


@dataclass(frozen=True, slots=True)
class RegistryResult:
    """Published versions for a package.

    Attributes:
        versions: Every published version string, in registry order.
        latest: The ``latest`` dist-tag, if present.
        error: Failure message when the lookup did not succeed.
    """

    versions: tuple[str, ...] = ()
    latest: str | None = None
    error: str | None = None

    @property
    def is_unknown(self) -> bool:
        """Return True if the lookup failed."""
        return self.error is not None


def _empty_cache() -> dict[str, RegistryResult]:
    """Return an empty cache for dataclass defaults."""
    return {}


def package_path(name: str) -> str:
    """Return the URL path segment for a package, encoding scoped names.

    Example:
        >>> package_path("@types/node")
        '@types%2Fnode'
    """
    return quote(name, safe="@")


@dataclass
class RegistryClient:
    """Async npm registry client.

    Attributes:
        registry_url: Base URL of the registry.
        timeout: Request timeout in seconds.
        cache: Results already fetched by this instance, keyed ``npm:<name>``.
        transport: Optional httpx transport, used to stub the network.
    """

    registry_url: str = DEFAULT_REGISTRY
    timeout: float = DEFAULT_TIMEOUT
    cache: dict[str, RegistryResult] = field(default_factory=_empty_cache)
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        """Normalize the registry URL."""
        self.registry_url = (self.registry_url or DEFAULT_REGISTRY).rstrip("/")

    def _get_headers(self) -> dict[str, str]:
        """Return request headers for registry calls."""
        return {
            "Accept": "application/json",
            "User-Agent": f"{__init__conf__.name}/{__init__conf__.version}",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers=self._get_headers(),
            transport=self.transport,
            follow_redirects=True,
        )

    def _parse_response(self, response: httpx.Response) -> RegistryResult:
        """Turn a registry response into a RegistryResult."""
        try:
            packument = NpmPackumentSchema.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            return RegistryResult(error=f"Invalid registry response: {exc}")
        return RegistryResult(
            versions=tuple(packument.versions),
            latest=packument.dist_tags.get("latest"),
        )

    async def fetch_versions_async(self, name: str, client: httpx.AsyncClient | None = None) -> RegistryResult:
        """Fetch the published versions of ``name``.

        Args:
            name: Package name, scoped names included.
            client: Optional shared client; a private one is opened otherwise.

        Returns:
            The published versions, or a result carrying the error.
        """
        cache_key = f"npm:{name}"
        if cache_key in self.cache:
            return self.cache[cache_key]

        if client is None:
            async with self._client() as own_client:
                return await self.fetch_versions_async(name, own_client)

        url = f"{self.registry_url}/{package_path(name)}"
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            result = RegistryResult(error=f"Registry returned status {exc.response.status_code}")
        except httpx.HTTPError as exc:
            result = RegistryResult(error=f"Registry request failed: {exc}")
        else:
            result = self._parse_response(response)

        if result.error:
            logger.warning("Could not fetch versions for %s: %s", name, result.error)
        else:
            logger.debug("Fetched %d versions for %s", len(result.versions), name)
        self.cache[cache_key] = result
        return result

    async def fetch_many_async(
        self,
        names: Iterable[str],
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> dict[str, RegistryResult]:
        """Fetch several packages concurrently.

        Args:
            names: Package names.
            concurrency: Maximum simultaneous requests.

        Returns:
            Mapping of package name to result.
        """
        semaphore = asyncio.Semaphore(concurrency)
        unique = list(dict.fromkeys(names))

        async with self._client() as client:

            async def fetch_one(name: str) -> tuple[str, RegistryResult]:
                async with semaphore:
                    return name, await self.fetch_versions_async(name, client)

            pairs = await asyncio.gather(*(fetch_one(name) for name in unique))
        return dict(pairs)

    async def find_best_upgrade_async(self, name: str, constraint: str) -> UpgradeDecision:
        """Select the best upgrade of ``name`` for a declared constraint.

        Raises:
            MalformedConstraint: If ``constraint`` does not parse.
            RegistryError: If the registry lookup failed.
        """
        parse_constraint(constraint)
        result = await self.fetch_versions_async(name)
        if result.error:
            raise RegistryError(name, result.error)
        return select_best_upgrade_from_strings(constraint, result.versions)

    def find_best_upgrade(self, name: str, constraint: str) -> UpgradeDecision:
        """Synchronous wrapper for :meth:`find_best_upgrade_async`."""
        return asyncio.run(self.find_best_upgrade_async(name, constraint))


__all__ = [
    "DEFAULT_REGISTRY",
    "DEFAULT_TIMEOUT",
    "RegistryClient",
    "RegistryResult",
    "package_path",
]
