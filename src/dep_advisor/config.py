"""Configuration management using lib_layered_config.

Purpose
-------
Load the merged configuration (bundled defaults, app, host and user files,
.env and environment) and resolve the settings the advisor runs with.

Contents
--------
* :func:`get_config` - loads configuration with lib_layered_config
* :func:`get_default_config_path` - returns path to bundled default config
* :func:`get_advisor_settings` - returns resolved advisor settings
* :class:`AdvisorSettings` - immutable settings value

Configuration identifiers (vendor, app, slug) come from
:mod:`dep_advisor.__init__conf__` as LAYEREDCONF_* constants.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from lib_layered_config import Config, read_config

from . import __init__conf__

logger = logging.getLogger(__name__)

_ENV_PREFIX = "DEP_ADVISOR_"


def get_default_config_path() -> Path:
    """Return the path to the bundled defaultconfig.toml.

    Example:
        >>> get_default_config_path().name
        'defaultconfig.toml'
    """
    return Path(__file__).parent / "defaultconfig.toml"


@lru_cache(maxsize=1)
def get_config(*, start_dir: str | None = None) -> Config:
    """Load layered configuration with application defaults.

    Precedence, lowest first: defaults, app, host, user, dotenv, env.

    Args:
        start_dir: Optional directory that seeds .env discovery. Defaults to
            the current working directory when None.

    Returns:
        Immutable configuration object with provenance tracking.
    """
    return read_config(
        vendor=__init__conf__.LAYEREDCONF_VENDOR,
        app=__init__conf__.LAYEREDCONF_APP,
        slug=__init__conf__.LAYEREDCONF_SLUG,
        default_file=get_default_config_path(),
        start_dir=start_dir,
    )


@dataclass(frozen=True, slots=True)
class AdvisorSettings:
    """Immutable settings for the advisor.

    Attributes:
        github_token: GitHub API token (empty = unauthenticated).
        nvd_api_key: NVD API key (empty = unauthenticated).
        registry_url: npm registry base URL.
        timeout: Maximum seconds to wait for an HTTP response.
        concurrency: Maximum number of simultaneous requests.
        log_level: Logging level name for the CLI.
    """

    github_token: str
    nvd_api_key: str
    registry_url: str
    timeout: float
    concurrency: int
    log_level: str

    def __repr__(self) -> str:
        token = "***" if self.github_token else ""
        key = "***" if self.nvd_api_key else ""
        return (
            f"AdvisorSettings(github_token={token!r}, nvd_api_key={key!r}, "
            f"registry_url={self.registry_url!r}, timeout={self.timeout}, "
            f"concurrency={self.concurrency}, log_level={self.log_level!r})"
        )


def _env(name: str) -> str:
    return os.environ.get(f"{_ENV_PREFIX}{name}", "")


def _numeric_override(name: str, current: Any, convert: type[float] | type[int]) -> Any:
    """Return the env value converted, or ``current`` when absent or invalid."""
    raw = _env(name)
    if not raw:
        return current
    try:
        return convert(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s%s=%r", _ENV_PREFIX, name, raw)
        return current


def get_advisor_settings() -> AdvisorSettings:
    """Get advisor settings from configuration with environment overrides.

    Resolution order (highest wins):

    1. Native environment variables (``DEP_ADVISOR_GITHUB_TOKEN`` etc.)
    2. lib_layered_config sources (env, dotenv, user, host, app files)
    3. Bundled defaultconfig.toml
    4. For credentials only: the unprefixed ``GITHUB_TOKEN`` / ``NVD_API_KEY``

    Example:
        >>> settings = get_advisor_settings()  # doctest: +SKIP
        >>> settings.registry_url  # doctest: +SKIP
        'https://registry.npmjs.org'
    """
    config = get_config()
    advisor_section = config.get("advisor", default={})
    logging_section = config.get("logging", default={})

    github_token = _env("GITHUB_TOKEN") or advisor_section.get("github_token", "") or os.environ.get("GITHUB_TOKEN", "")
    nvd_api_key = _env("NVD_API_KEY") or advisor_section.get("nvd_api_key", "") or os.environ.get("NVD_API_KEY", "")
    registry_url = _env("REGISTRY_URL") or advisor_section.get("registry_url", "https://registry.npmjs.org")
    log_level = _env("LOG_LEVEL") or logging_section.get("level", "WARNING")

    timeout = _numeric_override("TIMEOUT", advisor_section.get("timeout", 10.0), float)
    concurrency = _numeric_override("CONCURRENCY", advisor_section.get("concurrency", 10), int)

    return AdvisorSettings(
        github_token=str(github_token),
        nvd_api_key=str(nvd_api_key),
        registry_url=str(registry_url),
        timeout=float(timeout),
        concurrency=int(concurrency),
        log_level=str(log_level).upper(),
    )


__all__ = [
    "AdvisorSettings",
    "get_advisor_settings",
    "get_config",
    "get_default_config_path",
]
