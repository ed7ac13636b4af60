"""Error kinds raised by the advisor.

Purpose
-------
Give every failure a named type so callers can catch per package and carry
on with the rest of a batch.

Contents
--------
* :class:`AdvisorError` - Base class for everything raised here
* :class:`MalformedVersion` - A version string does not match the grammar
* :class:`MalformedConstraint` - A constraint body does not parse
* :class:`ManifestError` - package.json cannot be found or read
* :class:`RegistryError` - The npm registry lookup failed
* :class:`AdvisoryError` - An advisory database lookup failed

An unsatisfiable constraint is not an error; the upgrade selector reports it
as :attr:`~dep_advisor.upgrade.UpgradeStatus.NO_ELIGIBLE_UPGRADE`.
"""

from __future__ import annotations


class AdvisorError(Exception):
    """Base exception for dep-advisor failures."""


class MalformedVersion(AdvisorError, ValueError):
    """Raised when a version string does not match the version grammar.

    Attributes:
        raw: The offending input string.
    """

    def __init__(self, raw: str) -> None:
        self.raw = raw
        super().__init__(f"Malformed version: {raw!r}")


class MalformedConstraint(AdvisorError, ValueError):
    """Raised when an operator-prefixed constraint does not parse.

    Attributes:
        raw: The offending input string.
    """

    def __init__(self, raw: str) -> None:
        self.raw = raw
        super().__init__(f"Malformed constraint: {raw!r}")


class ManifestError(AdvisorError):
    """Raised when package.json is missing or not a JSON object."""


class RegistryError(AdvisorError):
    """Raised when the registry cannot provide versions for a package."""

    def __init__(self, package: str, message: str) -> None:
        self.package = package
        super().__init__(f"{package}: {message}")


class AdvisoryError(AdvisorError):
    """Raised when an advisory source cannot be queried for a package."""

    def __init__(self, package: str, message: str) -> None:
        self.package = package
        super().__init__(f"{package}: {message}")


__all__ = [
    "AdvisorError",
    "AdvisoryError",
    "MalformedConstraint",
    "MalformedVersion",
    "ManifestError",
    "RegistryError",
]
