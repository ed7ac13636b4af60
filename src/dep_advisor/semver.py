"""Semantic versions, npm-style constraints and their comparison.

Purpose
-------
Parse dotted version strings and operator-prefixed constraints, order
versions, and decide whether a version satisfies a constraint.

Contents
--------
* :class:`Version` - Immutable parsed version, totally ordered
* :class:`Operator` - Closed set of constraint operators
* :class:`Constraint` - Operator plus version, e.g. ``^1.2.3``
* :func:`parse_version` - Parse a bare version string
* :func:`parse_constraint` - Parse a declared dependency string
* :func:`compare` - Three-way comparison of two versions
* :func:`satisfies` - Constraint membership test
* :func:`is_compatible` - String-level convenience around :func:`satisfies`

Known Limitation
----------------
Pre-release identifiers are ordered as plain strings, so ``1.0.0-alpha.10``
sorts before ``1.0.0-alpha.2``. Full SemVer dot-segment rules are not applied.
Build metadata never takes part in ordering.

System Role
-----------
The leaf of the engine. Every other module consumes :class:`Version` and
:class:`Constraint` values produced here. Everything in this module is a pure
function over immutable values and is safe to call from any thread.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .errors import MalformedConstraint, MalformedVersion

if TYPE_CHECKING:
    from collections.abc import Callable

_RE_VERSION = re.compile(
    r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?"
    r"(?:-([0-9A-Za-z.-]+))?"
    r"(?:\+([0-9A-Za-z.-]+))?$",
    re.ASCII,
)


@dataclass(frozen=True, slots=True)
class Version:
    """A parsed ``major.minor.patch[-prerelease][+build]`` version.

    Attributes:
        major: Major version number.
        minor: Minor version number.
        patch: Patch version number.
        prerelease: Pre-release tag without the leading ``-``, or "".
        build: Build metadata without the leading ``+``, or "".
    """

    major: int
    minor: int
    patch: int
    prerelease: str = ""
    build: str = ""

    def __str__(self) -> str:
        """Return the canonical ``1.2.3-pre+build`` rendering."""
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += f"-{self.prerelease}"
        if self.build:
            text += f"+{self.build}"
        return text

    def __lt__(self, other: object) -> bool:
        """Compare versions for sorting."""
        if not isinstance(other, Version):
            return NotImplemented
        return compare(self, other) < 0

    def __le__(self, other: object) -> bool:
        """Compare versions."""
        if not isinstance(other, Version):
            return NotImplemented
        return compare(self, other) <= 0

    def __gt__(self, other: object) -> bool:
        """Compare versions."""
        if not isinstance(other, Version):
            return NotImplemented
        return compare(self, other) > 0

    def __ge__(self, other: object) -> bool:
        """Compare versions."""
        if not isinstance(other, Version):
            return NotImplemented
        return compare(self, other) >= 0

    @property
    def is_prerelease(self) -> bool:
        """Return True when the version carries a pre-release tag."""
        return bool(self.prerelease)

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse ``text`` into a Version. See :func:`parse_version`."""
        return parse_version(text)


class Operator(str, Enum):
    """Operators accepted in front of a declared version.

    ``EXACT`` (no operator) and ``EQ`` (``=``) mean the same thing; both are
    kept so the original token can be written back unchanged.
    """

    EXACT = ""
    EQ = "="
    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="
    CARET = "^"
    TILDE = "~"

    @property
    def is_exact(self) -> bool:
        """Return True for the two exact-match spellings."""
        return self in (Operator.EXACT, Operator.EQ)


# Longest tokens first so ">=" is never read as ">" followed by "=".
_OPERATOR_TOKENS: tuple[Operator, ...] = (
    Operator.GE,
    Operator.LE,
    Operator.GT,
    Operator.LT,
    Operator.EQ,
    Operator.CARET,
    Operator.TILDE,
)


@dataclass(frozen=True, slots=True)
class Constraint:
    """A declared version constraint such as ``^1.2.3`` or ``>=2.0.0``.

    Attributes:
        operator: The constraint operator.
        version: The version the operator applies to.
    """

    operator: Operator
    version: Version

    def __str__(self) -> str:
        """Return the constraint as ``operator + version``."""
        return f"{self.operator.value}{self.version}"

    def with_version(self, version: Version) -> Constraint:
        """Return a copy of this constraint pointing at ``version``."""
        return Constraint(operator=self.operator, version=version)


def parse_version(text: str) -> Version:
    """Parse a bare version string.

    Accepts an optional leading ``v``, one to three numeric groups (missing
    groups default to 0), an optional ``-prerelease`` and an optional
    ``+build``. Surrounding whitespace is ignored.

    Args:
        text: Version string like "1.2.3", "v2", or "1.0.0-beta.1+sha.abc".

    Returns:
        The parsed version.

    Raises:
        MalformedVersion: If the string is empty or does not match.

    Example:
        >>> str(parse_version("v1.2"))
        '1.2.0'
        >>> parse_version("1.2.3-rc.1").prerelease
        'rc.1'
    """
    match = _RE_VERSION.match(text.strip())
    if match is None:
        raise MalformedVersion(text)
    major, minor, patch, prerelease, build = match.groups()
    return Version(
        major=int(major),
        minor=int(minor or 0),
        patch=int(patch or 0),
        prerelease=prerelease or "",
        build=build or "",
    )


def split_operator(text: str) -> tuple[Operator, str]:
    """Split a leading operator token from the version body.

    Args:
        text: Constraint string like ">=1.0.0".

    Returns:
        Tuple of (operator, remaining body with whitespace stripped).
    """
    stripped = text.strip()
    for operator in _OPERATOR_TOKENS:
        if stripped.startswith(operator.value):
            return operator, stripped[len(operator.value) :].strip()
    return Operator.EXACT, stripped


def parse_constraint(text: str) -> Constraint:
    """Parse a declared dependency string into a Constraint.

    Args:
        text: Constraint like "^1.2.3", "~0.4", ">= 2.0.0" or "16.14.0".

    Returns:
        The parsed constraint. No operator means exact match.

    Raises:
        MalformedConstraint: If the body after the operator is not a version.

    Example:
        >>> c = parse_constraint("^17.0.1")
        >>> c.operator is Operator.CARET, str(c.version)
        (True, '17.0.1')
    """
    operator, body = split_operator(text)
    try:
        version = parse_version(body)
    except MalformedVersion as exc:
        raise MalformedConstraint(text) from exc
    return Constraint(operator=operator, version=version)


def _compare_prerelease(left: str, right: str) -> int:
    if left == right:
        return 0
    # A release outranks any pre-release of the same core version.
    if not left:
        return 1
    if not right:
        return -1
    return -1 if left < right else 1


def compare(left: Version, right: Version) -> int:
    """Three-way comparison of two versions.

    Args:
        left: First version.
        right: Second version.

    Returns:
        -1 if left < right, 0 if they rank equal, 1 if left > right.

    Example:
        >>> compare(parse_version("1.0.0"), parse_version("1.0.0-rc.1"))
        1
    """
    left_core = (left.major, left.minor, left.patch)
    right_core = (right.major, right.minor, right.patch)
    if left_core != right_core:
        return -1 if left_core < right_core else 1
    return _compare_prerelease(left.prerelease, right.prerelease)


def within_caret(version: Version, base: Version) -> bool:
    """Return True if ``version`` keeps the leftmost non-zero part of ``base``.

    ``^1.2.3`` is ``>=1.2.3 <2.0.0``, ``^0.2.3`` is ``>=0.2.3 <0.3.0`` and
    ``^0.0.3`` only admits patch 3 of ``0.0``.
    """
    if base.major > 0:
        return version.major == base.major and compare(version, base) >= 0
    if base.minor > 0:
        return version.major == 0 and version.minor == base.minor and compare(version, base) >= 0
    return version.major == 0 and version.minor == 0 and version.patch == base.patch


def within_tilde(version: Version, base: Version) -> bool:
    """Return True if ``version`` only moves the patch level of ``base``."""
    return version.major == base.major and version.minor == base.minor and compare(version, base) >= 0


_SATISFIERS: dict[Operator, Callable[[Version, Version], bool]] = {
    Operator.EXACT: lambda v, c: compare(v, c) == 0,
    Operator.EQ: lambda v, c: compare(v, c) == 0,
    Operator.GT: lambda v, c: compare(v, c) > 0,
    Operator.GE: lambda v, c: compare(v, c) >= 0,
    Operator.LT: lambda v, c: compare(v, c) < 0,
    Operator.LE: lambda v, c: compare(v, c) <= 0,
    Operator.CARET: within_caret,
    Operator.TILDE: within_tilde,
}


def satisfies(version: Version, constraint: Constraint) -> bool:
    """Decide whether ``version`` is admitted by ``constraint``.

    Args:
        version: The concrete version.
        constraint: The declared constraint.

    Returns:
        True if the version falls inside the constraint's range.

    Example:
        >>> satisfies(parse_version("0.2.5"), parse_constraint("^0.2.3"))
        True
        >>> satisfies(parse_version("1.3.0"), parse_constraint("~1.2.3"))
        False
    """
    return _SATISFIERS[constraint.operator](version, constraint.version)


def is_compatible(version: str, constraint: str) -> bool:
    """Parse both sides and test membership.

    Raises:
        MalformedVersion: If ``version`` does not parse.
        MalformedConstraint: If ``constraint`` does not parse.
    """
    return satisfies(parse_version(version), parse_constraint(constraint))


__all__ = [
    "Constraint",
    "Operator",
    "Version",
    "compare",
    "is_compatible",
    "parse_constraint",
    "parse_version",
    "satisfies",
    "split_operator",
    "within_caret",
    "within_tilde",
]
