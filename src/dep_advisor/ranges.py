"""Vulnerability range evaluation.

Purpose
-------
Decide whether a concrete version falls inside the affected range of a
security advisory. Advisories describe ranges in one of two shapes:

* bounded CPE-style records with up to four optional bounds
  (NVD ``cpeMatch`` entries), and
* lists of comparator strings such as ``"<4.17.20"`` or
  ``">= 1.0.0, < 2.0.0"`` (GitHub Advisory Database).

Contents
--------
* :class:`BoundedRange` - Four optional bound strings
* :func:`is_affected` - Evaluate either range shape against a Version
* :func:`is_affected_raw` - Same, parsing the installed version first
* :func:`matches_comparator_string` - Evaluate one comparator string

Failure Semantics
-----------------
Advisory data is never trusted to be well formed. A bound or comparator that
fails to parse makes that single entry non-matching, so one broken feed record
cannot hide the remaining entries. A malformed *installed* version is fatal
for the package and raises :class:`~dep_advisor.errors.MalformedVersion`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias

from .errors import MalformedConstraint, MalformedVersion
from .semver import Operator, Version, compare, parse_constraint, parse_version, satisfies

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

_RE_COMPARATOR_SPLIT = re.compile(r"[\s,]+")
_BARE_OPERATORS = frozenset(op.value for op in Operator if op.value)


@dataclass(frozen=True, slots=True)
class BoundedRange:
    """An affected range expressed by up to four optional bounds.

    Empty strings are treated the same as missing bounds. A range with no
    bounds at all covers every version.

    Attributes:
        start_excluding: Affected versions are strictly greater than this.
        start_including: Affected versions are greater than or equal to this.
        end_excluding: Affected versions are strictly less than this.
        end_including: Affected versions are less than or equal to this.
    """

    start_excluding: str | None = None
    start_including: str | None = None
    end_excluding: str | None = None
    end_including: str | None = None

    @property
    def is_unbounded(self) -> bool:
        """Return True when no bound is present."""
        return not any(
            (bound or "").strip()
            for bound in (self.start_excluding, self.start_including, self.end_excluding, self.end_including)
        )


AdvisoryRange: TypeAlias = "BoundedRange | Sequence[str] | str"


def _bound_holds(version: Version, bound: str | None, accept: tuple[int, ...]) -> bool:
    """Check one optional bound; ``accept`` lists the allowed compare results.

    Raises:
        MalformedVersion: If the bound is present but does not parse.
    """
    if bound is None or not bound.strip():
        return True
    return compare(version, parse_version(bound)) in accept


def _in_bounded_range(version: Version, bounds: BoundedRange) -> bool:
    try:
        return (
            _bound_holds(version, bounds.start_excluding, (1,))
            and _bound_holds(version, bounds.start_including, (0, 1))
            and _bound_holds(version, bounds.end_excluding, (-1,))
            and _bound_holds(version, bounds.end_including, (-1, 0))
        )
    except MalformedVersion as exc:
        logger.debug("Ignoring bounded range with unparseable bound %r", exc.raw)
        return False


def _tokenize_comparators(entry: str) -> list[str]:
    """Split an entry into comparators, re-attaching detached operators.

    ``">= 1.0.0, < 2.0.0"`` becomes ``[">=1.0.0", "<2.0.0"]``.
    """
    tokens = [token for token in _RE_COMPARATOR_SPLIT.split(entry.strip()) if token]
    comparators: list[str] = []
    pending = ""
    for token in tokens:
        if token in _BARE_OPERATORS:
            pending += token
            continue
        comparators.append(pending + token)
        pending = ""
    if pending:
        # A trailing operator with no version cannot be evaluated.
        comparators.append(pending)
    return comparators


def matches_comparator_string(version: Version, entry: str) -> bool:
    """Evaluate a single comparator string against ``version``.

    All comparators inside the entry must hold. Unparseable or empty entries
    do not match.

    Args:
        version: The installed version.
        entry: Comparator string like ">=1.0.0 <2.0.0" or "1.2.3".

    Returns:
        True if every comparator in the entry admits the version.
    """
    comparators = _tokenize_comparators(entry)
    if not comparators:
        return False
    try:
        constraints = [parse_constraint(comparator) for comparator in comparators]
    except MalformedConstraint as exc:
        logger.debug("Ignoring unparseable advisory range entry %r (%s)", entry, exc.raw)
        return False
    return all(satisfies(version, constraint) for constraint in constraints)


def is_affected(version: Version, affected: AdvisoryRange) -> bool:
    """Decide whether ``version`` lies inside an advisory's affected range.

    Args:
        version: The installed version.
        affected: A :class:`BoundedRange`, a list of comparator strings (any
            entry matching is enough), or a single comparator string.

    Returns:
        True if the version is affected.

    Example:
        >>> v = parse_version("1.2.3")
        >>> is_affected(v, ["<1.0.0", ">=1.2.0 <1.3.0"])
        True
        >>> is_affected(v, BoundedRange(end_excluding="1.2.3"))
        False
    """
    if isinstance(affected, BoundedRange):
        return _in_bounded_range(version, affected)
    if isinstance(affected, str):
        return matches_comparator_string(version, affected)
    return any(matches_comparator_string(version, entry) for entry in affected)


def is_affected_raw(installed: str, affected: AdvisoryRange) -> bool:
    """Parse ``installed`` and evaluate it with :func:`is_affected`.

    Raises:
        MalformedVersion: If the installed version does not parse.
    """
    return is_affected(parse_version(installed), affected)


__all__ = [
    "AdvisoryRange",
    "BoundedRange",
    "is_affected",
    "is_affected_raw",
    "matches_comparator_string",
]
