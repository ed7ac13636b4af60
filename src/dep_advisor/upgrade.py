"""Upgrade selection for a declared constraint.

Purpose
-------
Given a declared constraint and the versions published for a package, pick
the newest version that is a valid replacement and write it back behind the
original operator (``^17.0.1`` becomes ``^17.0.2``).

Contents
--------
* :class:`UpgradeStatus` - Outcome of a selection
* :class:`UpgradeDecision` - Structured result handed to reporting
* :func:`is_eligible_upgrade` - Per-candidate eligibility rule
* :func:`select_best_upgrade` - Pick the best eligible candidate
* :func:`select_best_upgrade_from_strings` - Same, from raw strings

Eligibility
-----------
A candidate must be strictly greater than the declared version and:

* ``^``: stay inside the caret range of the declared version,
* ``~``: stay inside the tilde range,
* ``>`` / ``>=``: nothing further,
* ``<`` / ``<=``: stay under the bound, which never combines with
  "strictly greater", so these constraints never upgrade,
* exact: keep the declared major version.

When several candidates rank equal, the first one seen wins. That depends on
candidate order and should not be relied upon.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .errors import MalformedVersion
from .semver import Constraint, Operator, Version, compare, parse_constraint, parse_version, within_caret, within_tilde

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)


class UpgradeStatus(str, Enum):
    """Outcome of an upgrade selection.

    Attributes:
        UPGRADE: An eligible newer version was found.
        ALREADY_LATEST: An exact pin already points at the newest eligible
            published version.
        NO_ELIGIBLE_UPGRADE: Nothing qualifies (including an empty list).
    """

    UPGRADE = "upgrade"
    ALREADY_LATEST = "already latest"
    NO_ELIGIBLE_UPGRADE = "no eligible upgrade"


@dataclass(frozen=True, slots=True)
class UpgradeDecision:
    """Result of :func:`select_best_upgrade`.

    Attributes:
        status: What the selector concluded.
        constraint: The declared constraint that was evaluated.
        best: The chosen version when ``status`` is UPGRADE, else None.
    """

    status: UpgradeStatus
    constraint: Constraint
    best: Version | None = None

    @property
    def new_constraint(self) -> str | None:
        """Return the re-prefixed constraint string, or None without upgrade."""
        if self.best is None:
            return None
        return str(self.constraint.with_version(self.best))

    @property
    def has_upgrade(self) -> bool:
        """Return True when an upgrade was selected."""
        return self.status is UpgradeStatus.UPGRADE


def _exact_allows(candidate: Version, base: Version) -> bool:
    return candidate.major == base.major


def _upper_bound_allows(strict: bool) -> Callable[[Version, Version], bool]:
    def check(candidate: Version, base: Version) -> bool:
        result = compare(candidate, base)
        return result < 0 if strict else result <= 0

    return check


_ELIGIBILITY: dict[Operator, Callable[[Version, Version], bool]] = {
    Operator.EXACT: _exact_allows,
    Operator.EQ: _exact_allows,
    Operator.GT: lambda candidate, base: True,
    Operator.GE: lambda candidate, base: True,
    Operator.LT: _upper_bound_allows(strict=True),
    Operator.LE: _upper_bound_allows(strict=False),
    Operator.CARET: within_caret,
    Operator.TILDE: within_tilde,
}


def is_eligible_upgrade(candidate: Version, constraint: Constraint) -> bool:
    """Return True if ``candidate`` is a strictly newer, allowed replacement.

    Args:
        candidate: A published version.
        constraint: The declared constraint.

    Returns:
        True if the candidate qualifies as an upgrade.
    """
    if compare(candidate, constraint.version) <= 0:
        return False
    return _ELIGIBILITY[constraint.operator](candidate, constraint.version)


def select_best_upgrade(constraint: Constraint, candidates: Iterable[Version]) -> UpgradeDecision:
    """Pick the newest eligible upgrade for ``constraint``.

    Args:
        constraint: The declared constraint.
        candidates: Published versions, in any order, duplicates allowed.

    Returns:
        An UPGRADE decision carrying the best candidate; ALREADY_LATEST when an
        exact pin has candidates but none of them is newer;
        otherwise NO_ELIGIBLE_UPGRADE. Never raises for unsatisfiable input.

    Example:
        >>> decision = select_best_upgrade(
        ...     parse_constraint("^17.0.1"),
        ...     [parse_version(v) for v in ("16.14.0", "17.0.2", "18.2.0")],
        ... )
        >>> decision.new_constraint
        '^17.0.2'
    """
    best: Version | None = None
    seen_any = False
    newer_exists = False
    for candidate in candidates:
        seen_any = True
        if compare(candidate, constraint.version) > 0:
            newer_exists = True
        if not is_eligible_upgrade(candidate, constraint):
            continue
        if best is None or compare(candidate, best) > 0:
            best = candidate

    if best is not None:
        return UpgradeDecision(status=UpgradeStatus.UPGRADE, constraint=constraint, best=best)
    if constraint.operator.is_exact and seen_any and not newer_exists:
        return UpgradeDecision(status=UpgradeStatus.ALREADY_LATEST, constraint=constraint)
    return UpgradeDecision(status=UpgradeStatus.NO_ELIGIBLE_UPGRADE, constraint=constraint)


def _parse_candidates(candidates: Iterable[str]) -> list[Version]:
    parsed: list[Version] = []
    for raw in candidates:
        try:
            parsed.append(parse_version(raw))
        except MalformedVersion:
            logger.debug("Skipping unparseable published version %r", raw)
    return parsed


def select_best_upgrade_from_strings(constraint: str, candidates: Iterable[str]) -> UpgradeDecision:
    """Parse a declared constraint and raw published versions, then select.

    Published versions that do not parse are skipped.

    Raises:
        MalformedConstraint: If ``constraint`` does not parse.
    """
    return select_best_upgrade(parse_constraint(constraint), _parse_candidates(candidates))


__all__ = [
    "UpgradeDecision",
    "UpgradeStatus",
    "is_eligible_upgrade",
    "select_best_upgrade",
    "select_best_upgrade_from_strings",
]
