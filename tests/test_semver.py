"""Version core stories: strings become versions, versions meet constraints.

The semver module parses declared versions and constraints, orders versions,
and decides caret, tilde and comparator membership. Everything here is pure,
so the tests need no fixtures.
"""

from __future__ import annotations

import pytest

from dep_advisor.errors import AdvisorError, MalformedConstraint, MalformedVersion
from dep_advisor.semver import (
    Constraint,
    Operator,
    Version,
    compare,
    is_compatible,
    parse_constraint,
    parse_version,
    satisfies,
    split_operator,
)


def v(text: str) -> Version:
    return parse_version(text)


def c(text: str) -> Constraint:
    return parse_constraint(text)


# ════════════════════════════════════════════════════════════════════════════
# parse_version: Bare version grammar
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_parse_version_reads_three_numeric_groups() -> None:
    assert v("1.2.3") == Version(1, 2, 3)


@pytest.mark.os_agnostic
def test_parse_version_fills_missing_groups_with_zero() -> None:
    assert v("7") == Version(7, 0, 0)
    assert v("7.4") == Version(7, 4, 0)


@pytest.mark.os_agnostic
def test_parse_version_drops_leading_v() -> None:
    assert v("v2.0.1") == Version(2, 0, 1)


@pytest.mark.os_agnostic
def test_parse_version_ignores_surrounding_whitespace() -> None:
    assert v("  1.0.0\n") == Version(1, 0, 0)


@pytest.mark.os_agnostic
def test_parse_version_keeps_prerelease_and_build() -> None:
    parsed = v("1.0.0-beta.1+sha.abc")

    assert parsed.prerelease == "beta.1"
    assert parsed.build == "sha.abc"


@pytest.mark.os_agnostic
def test_parse_version_marks_prereleases() -> None:
    assert v("1.0.0-rc.1").is_prerelease is True
    assert v("1.0.0").is_prerelease is False


@pytest.mark.os_agnostic
@pytest.mark.parametrize("raw", ["", "   ", "abc", "1.2.3.4", "1..2", "1.2.x", "-1.0.0", "1.0.0-"])
def test_parse_version_rejects_malformed_input(raw: str) -> None:
    with pytest.raises(MalformedVersion) as exc_info:
        parse_version(raw)

    assert exc_info.value.raw == raw


@pytest.mark.os_agnostic
@pytest.mark.parametrize("raw", ["١.٢.٣", "1.２.3", "1.2.3-é"])
def test_parse_version_accepts_only_ascii_digits_and_identifiers(raw: str) -> None:
    with pytest.raises(MalformedVersion):
        parse_version(raw)


@pytest.mark.os_agnostic
def test_malformed_version_is_a_value_error_and_an_advisor_error() -> None:
    with pytest.raises(ValueError):
        parse_version("nope")
    with pytest.raises(AdvisorError):
        parse_version("nope")


@pytest.mark.os_agnostic
@pytest.mark.parametrize("raw", ["0.0.0", "1.2.3", "10.20.30", "1.0.0-alpha", "2.1.0-rc.1"])
def test_version_round_trips_through_its_string(raw: str) -> None:
    assert v(str(v(raw))) == v(raw)


@pytest.mark.os_agnostic
def test_version_str_renders_canonical_form() -> None:
    assert str(v("v1.2")) == "1.2.0"
    assert str(v("1.0.0-rc.1+build.5")) == "1.0.0-rc.1+build.5"


@pytest.mark.os_agnostic
def test_version_parse_classmethod_matches_function() -> None:
    assert Version.parse("3.1.4") == v("3.1.4")


# ════════════════════════════════════════════════════════════════════════════
# parse_constraint: Operator plus version body
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
@pytest.mark.parametrize(
    ("raw", "operator"),
    [
        ("1.2.3", Operator.EXACT),
        ("=1.2.3", Operator.EQ),
        (">1.2.3", Operator.GT),
        (">=1.2.3", Operator.GE),
        ("<1.2.3", Operator.LT),
        ("<=1.2.3", Operator.LE),
        ("^1.2.3", Operator.CARET),
        ("~1.2.3", Operator.TILDE),
    ],
)
def test_parse_constraint_recognises_every_operator(raw: str, operator: Operator) -> None:
    parsed = c(raw)

    assert parsed.operator is operator
    assert parsed.version == Version(1, 2, 3)


@pytest.mark.os_agnostic
def test_parse_constraint_prefers_longest_operator() -> None:
    assert c(">=2.0.0").operator is Operator.GE
    assert c("<=2.0.0").operator is Operator.LE


@pytest.mark.os_agnostic
def test_parse_constraint_accepts_space_after_operator() -> None:
    assert c(">= 1.0.0") == Constraint(Operator.GE, Version(1, 0, 0))


@pytest.mark.os_agnostic
def test_parse_constraint_renders_operator_and_version() -> None:
    assert str(c("^17.0.1")) == "^17.0.1"
    assert str(c("16.14.0")) == "16.14.0"


@pytest.mark.os_agnostic
@pytest.mark.parametrize("raw", ["^", ">=", "^latest", "*", "1.x", "", "git+https://example.invalid/repo.git"])
def test_parse_constraint_rejects_malformed_bodies(raw: str) -> None:
    with pytest.raises(MalformedConstraint) as exc_info:
        parse_constraint(raw)

    assert exc_info.value.raw == raw
    assert isinstance(exc_info.value.__cause__, MalformedVersion)


@pytest.mark.os_agnostic
def test_split_operator_returns_exact_for_bare_versions() -> None:
    assert split_operator(" 1.0.0 ") == (Operator.EXACT, "1.0.0")


@pytest.mark.os_agnostic
def test_constraint_with_version_keeps_operator() -> None:
    assert str(c("=2.0.0").with_version(v("2.1.0"))) == "=2.1.0"


# ════════════════════════════════════════════════════════════════════════════
# compare: Ordering of versions
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_compare_orders_numeric_parts_numerically() -> None:
    assert compare(v("1.10.0"), v("1.9.0")) == 1
    assert compare(v("1.2.3"), v("1.2.4")) == -1


@pytest.mark.os_agnostic
def test_compare_is_reflexive() -> None:
    for raw in ("0.0.1", "1.2.3", "1.0.0-rc.1"):
        assert compare(v(raw), v(raw)) == 0


@pytest.mark.os_agnostic
def test_compare_ranks_release_above_its_prerelease() -> None:
    assert compare(v("1.0.0"), v("1.0.0-rc.1")) == 1
    assert compare(v("1.0.0-rc.1"), v("1.0.0")) == -1


@pytest.mark.os_agnostic
def test_compare_orders_prereleases_lexically() -> None:
    assert compare(v("1.0.0-alpha"), v("1.0.0-beta")) == -1
    assert compare(v("1.0.0-alpha.10"), v("1.0.0-alpha.2")) == -1


@pytest.mark.os_agnostic
def test_compare_ignores_build_metadata() -> None:
    assert compare(v("1.0.0+a"), v("1.0.0+b")) == 0


@pytest.mark.os_agnostic
def test_version_equality_is_structural_including_build() -> None:
    assert v("1.0.0+a") != v("1.0.0+b")


@pytest.mark.os_agnostic
def test_compare_is_antisymmetric_and_transitive() -> None:
    versions = [v(raw) for raw in ("0.9.0", "1.0.0-alpha", "1.0.0-beta", "1.0.0", "1.0.1", "2.0.0")]

    for left in versions:
        for right in versions:
            assert compare(left, right) == -compare(right, left)
    for a, b, third in zip(versions, versions[1:], versions[2:]):
        assert compare(a, b) < 0 and compare(b, third) < 0 and compare(a, third) < 0


@pytest.mark.os_agnostic
def test_versions_sort_with_sorted() -> None:
    ordered = sorted([v("2.0.0"), v("1.0.0"), v("1.0.0-rc.1"), v("1.2.0")])

    assert [str(item) for item in ordered] == ["1.0.0-rc.1", "1.0.0", "1.2.0", "2.0.0"]


@pytest.mark.os_agnostic
def test_version_rich_comparisons_follow_compare() -> None:
    assert v("1.0.0") < v("1.0.1")
    assert v("1.0.1") > v("1.0.0")
    assert v("1.0.0+a") <= v("1.0.0+b")
    assert v("1.0.0+a") >= v("1.0.0+b")


# ════════════════════════════════════════════════════════════════════════════
# satisfies: Constraint membership
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
@pytest.mark.parametrize(
    ("version", "constraint", "expected"),
    [
        ("1.2.3", "^1.2.0", True),
        ("2.0.0", "^1.2.3", False),
        ("1.2.2", "^1.2.3", False),
        ("0.2.5", "^0.2.3", True),
        ("0.3.0", "^0.2.3", False),
        ("0.0.3", "^0.0.3", True),
        ("0.0.4", "^0.0.3", False),
    ],
)
def test_caret_membership(version: str, constraint: str, expected: bool) -> None:
    assert satisfies(v(version), c(constraint)) is expected


@pytest.mark.os_agnostic
@pytest.mark.parametrize(
    ("version", "constraint", "expected"),
    [
        ("1.2.4", "~1.2.3", True),
        ("1.2.3", "~1.2.3", True),
        ("1.3.0", "~1.2.3", False),
        ("1.2.2", "~1.2.3", False),
    ],
)
def test_tilde_membership(version: str, constraint: str, expected: bool) -> None:
    assert satisfies(v(version), c(constraint)) is expected


@pytest.mark.os_agnostic
@pytest.mark.parametrize(
    ("version", "constraint", "expected"),
    [
        ("1.0.0", "1.0.0", True),
        ("1.0.0", "=1.0.0", True),
        ("1.0.1", "1.0.0", False),
        ("1.0.1", ">1.0.0", True),
        ("1.0.0", ">1.0.0", False),
        ("1.0.0", ">=1.0.0", True),
        ("0.9.9", "<1.0.0", True),
        ("1.0.0", "<1.0.0", False),
        ("1.0.0", "<=1.0.0", True),
    ],
)
def test_comparison_operators_apply_directly(version: str, constraint: str, expected: bool) -> None:
    assert satisfies(v(version), c(constraint)) is expected


@pytest.mark.os_agnostic
def test_is_compatible_parses_both_sides() -> None:
    assert is_compatible("1.2.4", "~1.2.3") is True


@pytest.mark.os_agnostic
def test_is_compatible_raises_for_bad_version() -> None:
    with pytest.raises(MalformedVersion):
        is_compatible("one", "^1.0.0")


@pytest.mark.os_agnostic
def test_is_compatible_raises_for_bad_constraint() -> None:
    with pytest.raises(MalformedConstraint):
        is_compatible("1.0.0", "^one")
