"""Version parsing and constraint arithmetic.

Elm manifests express dependency versions two ways: applications pin exact
versions ("1.0.5") and packages declare ranges ("1.0.0 <= v < 2.0.0").
Comparator syntax (">=1.0 <2.0") is accepted as well so constraints can be
written by hand.

All ranges live on a discrete semver line, so intersections are exact and
never depend on floating-point comparisons.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

import semver
from packaging.specifiers import InvalidSpecifier, SpecifierSet
from pydantic import BaseModel, ConfigDict

MINIMUM = semver.Version(0, 0, 0)

ELM_RANGE = re.compile(
    r"^\s*(?P<lower>[^\s<]+)\s*(?P<lower_op><=|<)\s*v\s*(?P<upper_op><=|<)\s*(?P<upper>\S+)\s*$"
)
_OPERATOR_GAP = re.compile(r"(==|>=|<=|>|<)\s+")


class InvalidConstraintError(ValueError):
    """Raised when a version or version constraint string cannot be parsed."""

    def __init__(self, text: str, reason: str) -> None:
        self.text = text
        self.reason = reason
        super().__init__(f"Invalid version constraint {text!r}: {reason}")


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3" → "1.2.3"

    Raises:
        InvalidConstraintError: If the string is not a version at all, or
            has more than three dot-separated parts.
    """
    parts = version_str.strip().split(".")
    if len(parts) > 3:
        raise InvalidConstraintError(version_str, "more than three version parts")
    # Pad with zeros to ensure we have at least 3 parts
    while len(parts) < 3:
        parts.append("0")
    try:
        return semver.Version.parse(".".join(parts))
    except ValueError as exc:
        raise InvalidConstraintError(version_str, str(exc)) from exc


class VersionConstraint(BaseModel):
    """A range of acceptable versions for one dependency.

    The lower bound always exists (``0.0.0`` inclusive when unstated); the
    upper bound is optional. An exact pin is the range whose bounds are equal
    and both inclusive.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    lower: semver.Version = MINIMUM
    lower_inclusive: bool = True
    upper: semver.Version | None = None
    upper_inclusive: bool = False

    @classmethod
    def exact(cls, version: semver.Version) -> VersionConstraint:
        return cls(lower=version, upper=version, upper_inclusive=True)

    @property
    def is_pin(self) -> bool:
        return (
            self.upper is not None
            and self.lower == self.upper
            and self.lower_inclusive
            and self.upper_inclusive
        )

    @property
    def effective_lower(self) -> semver.Version:
        """Smallest version the range admits."""
        return self.lower if self.lower_inclusive else self.lower.bump_patch()

    @property
    def is_empty(self) -> bool:
        if self.upper is None:
            return False
        if self.upper_inclusive:
            return self.effective_lower > self.upper
        return self.effective_lower >= self.upper

    def contains(self, version: semver.Version) -> bool:
        """Whether ``version`` satisfies this constraint."""
        if version < self.lower or (version == self.lower and not self.lower_inclusive):
            return False
        if self.upper is None:
            return True
        return version < self.upper or (version == self.upper and self.upper_inclusive)

    def intersect(self, other: VersionConstraint) -> VersionConstraint | None:
        """Return the range admitted by both constraints, or None if disjoint.

        On equal bounds the exclusive side wins, so ``[1.0.0, 2.0.0)`` and
        ``[1.0.0, 2.0.0]`` intersect to ``[1.0.0, 2.0.0)``.
        """
        if self.lower == other.lower:
            lower, lower_inclusive = (
                self.lower,
                self.lower_inclusive and other.lower_inclusive,
            )
        elif self.lower > other.lower:
            lower, lower_inclusive = self.lower, self.lower_inclusive
        else:
            lower, lower_inclusive = other.lower, other.lower_inclusive

        if self.upper is None:
            upper, upper_inclusive = other.upper, other.upper_inclusive
        elif other.upper is None or self.upper < other.upper:
            upper, upper_inclusive = self.upper, self.upper_inclusive
        elif self.upper == other.upper:
            upper, upper_inclusive = (
                self.upper,
                self.upper_inclusive and other.upper_inclusive,
            )
        else:
            upper, upper_inclusive = other.upper, other.upper_inclusive

        narrowed = VersionConstraint(
            lower=lower,
            lower_inclusive=lower_inclusive,
            upper=upper,
            upper_inclusive=upper_inclusive if upper is not None else False,
        )
        return None if narrowed.is_empty else narrowed

    def preferred_version(self, known: Iterable[semver.Version] = ()) -> semver.Version:
        """Pick the highest version this range can vouch for.

        A pin or an inclusive upper bound names its own maximum. An exclusive
        upper bound has no finite maximum, so the newest ``known`` version
        inside the range is used, falling back to the lowest admitted version.
        """
        if self.is_pin:
            return self.lower
        if self.upper is not None and self.upper_inclusive:
            return self.upper
        candidates = [v for v in known if self.contains(v)]
        if candidates:
            return max(candidates)
        return self.effective_lower

    def __str__(self) -> str:
        if self.is_pin:
            return str(self.lower)
        lower_op = "<=" if self.lower_inclusive else "<"
        if self.upper is None:
            return f"{'>=' if self.lower_inclusive else '>'}{self.lower}"
        upper_op = "<=" if self.upper_inclusive else "<"
        return f"{self.lower} {lower_op} v {upper_op} {self.upper}"


def parse_constraint(text: str) -> VersionConstraint:
    """Parse any supported constraint notation.

    Examples:
        "1.0.5" → exact pin
        "1.0.0 <= v < 2.0.0" → Elm range
        ">=1.0 <2.0" → comparator range

    Raises:
        InvalidConstraintError: On syntax errors or empty ranges.
    """
    stripped = text.strip()
    if not stripped:
        raise InvalidConstraintError(text, "empty string")

    match = ELM_RANGE.match(stripped)
    if match:
        constraint = VersionConstraint(
            lower=parse_version(match["lower"]),
            lower_inclusive=match["lower_op"] == "<=",
            upper=parse_version(match["upper"]),
            upper_inclusive=match["upper_op"] == "<=",
        )
    elif stripped[0].isdigit():
        constraint = VersionConstraint.exact(parse_version(stripped))
    else:
        constraint = _parse_comparators(text, stripped)

    if constraint.is_empty:
        raise InvalidConstraintError(text, "range admits no version")
    return constraint


def _parse_comparators(text: str, stripped: str) -> VersionConstraint:
    """Parse comparator syntax like ">=1.0, <2.0" or ">= 1.0 < 2.0"."""
    compact = _OPERATOR_GAP.sub(r"\1", stripped)
    try:
        specifiers = SpecifierSet(",".join(compact.replace(",", " ").split()))
    except InvalidSpecifier as exc:
        raise InvalidConstraintError(text, str(exc)) from exc

    constraint = VersionConstraint()
    count = 0
    for specifier in sorted(specifiers, key=str):
        count += 1
        bound = _bound(text, specifier.operator, parse_version(specifier.version))
        narrowed = constraint.intersect(bound)
        if narrowed is None:
            raise InvalidConstraintError(text, "range admits no version")
        constraint = narrowed
    if not count:
        raise InvalidConstraintError(text, "no comparators found")
    return constraint


def _bound(text: str, operator: str, version: semver.Version) -> VersionConstraint:
    if operator == "==":
        return VersionConstraint.exact(version)
    if operator == ">=":
        return VersionConstraint(lower=version)
    if operator == ">":
        return VersionConstraint(lower=version, lower_inclusive=False)
    if operator == "<=":
        return VersionConstraint(upper=version, upper_inclusive=True)
    if operator == "<":
        return VersionConstraint(upper=version)
    raise InvalidConstraintError(text, f"unsupported operator {operator!r}")
