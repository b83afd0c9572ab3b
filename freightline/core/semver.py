"""Semantic version parsing, ordering and range constraints for image tags.

Tags are parsed as ``[v]MAJOR[.MINOR[.PATCH]][-PRERELEASE][+BUILD]``.
Strict parsing requires all three numeric components.

Constraint syntax
-----------------
- comparators: ``>=1.2.0``, ``<2``, ``=1.0.0``, ``!=1.0.1``
- caret and tilde ranges: ``^1.2`` (``>=1.2.0 <2.0.0``), ``~1.2.3``
  (``>=1.2.3 <1.3.0``)
- wildcards and partials: ``1.x``, ``1.2.*``, ``1``
- AND with commas or spaces, OR with ``||``

A pre-release version only satisfies a constraint group that itself names
a pre-release version.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

_VERSION_RE = re.compile(
    r"^[vV]?(\d+)(?:\.(\d+))?(?:\.(\d+))?"
    r"(?:-([0-9A-Za-z.-]+))?(?:\+([0-9A-Za-z.-]+))?$"
)
_PARTIAL_RE = re.compile(
    r"^[vV]?(\d+|[xX*])(?:\.(\d+|[xX*]))?(?:\.(\d+|[xX*]))?"
    r"(?:-([0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?$"
)
_COMPARATOR_RE = re.compile(r"^(>=|<=|!=|==|=|>|<|\^|~)?(.+)$")
_OP_SPACING_RE = re.compile(r"(>=|<=|!=|==|=|>|<|\^|~)\s+")


class InvalidVersionError(ValueError):
    """Raised when a string is not a semantic version."""


class InvalidConstraintError(ValueError):
    """Raised when a constraint string cannot be parsed."""


class Version(BaseModel):
    """A parsed semantic version. ``original`` keeps the tag as written."""

    model_config = ConfigDict(frozen=True)

    major: int
    minor: int = 0
    patch: int = 0
    prerelease: tuple[str, ...] = ()
    original: str = ""

    @property
    def sort_key(self) -> tuple:
        """Key ordering versions by semver precedence (build metadata ignored)."""
        pre = tuple(
            (0, int(ident), "") if ident.isdigit() else (1, 0, ident)
            for ident in self.prerelease
        )
        return (self.major, self.minor, self.patch, 0 if self.prerelease else 1, pre)

    def __str__(self) -> str:
        core = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            core += "-" + ".".join(self.prerelease)
        return core


def parse_version(text: str, *, strict: bool = True) -> Version:
    """Parse *text* as a semantic version.

    Raises
    ------
    InvalidVersionError
        If *text* is not a version, or is partial while *strict* is set.
    """
    m = _VERSION_RE.match(text.strip())
    if not m:
        raise InvalidVersionError(f"invalid semantic version: {text!r}")
    if strict and (m[2] is None or m[3] is None):
        raise InvalidVersionError(f"incomplete semantic version: {text!r}")
    return Version(
        major=int(m[1]),
        minor=int(m[2] or 0),
        patch=int(m[3] or 0),
        prerelease=tuple(m[4].split(".")) if m[4] else (),
        original=text,
    )


def try_parse_version(text: str, *, strict: bool = True) -> Version | None:
    """Return the parsed version, or ``None`` when *text* is not one."""
    try:
        return parse_version(text, strict=strict)
    except InvalidVersionError:
        return None


# ---------------------------------------------------------------------------
# Constraints
# ---------------------------------------------------------------------------

_Comparator = tuple[str, Version]


class Constraint:
    """A parsed version range: an OR of AND-groups of comparators."""

    def __init__(self, text: str) -> None:
        self.text = text
        self._groups: list[list[_Comparator]] = [
            _parse_group(group, text) for group in text.split("||")
        ]

    def check(self, version: Version) -> bool:
        """Return ``True`` if *version* satisfies any group."""
        return any(_group_allows(group, version) for group in self._groups)

    def __repr__(self) -> str:
        return f"Constraint({self.text!r})"


def _group_allows(group: list[_Comparator], version: Version) -> bool:
    if version.prerelease and not any(v.prerelease for _, v in group):
        return False
    key = version.sort_key
    for op, bound in group:
        other = bound.sort_key
        if op == "=" and key != other:
            return False
        if op == "!=" and key == other:
            return False
        if op == ">" and not key > other:
            return False
        if op == ">=" and not key >= other:
            return False
        if op == "<" and not key < other:
            return False
        if op == "<=" and not key <= other:
            return False
    return True


def _parse_group(group: str, full_text: str) -> list[_Comparator]:
    group = _OP_SPACING_RE.sub(r"\1", group.strip())
    if not group:
        raise InvalidConstraintError(f"empty constraint group in {full_text!r}")
    comparators: list[_Comparator] = []
    for part in re.split(r"[,\s]+", group):
        if not part:
            continue
        m = _COMPARATOR_RE.match(part)
        op, raw = (m[1] or "="), m[2]
        comparators.extend(_expand(op, raw, full_text))
    return comparators


def _expand(op: str, raw: str, full_text: str) -> list[_Comparator]:
    m = _PARTIAL_RE.match(raw)
    if not m:
        raise InvalidConstraintError(f"invalid version {raw!r} in constraint {full_text!r}")
    nums: list[int | None] = [
        None if (g is None or g in ("x", "X", "*")) else int(g) for g in m.groups()[:3]
    ]
    # Anything after a wildcard is a wildcard too.
    for i in range(1, 3):
        if nums[i - 1] is None:
            nums[i] = None
    pre = tuple(m[4].split(".")) if m[4] else ()
    major, minor, patch = nums
    given = sum(n is not None for n in nums)

    def v(a: int, b: int = 0, c: int = 0, p: tuple[str, ...] = ()) -> Version:
        return Version(major=a, minor=b, patch=c, prerelease=p)

    low = v(major or 0, minor or 0, patch or 0, pre)

    if op == "==":
        op = "="
    if given == 0:
        return []  # "*" matches everything
    if op == "=":
        if given == 3:
            return [("=", low)]
        return [(">=", low), ("<", _bump(major, minor))]
    if op == "!=":
        return [("!=", low)]
    if op == ">=" or op == "<":
        return [(op, low)]
    if op == ">":
        return [(">", low)] if given == 3 else [(">=", _bump(major, minor))]
    if op == "<=":
        return [("<=", low)] if given == 3 else [("<", _bump(major, minor))]
    if op == "~":
        upper = v(major + 1) if minor is None else v(major, minor + 1)
        return [(">=", low), ("<", upper)]
    # op == "^": bump the left-most non-zero component that was given
    if major != 0 or minor is None:
        upper = v(major + 1)
    elif minor != 0 or patch is None:
        upper = v(0, minor + 1)
    else:
        upper = v(0, 0, patch + 1)
    return [(">=", low), ("<", upper)]


def _bump(major: int, minor: int | None) -> Version:
    if minor is None:
        return Version(major=major + 1)
    return Version(major=major, minor=minor + 1)
