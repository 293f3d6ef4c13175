"""Helpers for dealing with package version strings, version ranges and Unity versions."""
from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Optional, Tuple

from semantic_version import NpmSpec, Version
from semantic_version.base import AllOf, AnyOf, Range

# NpmSpec rejects a space between an operator and its version (">= 1.0.0")
_OPERATOR_SPACING_RE = re.compile(r"(\^|~>|~|>=|<=|>|<|=)\s+")

_RANGE_OPERATORS = {
    Range.OP_EQ: operator.eq,
    Range.OP_NEQ: operator.ne,
    Range.OP_GT: operator.gt,
    Range.OP_GTE: operator.ge,
    Range.OP_LT: operator.lt,
    Range.OP_LTE: operator.le,
}


def parse_version(raw: str) -> Version:
    """Parse a full semantic version such as ``1.2.3-beta.1``.

    Raises ValueError for anything that is not a complete version.
    """

    text = raw.strip()
    if text.startswith("v"):
        text = text[1:]
    return Version(text)


def _match_including_prerelease(clause, version: Version) -> bool:
    """Evaluate a parsed npm range by plain version ordering.

    An upper bound ``<X`` still keeps out the prereleases of ``X`` itself.
    """

    if isinstance(clause, AnyOf):
        return any(_match_including_prerelease(child, version) for child in clause.clauses)
    if isinstance(clause, AllOf):
        return all(_match_including_prerelease(child, version) for child in clause.clauses)
    if isinstance(clause, Range):
        target = clause.target
        if clause.operator == Range.OP_LT and not target.prerelease and version.truncate() == target:
            return False
        return _RANGE_OPERATORS[clause.operator](version, target)
    return clause.match(version)


@dataclass(frozen=True)
class DependencyRange:
    """An npm-style version range (``^1.2``, ``>=1.0.0 <2``, ``1.x || 2.0.0``)."""

    raw: str
    spec: NpmSpec
    single: Optional[Version] = None

    @classmethod
    def parse(cls, raw: str) -> "DependencyRange":
        text = _OPERATOR_SPACING_RE.sub(r"\1", raw.strip())
        return cls(text, NpmSpec(text))

    @classmethod
    def version(cls, version: Version) -> "DependencyRange":
        """A single-version declaration as written in a project manifest.

        It names exactly *version* but, as in VPM, accepts that version or later.
        """

        return cls(str(version), NpmSpec(f">={version}"), single=version)

    @classmethod
    def exact(cls, version: Version) -> "DependencyRange":
        return cls(f"={version}", NpmSpec(f"={version}"))

    @classmethod
    def minimum(cls, version: Version) -> "DependencyRange":
        return cls(f">={version}", NpmSpec(f">={version}"))

    def matches(self, version: Version, allow_prerelease: bool = False) -> bool:
        if self.spec.match(version):
            return True
        if not (allow_prerelease and version.prerelease):
            return False
        return _match_including_prerelease(self.spec.clause, version)

    def as_single_version(self) -> Optional[Version]:
        """Return the version when the range denotes exactly one version."""

        if self.single is not None:
            return self.single
        try:
            return parse_version(self.raw[1:] if self.raw.startswith("=") else self.raw)
        except ValueError:
            return None

    def __str__(self) -> str:  # type: ignore[override]
        return self.raw


def parse_vpm_dependency_range(raw: str) -> DependencyRange:
    """Parse a range declared by a package.

    VPM reads a bare version in ``vpmDependencies`` as the minimum acceptable version.
    """

    text = raw.strip()
    try:
        return DependencyRange.minimum(parse_version(text))
    except ValueError:
        return DependencyRange.parse(text)


# Unity -------------------------------------------------------------------

_UNITY_RE = re.compile(
    r"^(?P<major>\d+)"
    r"(?:\.(?P<minor>\d+)"
    r"(?:\.(?P<revision>\d+)(?:(?P<type>[abfpcx])(?P<increment>\d+))?)?)?"
    r"(?:c(?P<china>\d+))?$"
)

# experimental builds sort before alphas; China releases rank with finals
_RELEASE_ORDER = {"x": 0, "a": 1, "b": 2, "f": 3, "c": 3, "p": 4}


@total_ordering
@dataclass(frozen=True)
class UnityVersion:
    """Comparable representation of a Unity editor version such as ``2022.3.6f1``.

    Partial versions (``2022`` or ``2022.3``) sort before every release of that line.
    """

    raw: str
    major: int
    minor: int = 0
    revision: int = 0
    release_type: str = "x"
    increment: int = 0
    china_increment: int = 0

    @classmethod
    def parse(cls, raw: str) -> Optional["UnityVersion"]:
        text = raw.strip()
        match = _UNITY_RE.match(text)
        if not match:
            return None
        return cls(
            raw=text,
            major=int(match.group("major")),
            minor=int(match.group("minor") or 0),
            revision=int(match.group("revision") or 0),
            release_type=match.group("type") or "x",
            increment=int(match.group("increment") or 0),
            china_increment=int(match.group("china") or 0),
        )

    @classmethod
    def from_package(cls, unity: Optional[str], unity_release: Optional[str] = None) -> Optional["UnityVersion"]:
        """Combine the ``unity`` and ``unityRelease`` fields of a package manifest."""

        if not unity:
            return None
        if unity_release:
            return cls.parse(f"{unity.strip()}.{unity_release.strip()}")
        return cls.parse(unity)

    @property
    def key(self) -> Tuple[int, int, int, int, int, int]:
        return (
            self.major,
            self.minor,
            self.revision,
            _RELEASE_ORDER[self.release_type],
            self.increment,
            self.china_increment,
        )

    def __lt__(self, other: "UnityVersion") -> bool:  # type: ignore[override]
        return self.key < other.key

    def __eq__(self, other: object) -> bool:  # type: ignore[override]
        if not isinstance(other, UnityVersion):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:  # type: ignore[override]
        return hash(self.key)

    def __str__(self) -> str:  # type: ignore[override]
        return self.raw
