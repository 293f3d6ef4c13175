"""Dataclasses shared across resolver components."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

from semantic_version import Version

from .version import DependencyRange, UnityVersion


@dataclass(frozen=True)
class PackageInfo:
    """A candidate package as published by a repository."""

    name: str
    version: Version
    dependencies: Dict[str, DependencyRange] = field(default_factory=dict, compare=False, hash=False)
    unity: Optional[UnityVersion] = None
    legacy_packages: Tuple[str, ...] = ()
    repository: Optional[str] = None
    url: Optional[str] = None
    display_name: Optional[str] = None

    def is_compatible_with(self, unity_version: Optional[UnityVersion]) -> bool:
        if unity_version is None or self.unity is None:
            return True
        return unity_version >= self.unity

    def __str__(self) -> str:  # type: ignore[override]
        return f"{self.name}@{self.version}"


@dataclass(frozen=True)
class LockedDependency:
    name: str
    version: Version
    dependencies: Dict[str, DependencyRange] = field(default_factory=dict, compare=False, hash=False)


class RemoveReason(Enum):
    """Why a locked package leaves the project.

    More reasons may be added; consumers keep a fallback branch.
    """

    LEGACY = "legacy"
