"""Package source capability consulted by the resolver."""
from __future__ import annotations

import abc
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from semantic_version import Version

from .models import LockedDependency, PackageInfo
from .version import DependencyRange, UnityVersion

logger = logging.getLogger(__name__)


class PackageSource(abc.ABC):
    """Looks up candidate packages by name and version range."""

    @abc.abstractmethod
    def find(
        self,
        name: str,
        version_range: DependencyRange,
        unity_version: Optional[UnityVersion],
        allow_prerelease: bool,
    ) -> List[PackageInfo]:
        """Return packages matching the range and Unity version, best candidate first."""

    def find_locked_superset(self, locked: Mapping[str, LockedDependency]) -> Dict[str, Tuple[str, ...]]:
        """Map each locked package name to the legacy names its locked version supersedes."""

        superset: Dict[str, Tuple[str, ...]] = {}
        for name, dependency in locked.items():
            exact = DependencyRange.exact(dependency.version)
            found = self.find(name, exact, None, True)
            if not found:
                logger.debug("Locked package %s %s is unknown to the package source", name, dependency.version)
                continue
            if found[0].legacy_packages:
                superset[name] = found[0].legacy_packages
        return superset


def order_candidates(candidates: Iterable[PackageInfo]) -> List[PackageInfo]:
    """Sort candidates highest version first, keeping only the first package seen per version."""

    seen: Dict[Version, PackageInfo] = {}
    for candidate in candidates:
        seen.setdefault(candidate.version, candidate)
    return sorted(seen.values(), key=lambda package: package.version, reverse=True)


def select_candidates(
    packages: Iterable[PackageInfo],
    version_range: DependencyRange,
    unity_version: Optional[UnityVersion],
    allow_prerelease: bool,
) -> List[PackageInfo]:
    selected = [
        package
        for package in packages
        if version_range.matches(package.version, allow_prerelease) and package.is_compatible_with(unity_version)
    ]
    return order_candidates(selected)


class InMemoryPackageSource(PackageSource):
    """Package source backed by an explicit collection of packages."""

    def __init__(self, packages: Iterable[PackageInfo] = ()):
        self._packages: Dict[str, List[PackageInfo]] = {}
        for package in packages:
            self.add(package)

    def add(self, package: PackageInfo) -> None:
        self._packages.setdefault(package.name, []).append(package)

    def versions(self, name: str) -> List[PackageInfo]:
        return order_candidates(self._packages.get(name, []))

    def find(
        self,
        name: str,
        version_range: DependencyRange,
        unity_version: Optional[UnityVersion],
        allow_prerelease: bool,
    ) -> List[PackageInfo]:
        return select_candidates(self._packages.get(name, []), version_range, unity_version, allow_prerelease)
