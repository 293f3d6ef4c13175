"""Dependency resolution engine.

The resolver is greedy: every query takes the first candidate offered by the
package source and never backtracks. Requirements that the chosen versions
cannot satisfy are reported as conflicts instead of failing the resolution.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Iterable, List, Mapping, Optional, Set

from semantic_version import Version

from .exceptions import DependencyNotFound
from .models import LockedDependency, PackageInfo
from .sources import PackageSource
from .version import DependencyRange, UnityVersion

logger = logging.getLogger(__name__)

# requester label for ranges declared by the project itself
PROJECT_REQUESTER = "<project>"


@dataclass
class PackageResolutionResult:
    new_packages: List[PackageInfo]
    conflicts: Dict[str, List[str]]
    found_legacy_packages: List[str]


@dataclass
class DependencyInfo:
    using: Optional[PackageInfo] = None
    current: Optional[Version] = None
    requirements: Dict[str, DependencyRange] = field(default_factory=dict)
    dependencies: List[str] = field(default_factory=list)
    modern_packages: Set[str] = field(default_factory=set)
    allow_prerelease: bool = False
    touched: bool = False

    @property
    def is_legacy(self) -> bool:
        return bool(self.modern_packages)

    def set_using_info(self, version: Version, dependencies: Iterable[str]) -> None:
        self.allow_prerelease = self.allow_prerelease or bool(version.prerelease)
        self.current = version
        self.dependencies = list(dependencies)

    def set_package(self, package: PackageInfo) -> List[str]:
        """Choose *package* for this name and return the names the previous choice depended on."""

        previous = self.dependencies
        self.current = package.version
        self.using = package
        self.dependencies = list(package.dependencies)
        return previous


class PackageQueue:
    """First-in first-out queue holding at most one pending package per name."""

    def __init__(self, packages: Iterable[PackageInfo] = ()):
        self._pending: Deque[PackageInfo] = deque()
        for package in packages:
            self.add(package)

    def add(self, package: PackageInfo) -> None:
        existing = self.pending(package.name)
        if existing is not None:
            self._pending.remove(existing)
        self._pending.append(package)

    def pending(self, name: str) -> Optional[PackageInfo]:
        for package in self._pending:
            if package.name == name:
                return package
        return None

    def next_package(self) -> Optional[PackageInfo]:
        if not self._pending:
            return None
        return self._pending.popleft()

    def __iter__(self):
        return iter(self._pending)


class ResolutionContext:
    def __init__(self, allow_prerelease: bool, packages: Iterable[PackageInfo]):
        self.allow_prerelease = allow_prerelease
        self.pending_queue = PackageQueue(sorted(packages, key=lambda package: package.name))
        self.dependencies: Dict[str, DependencyInfo] = {}
        self.touched_order: List[str] = []
        for package in self.pending_queue:
            # explicitly requested versions may be prereleases
            self._entry(package.name).allow_prerelease = True

    def _entry(self, name: str) -> DependencyInfo:
        info = self.dependencies.get(name)
        if info is None:
            info = self.dependencies[name] = DependencyInfo()
        return info

    # ------------------------------------------------------------------

    def add_root_dependency(self, name: str, version_range: DependencyRange) -> None:
        info = self._entry(name)
        info.requirements[PROJECT_REQUESTER] = version_range
        info.allow_prerelease = info.allow_prerelease or self.allow_prerelease

    def add_locked_dependency(self, locked: LockedDependency, legacy_packages: Iterable[str] = ()) -> None:
        self._entry(locked.name).set_using_info(locked.version, sorted(locked.dependencies))
        for dependency in sorted(locked.dependencies):
            self._entry(dependency).requirements[locked.name] = locked.dependencies[dependency]
        for legacy in legacy_packages:
            self._entry(legacy).modern_packages.add(locked.name)

    def add_package(self, package: PackageInfo) -> bool:
        info = self._entry(package.name)
        if info.is_legacy:
            logger.debug(
                "Package %s is superseded by %s; not adding",
                package.name,
                ", ".join(sorted(info.modern_packages)),
            )
            return False

        if not info.touched:
            info.touched = True
            self.touched_order.append(package.name)

        for previous in info.set_package(package):
            self._entry(previous).requirements.pop(package.name, None)
        for dependency in sorted(package.dependencies):
            self._entry(dependency).requirements[package.name] = package.dependencies[dependency]
        for legacy in package.legacy_packages:
            self._entry(legacy).modern_packages.add(package.name)
        return True

    def chosen_version(self, name: str) -> Optional[Version]:
        """Version pending in the queue or already in place for *name*."""

        pending = self.pending_queue.pending(name)
        if pending is not None:
            return pending.version
        info = self.dependencies.get(name)
        return info.current if info else None

    def should_add_package(self, name: str, version_range: DependencyRange) -> bool:
        info = self.dependencies.get(name)
        if info is None:
            return True
        if info.is_legacy:
            logger.debug("Dependency %s is a legacy package; skipping", name)
            return False
        chosen = self.chosen_version(name)
        if chosen is None:
            return True
        if version_range.matches(chosen, self.allow_prerelease or info.allow_prerelease):
            logger.debug("Reusing %s %s for range %s", name, chosen, version_range)
            return False
        return True

    # ------------------------------------------------------------------

    def build_result(self, is_locked: Callable[[str], bool]) -> PackageResolutionResult:
        conflicts: Dict[str, List[str]] = {}
        for name in sorted(self.dependencies):
            info = self.dependencies[name]
            if info.is_legacy or info.current is None:
                continue
            allow = self.allow_prerelease or info.allow_prerelease
            failing = [
                requester
                for requester, version_range in info.requirements.items()
                if not version_range.matches(info.current, allow)
            ]
            if not failing:
                continue
            if not info.touched and not any(self._is_touched(requester) for requester in failing):
                # the locked graph was already inconsistent; not caused by this resolution
                continue
            logger.debug("Conflict on %s %s requested by %s", name, info.current, ", ".join(info.requirements))
            conflicts[name] = list(info.requirements)

        new_packages: List[PackageInfo] = []
        for name in self.touched_order:
            info = self.dependencies[name]
            if info.is_legacy or name in conflicts or info.using is None:
                continue
            new_packages.append(info.using)

        found_legacy_packages: List[str] = []
        for package in new_packages:
            for legacy in package.legacy_packages:
                if is_locked(legacy) and legacy not in found_legacy_packages:
                    found_legacy_packages.append(legacy)

        return PackageResolutionResult(
            new_packages=new_packages,
            conflicts=conflicts,
            found_legacy_packages=found_legacy_packages,
        )

    def _is_touched(self, name: str) -> bool:
        info = self.dependencies.get(name)
        return bool(info and info.touched)


def collect_adding_packages(
    dependencies: Mapping[str, DependencyRange],
    locked_dependencies: Iterable[LockedDependency],
    get_locked: Callable[[str], Optional[LockedDependency]],
    unity_version: Optional[UnityVersion],
    source: PackageSource,
    packages: Iterable[PackageInfo],
    allow_prerelease: bool,
) -> PackageResolutionResult:
    """Walk the dependency closure of *packages* and decide what the project has to add.

    Raises DependencyNotFound when any package in the closure has no candidate.
    """

    context = ResolutionContext(allow_prerelease, packages)

    for name, version_range in dependencies.items():
        context.add_root_dependency(name, version_range)

    locked = {dependency.name: dependency for dependency in locked_dependencies}
    superset = source.find_locked_superset(locked)
    for name in sorted(locked):
        context.add_locked_dependency(locked[name], superset.get(name, ()))

    while True:
        package = context.pending_queue.next_package()
        if package is None:
            break
        logger.debug("Processing package %s version %s", package.name, package.version)
        if not context.add_package(package):
            continue

        for dependency in sorted(package.dependencies):
            version_range = package.dependencies[dependency]
            logger.debug("Processing package %s: dependency %s version %s", package.name, dependency, version_range)
            if not context.should_add_package(dependency, version_range):
                continue

            found = source.find(dependency, version_range, unity_version, allow_prerelease)
            if not found:
                raise DependencyNotFound(dependency)
            candidate = found[0]

            chosen = context.chosen_version(dependency)
            if chosen is not None and candidate.version <= chosen:
                logger.debug(
                    "Not replacing %s %s with older candidate %s", dependency, chosen, candidate.version
                )
                continue
            context.pending_queue.add(candidate)

    return context.build_result(lambda name: get_locked(name) is not None)
