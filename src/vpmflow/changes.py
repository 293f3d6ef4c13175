"""Staged project changes produced by package resolution."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Tuple

from .exceptions import PlanFinalizedError
from .models import PackageInfo, RemoveReason
from .version import DependencyRange

if TYPE_CHECKING:  # pragma: no cover
    from .project import UnityProject

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingProjectChanges:
    """A plan that has not been applied to the project.

    ``dependencies`` are top-level declarations to add or overwrite, ``installs``
    are packages to lock, ``removals`` are locked packages to drop and
    ``conflicts`` maps dependency names to the packages requesting incompatible
    versions of them.
    """

    dependencies: Mapping[str, DependencyRange] = field(default_factory=lambda: MappingProxyType({}))
    installs: Tuple[PackageInfo, ...] = ()
    removals: Tuple[Tuple[str, RemoveReason], ...] = ()
    conflicts: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))

    def is_empty(self) -> bool:
        return not (self.dependencies or self.installs or self.removals or self.conflicts)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dependencies": {name: str(version_range) for name, version_range in self.dependencies.items()},
            "installs": [
                {
                    "name": package.name,
                    "version": str(package.version),
                    "repository": package.repository,
                }
                for package in self.installs
            ],
            "removals": [{"name": name, "reason": reason.value} for name, reason in self.removals],
            "conflicts": {name: list(requesters) for name, requesters in self.conflicts.items()},
        }


class PendingChangesBuilder:
    """Accumulates changes and finalizes them exactly once."""

    def __init__(self) -> None:
        self._dependencies: Dict[str, DependencyRange] = {}
        self._installs: Dict[str, PackageInfo] = {}
        self._removals: Dict[str, RemoveReason] = {}
        self._conflicts: Dict[str, List[str]] = {}
        self._finalized = False

    def _check_open(self) -> None:
        if self._finalized:
            raise PlanFinalizedError("Pending changes were already built")

    def add_to_dependencies(self, name: str, version_range: DependencyRange) -> "PendingChangesBuilder":
        self._check_open()
        self._dependencies[name] = version_range
        return self

    def install_to_locked(self, package: PackageInfo) -> "PendingChangesBuilder":
        self._check_open()
        self._installs[package.name] = package
        return self

    def remove(self, name: str, reason: RemoveReason) -> "PendingChangesBuilder":
        self._check_open()
        self._removals.setdefault(name, reason)
        return self

    def conflict_multiple(self, name: str, requesters: Iterable[str]) -> "PendingChangesBuilder":
        self._check_open()
        entry = self._conflicts.setdefault(name, [])
        for requester in requesters:
            if requester not in entry:
                entry.append(requester)
        return self

    # ------------------------------------------------------------------

    def build_no_resolve(self) -> PendingProjectChanges:
        self._check_open()
        self._finalized = True
        return PendingProjectChanges(dependencies=MappingProxyType(dict(self._dependencies)))

    def build_resolve(self, project: "UnityProject") -> PendingProjectChanges:
        """Reconcile the staged changes with the project as it is on disk now."""

        self._check_open()
        self._finalized = True
        manifest = project.reload_manifest()

        dependencies: Dict[str, DependencyRange] = {}
        for name, version_range in self._dependencies.items():
            existing = manifest.get_dependency(name)
            current = existing.as_single_version() if existing else None
            wanted = version_range.as_single_version()
            if current is not None and wanted is not None and current >= wanted:
                logger.debug("Dependency %s is already declared at %s", name, current)
                continue
            dependencies[name] = version_range

        installs: List[PackageInfo] = []
        for package in self._installs.values():
            locked = manifest.get_locked(package.name)
            if locked is not None and locked.version >= package.version:
                logger.debug("Package %s is already locked at %s", package.name, locked.version)
                continue
            installs.append(package)
        installing = {package.name for package in installs}

        removals = [
            (name, reason)
            for name, reason in self._removals.items()
            if manifest.is_locked(name) and name not in installing
        ]

        return PendingProjectChanges(
            dependencies=MappingProxyType(dependencies),
            installs=tuple(installs),
            removals=tuple(removals),
            conflicts=MappingProxyType({name: tuple(requesters) for name, requesters in self._conflicts.items()}),
        )
