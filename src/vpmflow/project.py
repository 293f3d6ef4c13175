"""Unity project state and the package addition entry point."""
from __future__ import annotations

import abc
import json
import logging
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .changes import PendingChangesBuilder, PendingProjectChanges
from .exceptions import ManifestError, UpgradingNonLockedPackage
from .manifest import VpmManifest
from .models import LockedDependency, PackageInfo, RemoveReason
from .resolution import collect_adding_packages
from .sources import PackageSource
from .version import DependencyRange, UnityVersion

logger = logging.getLogger(__name__)

MANIFEST_PATH = Path("Packages") / "vpm-manifest.json"
PROJECT_VERSION_PATH = Path("ProjectSettings") / "ProjectVersion.txt"


class AddPackageOperation(Enum):
    INSTALL_TO_DEPENDENCIES = "install"
    UPGRADE_LOCKED = "upgrade"


class ProjectIo(abc.ABC):
    """Reads the authoritative state of a project."""

    @abc.abstractmethod
    def read_manifest(self) -> VpmManifest:
        ...

    @abc.abstractmethod
    def read_unity_version(self) -> Optional[UnityVersion]:
        ...


class FileProjectIo(ProjectIo):
    def __init__(self, root: Path | str):
        self.root = Path(root)

    def read_manifest(self) -> VpmManifest:
        path = self.root / MANIFEST_PATH
        if not path.exists():
            return VpmManifest()
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except ValueError as exc:
            raise ManifestError(f"Invalid JSON in {path}") from exc
        return VpmManifest.from_dict(data)

    def read_unity_version(self) -> Optional[UnityVersion]:
        path = self.root / PROJECT_VERSION_PATH
        if not path.exists():
            return None
        for line in path.read_text(encoding="utf-8").splitlines():
            key, _, value = line.partition(":")
            if key.strip() == "m_EditorVersion":
                return UnityVersion.parse(value)
        return None


class UnityProject:
    def __init__(self, io: ProjectIo, manifest: VpmManifest, unity_version: Optional[UnityVersion] = None):
        self.io = io
        self.manifest = manifest
        self._unity_version = unity_version

    @classmethod
    def load(cls, io: ProjectIo, unity_version: Optional[UnityVersion] = None) -> "UnityProject":
        """Load a project; *unity_version* overrides the editor version recorded in the project."""

        return cls(io, io.read_manifest(), unity_version or io.read_unity_version())

    def unity_version(self) -> Optional[UnityVersion]:
        return self._unity_version

    def reload_manifest(self) -> VpmManifest:
        return self.io.read_manifest()

    def get_locked(self, name: str) -> Optional[LockedDependency]:
        return self.manifest.get_locked(name)

    def is_locked(self, name: str) -> bool:
        return self.manifest.is_locked(name)

    # ------------------------------------------------------------------

    def plan_add(
        self,
        source: PackageSource,
        packages: Sequence[PackageInfo],
        operation: AddPackageOperation = AddPackageOperation.INSTALL_TO_DEPENDENCIES,
        allow_prerelease: bool = False,
    ) -> PendingProjectChanges:
        """Plan adding *packages* to the project.

        The returned changes are not applied; show them to the user first.
        Raises AddPackageError subclasses when no plan can be made.
        """

        changes = PendingChangesBuilder()
        adding_packages: List[PackageInfo] = []
        declared: Dict[str, DependencyRange] = {}

        for request in packages:
            if operation is AddPackageOperation.INSTALL_TO_DEPENDENCIES:
                existing = self.manifest.get_dependency(request.name)
                single = existing.as_single_version() if existing else None
                if single is None or single < request.version:
                    logger.debug("Adding package %s to dependencies", request.name)
                    declared[request.name] = DependencyRange.version(request.version)
                    changes.add_to_dependencies(request.name, declared[request.name])
            elif operation is AddPackageOperation.UPGRADE_LOCKED:
                if self.manifest.get_locked(request.name) is None:
                    raise UpgradingNonLockedPackage(request.name)
            else:
                raise ValueError(f"Unsupported operation: {operation}")

            self._check_and_add_adding_package(request, adding_packages)

        if not adding_packages:
            # nothing new to install
            return changes.build_no_resolve()

        dependencies = self.manifest.dependencies()
        dependencies.update(declared)
        result = collect_adding_packages(
            dependencies,
            self.manifest.all_locked(),
            self.manifest.get_locked,
            self.unity_version(),
            source,
            adding_packages,
            allow_prerelease,
        )

        for package in result.new_packages:
            changes.install_to_locked(package)
        for name, requesters in result.conflicts.items():
            changes.conflict_multiple(name, requesters)
        for name in result.found_legacy_packages:
            if self.is_locked(name):
                changes.remove(name, RemoveReason.LEGACY)

        return changes.build_resolve(self)

    def _check_and_add_adding_package(self, request: PackageInfo, adding_packages: List[PackageInfo]) -> None:
        locked = self.manifest.get_locked(request.name)
        if locked is None or locked.version < request.version:
            logger.debug("Adding package %s to locked packages at version %s", request.name, request.version)
            adding_packages.append(request)
        else:
            logger.debug(
                "Package %s is already locked at newer version than %s: version %s",
                request.name,
                request.version,
                locked.version,
            )
