"""Unity editor installations and known projects on this machine."""
from __future__ import annotations

import logging
import os
import subprocess
import sys
import uuid
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .constants import UNITY_HUB_PATHS, UNITY_PROBE_TIMEOUT
from .exceptions import UnityInstallationError
from .manifest import VpmManifest
from .project import FileProjectIo
from .store import EnvironmentStore, ProjectRecord, ProjectType, UnityInstallationRecord
from .version import UnityVersion

logger = logging.getLogger(__name__)

WORLDS_PACKAGE = "com.vrchat.worlds"
AVATARS_PACKAGE = "com.vrchat.avatars"


def probe_unity_version(path: str, timeout: float = UNITY_PROBE_TIMEOUT) -> UnityVersion:
    """Start the editor at *path* in batch mode and parse the version it reports."""

    command = [
        path,
        "-batchmode",
        "-quit",
        "-noUpm",
        "-nographics",
        "-projectPath",
        str(uuid.uuid4()),
        "-logfile",
    ]
    try:
        completed = subprocess.run(command, capture_output=True, timeout=timeout, check=False)
    except subprocess.TimeoutExpired as exc:
        raise UnityInstallationError(UnityInstallationError.TIMED_OUT, f"timed out probing {path}") from exc
    except OSError as exc:
        raise UnityInstallationError(
            UnityInstallationError.INVALID_INSTALLATION, f"invalid unity installation at {path}: {exc}"
        ) from exc

    if completed.returncode != 0:
        raise UnityInstallationError(
            UnityInstallationError.INVALID_INSTALLATION, f"invalid unity installation at {path}"
        )

    try:
        stdout = completed.stdout.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise UnityInstallationError(UnityInstallationError.INVALID_VERSION, "invalid version") from exc
    raw = stdout.split(" ", 1)[0].strip()
    version = UnityVersion.parse(raw)
    if version is None:
        raise UnityInstallationError(UnityInstallationError.INVALID_VERSION, f"invalid version: {raw}")
    return version


def default_unity_hub_paths(platform: str = sys.platform) -> List[str]:
    key = "linux" if platform.startswith("linux") else platform
    return [os.path.expanduser(path) for path in UNITY_HUB_PATHS.get(key, [])]


def detect_project_type(manifest: VpmManifest) -> ProjectType:
    if manifest.is_locked(WORLDS_PACKAGE) or manifest.get_dependency(WORLDS_PACKAGE) is not None:
        return ProjectType.WORLDS
    if manifest.is_locked(AVATARS_PACKAGE) or manifest.get_dependency(AVATARS_PACKAGE) is not None:
        return ProjectType.AVATARS
    return ProjectType.UNKNOWN


class UnityInstallation:
    def __init__(self, record: UnityInstallationRecord):
        self.record = record

    @property
    def path(self) -> str:
        return self.record.path

    @property
    def loaded_from_hub(self) -> bool:
        return self.record.loaded_from_hub

    def version(self) -> Optional[UnityVersion]:
        return UnityVersion.parse(self.record.version) if self.record.version else None


class UnityEnvironment:
    def __init__(
        self,
        store: EnvironmentStore,
        unity_hub: Optional[str] = None,
        prober: Callable[[str], UnityVersion] = probe_unity_version,
        is_file: Callable[[str], bool] = os.path.isfile,
    ):
        self.store = store
        self.unity_hub = unity_hub
        self.prober = prober
        self.is_file = is_file

    # Unity installations ---------------------------------------------------

    def get_unity_installations(self) -> List[UnityInstallation]:
        return [UnityInstallation(record) for record in self.store.get_unity_versions()]

    def add_unity_installation(self, path: str, loaded_from_hub: bool = False) -> UnityVersion:
        if any(record.path == path for record in self.store.get_unity_versions()):
            raise UnityInstallationError(
                UnityInstallationError.ALREADY_EXISTS, f"unity installation at {path} already exists"
            )
        version = self.prober(path)
        self.store.insert_unity_version(
            UnityInstallationRecord(path=path, version=str(version), loaded_from_hub=loaded_from_hub)
        )
        logger.info("Added Unity %s at %s", version, path)
        return version

    def remove_unity_installation(self, installation: UnityInstallation) -> None:
        self.store.delete_unity_version(installation.record.id)
        logger.info("Removed Unity at %s", installation.path)

    def find_most_suitable_unity(self, expected: UnityVersion) -> Optional[UnityInstallation]:
        """Exact match first, then the closest revision, minor and major line."""

        revision_match = minor_match = major_match = None
        for unity in self.get_unity_installations():
            version = unity.version()
            if version is None:
                continue
            if version == expected:
                return unity
            if version.major != expected.major:
                continue
            if version.minor != expected.minor:
                major_match = unity
            elif version.revision != expected.revision:
                minor_match = unity
            else:
                revision_match = unity
        return revision_match or minor_match or major_match

    # Unity Hub -------------------------------------------------------------

    def find_unity_hub(self) -> Optional[str]:
        if self.unity_hub and self.is_file(self.unity_hub):
            return self.unity_hub
        for path in default_unity_hub_paths():
            if self.is_file(path):
                self.unity_hub = path
                return path
        return None

    def update_unity_from_unity_hub_and_fs(self, paths_from_hub: Iterable[str]) -> None:
        """Drop installations that vanished and register the ones Unity Hub knows about."""

        hub_paths = set(paths_from_hub)
        installed = set()
        for record in self.store.get_unity_versions():
            if not self.is_file(record.path):
                logger.info("Removed Unity that is not exists: %s", record.path)
                self.store.delete_unity_version(record.id)
                continue
            installed.add(record.path)
            exists_in_hub = record.path in hub_paths
            if exists_in_hub != record.loaded_from_hub:
                record.loaded_from_hub = exists_in_hub
                self.store.update_unity_version(record)

        for path in sorted(hub_paths - installed):
            logger.info("Adding Unity from Unity Hub: %s", path)
            self.add_unity_installation(path, loaded_from_hub=True)

    # Projects --------------------------------------------------------------

    def get_projects(self) -> List[ProjectRecord]:
        return self.store.get_projects()

    def add_project(self, root: Path | str) -> ProjectRecord:
        root_path = str(Path(root).resolve())
        if any(record.path == root_path for record in self.store.get_projects()):
            raise ValueError(f"project at {root_path} is already registered")
        io = FileProjectIo(root_path)
        unity_version = io.read_unity_version()
        record = ProjectRecord(
            path=root_path,
            unity_version=str(unity_version) if unity_version else None,
            project_type=detect_project_type(io.read_manifest()),
        )
        self.store.insert_project(record)
        return record

    def remove_project(self, record: ProjectRecord) -> None:
        self.store.delete_project(record.id)

    def set_favorite(self, record: ProjectRecord, favorite: bool) -> None:
        record.favorite = favorite
        self.store.update_project(record)
