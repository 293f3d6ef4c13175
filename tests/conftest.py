"""Shared fixtures for vpmflow tests."""

import json

import pytest

from vpmflow.models import PackageInfo
from vpmflow.project import FileProjectIo, UnityProject
from vpmflow.sources import InMemoryPackageSource
from vpmflow.version import UnityVersion, parse_version, parse_vpm_dependency_range


class RecordingSource(InMemoryPackageSource):
    """In-memory source that remembers every ``find`` call."""

    def __init__(self, packages=()):
        super().__init__(packages)
        self.queries = []

    def find(self, name, version_range, unity_version, allow_prerelease):
        self.queries.append((name, str(version_range)))
        return super().find(name, version_range, unity_version, allow_prerelease)


def _package(name, version, dependencies=None, legacy=(), unity=None, repository="test-repo"):
    return PackageInfo(
        name=name,
        version=parse_version(version),
        dependencies={dep: parse_vpm_dependency_range(spec) for dep, spec in (dependencies or {}).items()},
        unity=UnityVersion.parse(unity) if unity else None,
        legacy_packages=tuple(legacy),
        repository=repository,
    )


@pytest.fixture
def make_package():
    """Factory building PackageInfo values from plain strings."""
    return _package


def write_project_files(root, dependencies=None, locked=None, unity="2022.3.6f1"):
    packages_dir = root / "Packages"
    packages_dir.mkdir(parents=True, exist_ok=True)
    manifest = {
        "dependencies": {name: {"version": version} for name, version in (dependencies or {}).items()},
        "locked": {
            name: {"version": version, "dependencies": deps}
            for name, (version, deps) in (locked or {}).items()
        },
    }
    (packages_dir / "vpm-manifest.json").write_text(json.dumps(manifest), encoding="utf-8")
    if unity:
        settings = root / "ProjectSettings"
        settings.mkdir(parents=True, exist_ok=True)
        (settings / "ProjectVersion.txt").write_text(
            f"m_EditorVersion: {unity}\nm_EditorVersionWithRevision: {unity} (abcdef)\n", encoding="utf-8"
        )


@pytest.fixture
def make_project(tmp_path):
    """Write a project to disk and load it.

    ``locked`` maps names to ``(version, {dependency: range})``.
    """

    def _make(dependencies=None, locked=None, unity="2022.3.6f1"):
        write_project_files(tmp_path, dependencies=dependencies, locked=locked, unity=unity)
        return UnityProject.load(FileProjectIo(tmp_path))

    return _make
