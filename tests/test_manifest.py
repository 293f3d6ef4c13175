"""Tests for manifest parsing and on-disk project reading."""

import pytest

from vpmflow.exceptions import ManifestError
from vpmflow.manifest import VpmManifest
from vpmflow.project import MANIFEST_PATH, FileProjectIo
from vpmflow.version import UnityVersion, parse_version

from conftest import write_project_files


def test_manifest_from_dict():
    manifest = VpmManifest.from_dict(
        {
            "dependencies": {"com.vrchat.avatars": {"version": "3.5.0"}, "com.example.tool": {"version": "^1.0"}},
            "locked": {
                "com.vrchat.avatars": {"version": "3.5.0", "dependencies": {"com.vrchat.base": "3.5.0"}},
                "com.vrchat.base": {"version": "3.5.0"},
            },
        }
    )

    avatars = manifest.get_dependency("com.vrchat.avatars")
    assert avatars.as_single_version() == parse_version("3.5.0")
    assert manifest.get_dependency("com.example.tool").as_single_version() is None
    assert manifest.is_locked("com.vrchat.base")
    locked = manifest.get_locked("com.vrchat.avatars")
    assert locked.version == parse_version("3.5.0")
    # package-declared bare versions are minimums
    assert str(locked.dependencies["com.vrchat.base"]) == ">=3.5.0"
    assert sorted(entry.name for entry in manifest.all_locked()) == ["com.vrchat.avatars", "com.vrchat.base"]


def test_dependencies_returns_copy():
    manifest = VpmManifest.from_dict({"dependencies": {"a": {"version": "1.0.0"}}})
    copied = manifest.dependencies()
    copied.clear()
    assert manifest.get_dependency("a") is not None


def test_empty_manifest():
    manifest = VpmManifest.from_dict({})
    assert manifest.dependencies() == {}
    assert list(manifest.all_locked()) == []


@pytest.mark.parametrize(
    "document",
    [
        [],
        {"dependencies": ["a"]},
        {"dependencies": {"a": {}}},
        {"dependencies": {"a": {"version": "not a range"}}},
        {"locked": {"a": {"dependencies": {}}}},
        {"locked": {"a": {"version": "1.0"}}},
    ],
)
def test_invalid_manifest(document):
    with pytest.raises(ManifestError):
        VpmManifest.from_dict(document)


class TestFileProjectIo:
    def test_reads_manifest_and_unity(self, tmp_path):
        write_project_files(tmp_path, dependencies={"a": "1.0.0"}, locked={"a": ("1.0.0", {})}, unity="2022.3.6f1")
        io = FileProjectIo(tmp_path)
        assert io.read_manifest().is_locked("a")
        assert io.read_unity_version() == UnityVersion.parse("2022.3.6f1")

    def test_missing_files(self, tmp_path):
        io = FileProjectIo(tmp_path)
        assert io.read_manifest() == VpmManifest()
        assert io.read_unity_version() is None

    def test_invalid_json(self, tmp_path):
        path = tmp_path / MANIFEST_PATH
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ManifestError):
            FileProjectIo(tmp_path).read_manifest()
