"""Tests for the command line interface."""

import json

import pytest

from vpmflow.cache import RepositoryCache
from vpmflow.cli import build_parser, main
from vpmflow.store import EnvironmentStore, UnityInstallationRecord

from conftest import write_project_files

REPOSITORY_URL = "https://vpm.example.com/index.json"


def _versions(*payloads):
    packages = {}
    for payload in payloads:
        packages.setdefault(payload["name"], {"versions": {}})["versions"][payload["version"]] = payload
    return packages


@pytest.fixture
def workspace(tmp_path):
    """A project, a warmed repository cache and a config file pointing at both."""

    write_project_files(tmp_path / "Project", locked={"com.example.old": ("1.0.0", {})})
    RepositoryCache(tmp_path / "cache").store(
        REPOSITORY_URL,
        {
            "id": "example",
            "packages": _versions(
                {"name": "com.example.tool", "version": "1.0.0", "vpmDependencies": {"com.example.core": "^1.0"}},
                {"name": "com.example.tool", "version": "1.1.0", "vpmDependencies": {"com.example.core": "^1.0"}},
                {"name": "com.example.core", "version": "1.2.0", "legacyPackages": ["com.example.old"]},
                {"name": "com.example.beta", "version": "2.0.0-beta.1"},
            ),
        },
    )
    config = tmp_path / "project.yaml"
    config.write_text(
        f"project:\n  path: Project\nrepositories:\n  - {REPOSITORY_URL}\noptions:\n  cache_root: cache\n",
        encoding="utf-8",
    )
    return config


def test_add_prints_plan(workspace, capsys):
    assert main(["add", str(workspace), "com.example.tool"]) == 0

    out = capsys.readouterr().out
    assert "Dependencies to declare:\n  - com.example.tool 1.1.0" in out
    assert "  - com.example.core 1.2.0 [example]" in out
    assert "  - com.example.old (legacy package)" in out


def test_add_json_with_pinned_version(workspace, capsys):
    assert main(["add", str(workspace), "com.example.tool@1.0.0", "--format", "json"]) == 0

    document = json.loads(capsys.readouterr().out)
    assert document["dependencies"] == {"com.example.tool": "1.0.0"}
    assert [entry["name"] for entry in document["installs"]] == ["com.example.tool", "com.example.core"]
    assert document["removals"] == [{"name": "com.example.old", "reason": "legacy"}]


def test_add_prerelease(workspace, capsys):
    assert main(["add", str(workspace), "com.example.beta"]) == 1
    assert "com.example.beta" in capsys.readouterr().err

    assert main(["add", str(workspace), "com.example.beta", "--prerelease"]) == 0
    assert "com.example.beta 2.0.0-beta.1" in capsys.readouterr().out


def test_add_upgrade_unlocked_package_fails(workspace, capsys):
    assert main(["add", str(workspace), "com.example.tool", "--upgrade"]) == 1
    assert "not locked" in capsys.readouterr().err


def test_add_with_missing_config(tmp_path, capsys):
    assert main(["add", str(tmp_path / "missing.yaml"), "com.example.tool"]) == 1
    assert capsys.readouterr().err.startswith("error:")


def test_unity_commands(tmp_path, capsys):
    store_path = tmp_path / "unity.json"
    EnvironmentStore(store_path).insert_unity_version(
        UnityInstallationRecord(path="/unity/2022.3.6f1", version="2022.3.6f1", loaded_from_hub=True)
    )

    assert main(["unity", "list", "--store", str(store_path)]) == 0
    assert capsys.readouterr().out == "2022.3.6f1\t/unity/2022.3.6f1 (Unity Hub)\n"

    assert main(["unity", "suitable", "2022.3.22f1", "--store", str(store_path)]) == 0
    assert capsys.readouterr().out.strip() == "/unity/2022.3.6f1"

    assert main(["unity", "suitable", "2019.4.31f1", "--store", str(store_path)]) == 1
    assert main(["unity", "add", "--store", str(store_path)]) == 1
    assert "needs a target" in capsys.readouterr().err

    assert main(["unity", "remove", "/unity/2022.3.6f1", "--store", str(store_path)]) == 0
    assert EnvironmentStore(store_path).get_unity_versions() == []


def test_project_commands(tmp_path, capsys):
    store_path = tmp_path / "unity.json"
    write_project_files(tmp_path / "World", locked={"com.vrchat.worlds": ("3.5.0", {})})

    assert main(["projects", "add", str(tmp_path / "World"), "--store", str(store_path)]) == 0
    assert "(Worlds)" in capsys.readouterr().out

    assert main(["projects", "list", "--store", str(store_path)]) == 0
    assert "2022.3.6f1\tWorlds" in capsys.readouterr().out

    assert main(["projects", "remove", str(tmp_path / "World"), "--store", str(store_path)]) == 0
    assert EnvironmentStore(store_path).get_projects() == []


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
