"""Tests for repository fetching, caching and lookups."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from vpmflow.cache import RepositoryCache
from vpmflow.config import RepositorySpec
from vpmflow.exceptions import MetadataFetchError
from vpmflow.fetchers import fetch_repository
from vpmflow.models import LockedDependency
from vpmflow.repository import RepositoryPackageSource, parse_package_json
from vpmflow.version import DependencyRange, UnityVersion, parse_version

OFFICIAL = "https://example.com/official.json"
COMMUNITY = "https://example.com/community.json"


def package_json(name, version, **extra):
    payload = {"name": name, "version": version}
    payload.update(extra)
    return payload


def repository_document(repository_id, *packages):
    grouped = {}
    for payload in packages:
        grouped.setdefault(payload["name"], {"versions": {}})["versions"][payload["version"]] = payload
    return {"id": repository_id, "name": repository_id, "packages": grouped}


def make_response(status_code=200, document=None, etag=None):
    response = MagicMock()
    response.status_code = status_code
    response.headers = {"ETag": etag} if etag else {}
    if document is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = document
    return response


def make_session(*responses):
    session = MagicMock()
    session.get.side_effect = list(responses)
    return session


class TestParsePackageJson:
    def test_full_payload(self):
        package = parse_package_json(
            package_json(
                "com.vrchat.avatars",
                "3.5.0",
                vpmDependencies={"com.vrchat.base": "3.5.0"},
                unity="2022.3",
                unityRelease="6f1",
                legacyPackages=["com.vrchat.avatars.legacy"],
                displayName="VRChat SDK - Avatars",
                url="https://example.com/avatars.zip",
            ),
            repository="com.vrchat.repos.official",
        )

        assert str(package) == "com.vrchat.avatars@3.5.0"
        assert str(package.dependencies["com.vrchat.base"]) == ">=3.5.0"
        assert package.unity == UnityVersion.parse("2022.3.6f1")
        assert package.legacy_packages == ("com.vrchat.avatars.legacy",)
        assert package.repository == "com.vrchat.repos.official"
        assert package.display_name == "VRChat SDK - Avatars"

    @pytest.mark.parametrize(
        "payload",
        [
            {"version": "1.0.0"},
            {"name": "a"},
            {"name": "a", "version": "1.0"},
            {"name": "a", "version": "1.0.0", "vpmDependencies": {"b": "not a range"}},
            None,
            ["name", "a"],
        ],
    )
    def test_invalid_payload(self, payload):
        with pytest.raises(MetadataFetchError):
            parse_package_json(payload)


class TestFetchRepository:
    def test_sends_headers_and_reads_etag(self):
        document = repository_document("repo")
        session = make_session(make_response(document=document, etag='"abc"'))

        fetched = fetch_repository(OFFICIAL, headers={"X-Token": "secret"}, session=session)

        assert fetched.document == document
        assert fetched.etag == '"abc"'
        sent = session.get.call_args.kwargs["headers"]
        assert sent["X-Token"] == "secret"
        assert sent["User-Agent"].startswith("vpmflow/")
        assert "If-None-Match" not in sent

    def test_not_modified(self):
        session = make_session(make_response(status_code=304))

        fetched = fetch_repository(OFFICIAL, etag='"abc"', session=session)

        assert fetched.document is None
        assert fetched.etag == '"abc"'
        assert session.get.call_args.kwargs["headers"]["If-None-Match"] == '"abc"'

    @pytest.mark.parametrize(
        "response",
        [
            make_response(status_code=404, document={}),
            make_response(document=None),
            make_response(document=["not", "a", "repository"]),
            make_response(document={"packages": []}),
            make_response(document={"id": "x"}),
        ],
    )
    def test_failures(self, response):
        with pytest.raises(MetadataFetchError):
            fetch_repository(OFFICIAL, session=make_session(response))

    def test_connection_error(self):
        session = make_session(requests.ConnectionError("offline"))

        with pytest.raises(MetadataFetchError):
            fetch_repository(OFFICIAL, session=session)


class TestRepositoryCache:
    def test_store_and_load(self, tmp_path):
        cache = RepositoryCache(tmp_path / "cache")
        document = repository_document("repo", package_json("a", "1.0.0"))

        assert cache.load(OFFICIAL) is None
        cache.store(OFFICIAL, document, etag='"v1"')

        assert cache.load(OFFICIAL) == document
        assert cache.etag(OFFICIAL) == '"v1"'
        entry = json.loads(cache.path_for(OFFICIAL).read_text(encoding="utf-8"))
        assert entry["url"] == OFFICIAL

        cache.drop(OFFICIAL)
        assert cache.load(OFFICIAL) is None

    def test_distinct_urls_use_distinct_files(self, tmp_path):
        cache = RepositoryCache(tmp_path)
        assert cache.path_for(OFFICIAL) != cache.path_for(OFFICIAL + "?download")


class TestRepositoryPackageSource:
    def test_find_reads_cache_without_network(self, tmp_path):
        cache = RepositoryCache(tmp_path)
        cache.store(
            OFFICIAL,
            repository_document(
                "official",
                package_json("a", "1.0.0"),
                package_json("a", "1.2.0"),
                package_json("a", "2.0.0-beta.1"),
                package_json("a", "1.3.0", unity="2022.3"),
            ),
        )
        session = make_session()
        source = RepositoryPackageSource([RepositorySpec(OFFICIAL)], cache_root=tmp_path, session=session)

        found = source.find("a", DependencyRange.parse("^1.0"), UnityVersion.parse("2019.4.31f1"), False)

        assert [str(package.version) for package in found] == ["1.2.0", "1.0.0"]
        assert str(source.latest("a", None).version) == "1.3.0"
        assert str(source.latest("a", None, allow_prerelease=True).version) == "2.0.0-beta.1"
        assert source.find_version("a", parse_version("1.0.0")).repository == "official"
        assert source.find_version("a", parse_version("9.9.9")) is None
        session.get.assert_not_called()

    def test_downloads_missing_repositories(self, tmp_path):
        document = repository_document("official", package_json("a", "1.0.0"))
        session = make_session(make_response(document=document, etag='"v1"'))
        source = RepositoryPackageSource([RepositorySpec(OFFICIAL)], cache_root=tmp_path, session=session)

        assert [str(package) for package in source.versions("a")] == ["a@1.0.0"]
        assert RepositoryCache(tmp_path).etag(OFFICIAL) == '"v1"'

    def test_refresh_keeps_cache_when_not_modified(self, tmp_path):
        cache = RepositoryCache(tmp_path)
        cache.store(OFFICIAL, repository_document("official", package_json("a", "1.0.0")), etag='"v1"')
        session = make_session(make_response(status_code=304))
        source = RepositoryPackageSource([RepositorySpec(OFFICIAL)], cache_root=tmp_path, session=session)

        source.refresh()

        assert session.get.call_args.kwargs["headers"]["If-None-Match"] == '"v1"'
        assert [str(package) for package in source.versions("a")] == ["a@1.0.0"]

    def test_earlier_repository_wins_duplicates(self, tmp_path):
        cache = RepositoryCache(tmp_path)
        cache.store(OFFICIAL, repository_document("official", package_json("a", "1.0.0")))
        cache.store(
            COMMUNITY,
            repository_document("community", package_json("a", "1.0.0"), package_json("a", "1.1.0")),
        )
        source = RepositoryPackageSource(
            [RepositorySpec(OFFICIAL), RepositorySpec(COMMUNITY)], cache_root=tmp_path, session=make_session()
        )

        versions = source.versions("a")

        assert [(str(package.version), package.repository) for package in versions] == [
            ("1.1.0", "community"),
            ("1.0.0", "official"),
        ]

    def test_invalid_packages_are_skipped(self, tmp_path):
        document = repository_document("official", package_json("a", "1.0.0"))
        document["packages"]["a"]["versions"]["broken"] = {"name": "a", "version": "broken"}
        document["packages"]["a"]["versions"]["null"] = None
        document["packages"]["b"] = "not a package"
        RepositoryCache(tmp_path).store(OFFICIAL, document)
        source = RepositoryPackageSource([RepositorySpec(OFFICIAL)], cache_root=tmp_path, session=make_session())

        assert [str(package) for package in source.versions("a")] == ["a@1.0.0"]
        assert source.versions("b") == []

    def test_locked_superset_uses_locked_version(self, tmp_path):
        RepositoryCache(tmp_path).store(
            OFFICIAL,
            repository_document(
                "official",
                package_json("sdk", "1.0.0"),
                package_json("sdk", "2.0.0", legacyPackages=["old-sdk"]),
            ),
        )
        source = RepositoryPackageSource([RepositorySpec(OFFICIAL)], cache_root=tmp_path, session=make_session())

        locked_old = {"sdk": LockedDependency("sdk", parse_version("1.0.0"))}
        locked_new = {"sdk": LockedDependency("sdk", parse_version("2.0.0"))}

        assert source.find_locked_superset(locked_old) == {}
        assert source.find_locked_superset(locked_new) == {"sdk": ("old-sdk",)}
