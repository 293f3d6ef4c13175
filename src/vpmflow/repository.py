"""Convert VPM repository documents into normalized package records."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import requests
from semantic_version import Version

from .cache import RepositoryCache
from .config import RepositorySpec
from .exceptions import MetadataFetchError
from .fetchers import fetch_repository
from .models import PackageInfo
from .sources import PackageSource, order_candidates, select_candidates
from .version import DependencyRange, UnityVersion, parse_version, parse_vpm_dependency_range

logger = logging.getLogger(__name__)


def parse_package_json(payload: Mapping[str, Any], repository: Optional[str] = None) -> PackageInfo:
    """Build a PackageInfo from a ``package.json`` document as published in a repository."""

    if not isinstance(payload, Mapping):
        raise MetadataFetchError("package.json is not an object")
    name = payload.get("name")
    if not isinstance(name, str) or not name:
        raise MetadataFetchError("package.json is missing 'name'")
    raw_version = payload.get("version")
    if not isinstance(raw_version, str):
        raise MetadataFetchError(f"package.json for {name} is missing 'version'")
    try:
        version = parse_version(raw_version)
        dependencies = {
            dependency: parse_vpm_dependency_range(str(spec))
            for dependency, spec in (payload.get("vpmDependencies") or {}).items()
        }
    except ValueError as exc:
        raise MetadataFetchError(f"Invalid version data in package.json for {name}") from exc

    legacy = payload.get("legacyPackages") or []
    return PackageInfo(
        name=name,
        version=version,
        dependencies=dependencies,
        unity=UnityVersion.from_package(payload.get("unity"), payload.get("unityRelease")),
        legacy_packages=tuple(str(item) for item in legacy),
        repository=repository,
        url=payload.get("url"),
        display_name=payload.get("displayName"),
    )


def _normalize_repository(document: Mapping[str, Any], url: str) -> Dict[str, List[PackageInfo]]:
    repository = document.get("id") or url
    packages: Dict[str, List[PackageInfo]] = {}
    for name, entry in (document.get("packages") or {}).items():
        versions = entry.get("versions") if isinstance(entry, Mapping) else None
        if not isinstance(versions, Mapping):
            logger.warning("Repository %s has no versions for %s", repository, name)
            continue
        for raw_version, payload in versions.items():
            try:
                package = parse_package_json(payload, repository=repository)
            except MetadataFetchError as exc:
                logger.warning("Skipping %s %s from %s: %s", name, raw_version, repository, exc)
                continue
            packages.setdefault(package.name, []).append(package)
    return packages


class RepositoryPackageSource(PackageSource):
    """Package source reading VPM repositories, cached on disk between runs.

    Earlier repositories win when several publish the same version of a package.
    """

    def __init__(
        self,
        repositories: Sequence[RepositorySpec],
        cache_root: Path | str = "cache",
        session: Optional[requests.Session] = None,
    ):
        self.repositories = list(repositories)
        self.cache = RepositoryCache(cache_root)
        self.session = session or requests.Session()
        self._packages: Optional[Dict[str, List[PackageInfo]]] = None

    def close(self) -> None:
        self.session.close()

    def _load_repository(self, spec: RepositorySpec, refresh: bool) -> Dict[str, List[PackageInfo]]:
        document = self.cache.load(spec.url)
        if document is None or refresh:
            etag = self.cache.etag(spec.url) if document is not None else None
            fetched = fetch_repository(spec.url, headers=spec.headers, etag=etag, session=self.session)
            if fetched.document is not None:
                document = fetched.document
                self.cache.store(spec.url, document, etag=fetched.etag)
            else:
                logger.debug("Repository %s not modified", spec.url)
        return _normalize_repository(document or {}, spec.url)

    def load(self, refresh: bool = False) -> None:
        merged: Dict[str, List[PackageInfo]] = {}
        for spec in self.repositories:
            for name, versions in self._load_repository(spec, refresh).items():
                merged.setdefault(name, []).extend(versions)
        self._packages = merged

    def refresh(self) -> None:
        self.load(refresh=True)

    def _index(self) -> Dict[str, List[PackageInfo]]:
        if self._packages is None:
            self.load()
        return self._packages or {}

    def versions(self, name: str) -> List[PackageInfo]:
        return order_candidates(self._index().get(name, []))

    def find(
        self,
        name: str,
        version_range: DependencyRange,
        unity_version: Optional[UnityVersion],
        allow_prerelease: bool,
    ) -> List[PackageInfo]:
        return select_candidates(self._index().get(name, []), version_range, unity_version, allow_prerelease)

    def find_version(self, name: str, version: Version) -> Optional[PackageInfo]:
        for package in self.versions(name):
            if package.version == version:
                return package
        return None

    def latest(
        self, name: str, unity_version: Optional[UnityVersion], allow_prerelease: bool = False
    ) -> Optional[PackageInfo]:
        found = self.find(name, DependencyRange.parse("*"), unity_version, allow_prerelease)
        return found[0] if found else None
