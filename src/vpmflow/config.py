"""Parse user configuration for the resolver."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from .constants import DEFAULT_REPOSITORIES


@dataclass
class RepositorySpec:
    url: str
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class ResolverOptions:
    allow_prerelease: bool = False
    unity_version: Optional[str] = None
    cache_root: Path = Path("cache")


@dataclass
class ProjectConfig:
    name: str
    path: Path
    repositories: List[RepositorySpec]
    options: ResolverOptions


def _normalize_repository(entry: object) -> RepositorySpec:
    if isinstance(entry, str):
        return RepositorySpec(url=entry)
    if not isinstance(entry, dict):
        raise ValueError("Repository entries must be URLs or mappings")
    url = entry.get("url")
    if not url:
        raise ValueError("Repository entry missing 'url'")
    headers = entry.get("headers") or {}
    if not isinstance(headers, dict):
        raise ValueError(f"Headers for repository {url} must be a mapping")
    return RepositorySpec(url=url, headers={str(key): str(value) for key, value in headers.items()})


def _resolve_path(base: Path, value: Optional[str], default: Path) -> Path:
    path = Path(value).expanduser() if value else default
    return path if path.is_absolute() else base / path


def load_config(path: Path) -> ProjectConfig:
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError("Configuration root must be a mapping")
    base = path.parent

    project = data.get("project") if isinstance(data.get("project"), dict) else {"name": data.get("project")}
    project_name = project.get("name") or path.stem
    project_path = _resolve_path(base, project.get("path"), Path("."))

    options_raw = data.get("options") or {}
    if not isinstance(options_raw, dict):
        raise ValueError("'options' must be a mapping")
    unity_version = options_raw.get("unity_version")
    options = ResolverOptions(
        allow_prerelease=bool(options_raw.get("allow_prerelease")),
        unity_version=str(unity_version) if unity_version is not None else None,
        cache_root=_resolve_path(base, options_raw.get("cache_root"), Path("cache")),
    )

    repositories_data = data.get("repositories")
    if repositories_data is None:
        repositories_data = list(DEFAULT_REPOSITORIES)
    if not isinstance(repositories_data, list):
        raise ValueError("'repositories' must be a list")

    repositories = [_normalize_repository(entry) for entry in repositories_data]
    return ProjectConfig(name=project_name, path=project_path, repositories=repositories, options=options)
