"""Read model of a project's ``vpm-manifest.json``."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional

from .exceptions import ManifestError
from .models import LockedDependency
from .version import DependencyRange, parse_version, parse_vpm_dependency_range


@dataclass(frozen=True)
class VpmManifest:
    """Declared top-level dependencies plus the locked dependency graph.

    The resolver never mutates a manifest; edits are staged in pending changes.
    """

    declared: Dict[str, DependencyRange] = field(default_factory=dict)
    locked: Dict[str, LockedDependency] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VpmManifest":
        if not isinstance(data, Mapping):
            raise ManifestError("Manifest root must be a mapping")

        declared: Dict[str, DependencyRange] = {}
        for name, entry in _section(data, "dependencies").items():
            raw = entry.get("version") if isinstance(entry, Mapping) else entry
            if not isinstance(raw, str):
                raise ManifestError(f"Dependency {name} has no version")
            try:
                declared[name] = _parse_declared(raw)
            except ValueError as exc:
                raise ManifestError(f"Invalid version range for dependency {name}: {raw}") from exc

        locked: Dict[str, LockedDependency] = {}
        for name, entry in _section(data, "locked").items():
            if not isinstance(entry, Mapping) or not isinstance(entry.get("version"), str):
                raise ManifestError(f"Locked package {name} has no version")
            try:
                version = parse_version(entry["version"])
                dependencies = {
                    dep: parse_vpm_dependency_range(str(spec))
                    for dep, spec in (entry.get("dependencies") or {}).items()
                }
            except ValueError as exc:
                raise ManifestError(f"Invalid locked entry for {name}") from exc
            locked[name] = LockedDependency(name=name, version=version, dependencies=dependencies)

        return cls(declared=declared, locked=locked)

    def dependencies(self) -> Dict[str, DependencyRange]:
        return dict(self.declared)

    def get_dependency(self, name: str) -> Optional[DependencyRange]:
        return self.declared.get(name)

    def get_locked(self, name: str) -> Optional[LockedDependency]:
        return self.locked.get(name)

    def all_locked(self) -> Iterator[LockedDependency]:
        return iter(self.locked.values())

    def is_locked(self, name: str) -> bool:
        return name in self.locked


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    section = data.get(key) or {}
    if not isinstance(section, Mapping):
        raise ManifestError(f"'{key}' must be a mapping")
    return section


def _parse_declared(raw: str) -> DependencyRange:
    # a plain version is a single-version declaration; anything else is a range
    try:
        return DependencyRange.version(parse_version(raw))
    except ValueError:
        return DependencyRange.parse(raw)
