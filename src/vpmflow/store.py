"""JSON file store for Unity installation and project records."""
from __future__ import annotations

import json
import time
import uuid
from dataclasses import asdict, dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, List, Optional


class ProjectType(IntEnum):
    UNKNOWN = 0
    LEGACY_SDK2 = 1
    LEGACY_WORLDS = 2
    LEGACY_AVATARS = 3
    UPM_WORLDS = 4
    UPM_AVATARS = 5
    UPM_STARTER = 6
    WORLDS = 7
    AVATARS = 8
    VPM_STARTER = 9

    @property
    def label(self) -> str:
        return _PROJECT_TYPE_LABELS[self]


_PROJECT_TYPE_LABELS = {
    ProjectType.UNKNOWN: "Unknown",
    ProjectType.LEGACY_SDK2: "Legacy SDK2",
    ProjectType.LEGACY_WORLDS: "Legacy Worlds",
    ProjectType.LEGACY_AVATARS: "Legacy Avatars",
    ProjectType.UPM_WORLDS: "UPM Worlds",
    ProjectType.UPM_AVATARS: "UPM Avatars",
    ProjectType.UPM_STARTER: "UPM Starter",
    ProjectType.WORLDS: "Worlds",
    ProjectType.AVATARS: "Avatars",
    ProjectType.VPM_STARTER: "VPM Starter",
}


def project_type_label(value: int) -> str:
    try:
        return ProjectType(value).label
    except ValueError:
        return f"Unexpected({value})"


def _new_id() -> str:
    return uuid.uuid4().hex


def _now_millis() -> int:
    return int(time.time() * 1000)


@dataclass
class UnityInstallationRecord:
    path: str
    version: Optional[str] = None
    loaded_from_hub: bool = False
    id: str = field(default_factory=_new_id)


@dataclass
class ProjectRecord:
    path: str
    unity_version: Optional[str] = None
    project_type: int = ProjectType.UNKNOWN
    favorite: bool = False
    created_at: int = field(default_factory=_now_millis)
    updated_at: int = field(default_factory=_now_millis)
    id: str = field(default_factory=_new_id)

    @property
    def type_label(self) -> str:
        return project_type_label(self.project_type)


class EnvironmentStore:
    """Keyed CRUD store persisted as a single JSON document.

    Every write rewrites the whole file; records are keyed by ``id``.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _read(self) -> Dict[str, List[Dict[str, Any]]]:
        if not self.path.exists():
            return {"unity_versions": [], "projects": []}
        with self.path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        data.setdefault("unity_versions", [])
        data.setdefault("projects", [])
        return data

    def _write(self, data: Dict[str, List[Dict[str, Any]]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=True, indent=2, sort_keys=True)

    def _upsert(self, collection: str, record: Dict[str, Any], insert: bool) -> None:
        data = self._read()
        rows = data[collection]
        for index, row in enumerate(rows):
            if row["id"] == record["id"]:
                if insert:
                    raise KeyError(f"{collection} record {record['id']} already exists")
                rows[index] = record
                break
        else:
            if not insert:
                raise KeyError(f"{collection} record {record['id']} not found")
            rows.append(record)
        self._write(data)

    def _delete(self, collection: str, record_id: str) -> None:
        data = self._read()
        data[collection] = [row for row in data[collection] if row["id"] != record_id]
        self._write(data)

    # Unity installations -------------------------------------------------

    def get_unity_versions(self) -> List[UnityInstallationRecord]:
        return [UnityInstallationRecord(**row) for row in self._read()["unity_versions"]]

    def insert_unity_version(self, record: UnityInstallationRecord) -> None:
        self._upsert("unity_versions", asdict(record), insert=True)

    def update_unity_version(self, record: UnityInstallationRecord) -> None:
        self._upsert("unity_versions", asdict(record), insert=False)

    def delete_unity_version(self, record_id: str) -> None:
        self._delete("unity_versions", record_id)

    # Projects -------------------------------------------------------------

    def get_projects(self) -> List[ProjectRecord]:
        return [ProjectRecord(**row) for row in self._read()["projects"]]

    def insert_project(self, record: ProjectRecord) -> None:
        self._upsert("projects", asdict(record), insert=True)

    def update_project(self, record: ProjectRecord) -> None:
        record.updated_at = _now_millis()
        self._upsert("projects", asdict(record), insert=False)

    def delete_project(self, record_id: str) -> None:
        self._delete("projects", record_id)
