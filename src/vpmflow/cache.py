"""Lightweight on-disk cache for downloaded repository documents."""
from __future__ import annotations

import hashlib
import json
import re
import time
from pathlib import Path
from typing import Any, Dict, Optional

_UNSAFE_RE = re.compile(r"[^0-9A-Za-z._-]+")


def _cache_name(url: str) -> str:
    readable = _UNSAFE_RE.sub("_", url.split("://", 1)[-1]).strip("_")[:80]
    digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:12]
    return f"{readable}-{digest}.json"


class RepositoryCache:
    """One JSON file per repository URL, holding the document and its ETag."""

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def ensure(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, url: str) -> Path:
        return self.root / _cache_name(url)

    def _read(self, url: str) -> Optional[Dict[str, Any]]:
        path = self.path_for(url)
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def load(self, url: str) -> Optional[Dict[str, Any]]:
        entry = self._read(url)
        return entry.get("repository") if entry else None

    def etag(self, url: str) -> Optional[str]:
        entry = self._read(url)
        return entry.get("etag") if entry else None

    def store(self, url: str, repository: Dict[str, Any], etag: Optional[str] = None) -> None:
        self.ensure()
        entry = {"url": url, "etag": etag, "fetched_at": int(time.time()), "repository": repository}
        with self.path_for(url).open("w", encoding="utf-8") as handle:
            json.dump(entry, handle, ensure_ascii=True, indent=2, sort_keys=True)

    def drop(self, url: str) -> None:
        path = self.path_for(url)
        if path.exists():
            path.unlink()
