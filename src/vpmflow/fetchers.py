"""Functions that download VPM repository documents."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

import requests

from .constants import DEFAULT_TIMEOUT, USER_AGENT
from .exceptions import MetadataFetchError


@dataclass
class FetchedRepository:
    """A repository download; ``document`` is None when the server answered 304."""

    url: str
    document: Optional[Dict]
    etag: Optional[str] = None


def fetch_repository(
    url: str,
    headers: Optional[Mapping[str, str]] = None,
    etag: Optional[str] = None,
    session: Optional[requests.Session] = None,
) -> FetchedRepository:
    sess = session or requests.Session()
    request_headers = {"User-Agent": USER_AGENT}
    request_headers.update(headers or {})
    if etag:
        request_headers["If-None-Match"] = etag

    try:
        response = sess.get(url, headers=request_headers, timeout=DEFAULT_TIMEOUT)
    except requests.RequestException as exc:
        raise MetadataFetchError(f"Failed to fetch {url}: {exc}") from exc

    if response.status_code == 304:
        return FetchedRepository(url=url, document=None, etag=etag)
    if response.status_code >= 400:
        raise MetadataFetchError(f"Failed to fetch {url}: HTTP {response.status_code}")
    try:
        data = response.json()
    except ValueError as exc:
        raise MetadataFetchError(f"Invalid JSON from {url}") from exc
    if not isinstance(data, dict) or not isinstance(data.get("packages"), dict):
        raise MetadataFetchError(f"{url} is not a VPM repository")
    return FetchedRepository(url=url, document=data, etag=response.headers.get("ETag"))
