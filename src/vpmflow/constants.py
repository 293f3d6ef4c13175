"""Static data for the resolver."""
from __future__ import annotations

DEFAULT_TIMEOUT = 30
USER_AGENT = "vpmflow/0.1"

OFFICIAL_REPOSITORY_URL = "https://packages.vrchat.com/official?download"
CURATED_REPOSITORY_URL = "https://packages.vrchat.com/curated?download"

DEFAULT_REPOSITORIES = [OFFICIAL_REPOSITORY_URL, CURATED_REPOSITORY_URL]

UNITY_PROBE_TIMEOUT = 10

# https://docs.unity3d.com/hub/manual/HubCLI.html
UNITY_HUB_PATHS = {
    "win32": ["C:\\Program Files\\Unity Hub\\Unity Hub.exe"],
    "darwin": ["/Applications/Unity Hub.app/Contents/MacOS/Unity Hub"],
    "linux": ["~/Applications/Unity Hub.AppImage", "/usr/bin/unity-hub"],
}
