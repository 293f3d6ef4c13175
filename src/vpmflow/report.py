"""Formatting helpers for presenting pending changes."""
from __future__ import annotations

import json
from typing import List

from .changes import PendingProjectChanges
from .models import RemoveReason


def _removal_reason(reason: RemoveReason) -> str:
    if reason is RemoveReason.LEGACY:
        return "legacy package"
    return reason.value


def generate_text(changes: PendingProjectChanges) -> str:
    if changes.is_empty():
        return "Nothing to change."

    lines: List[str] = []
    if changes.dependencies:
        lines.append("Dependencies to declare:")
        for name, version_range in changes.dependencies.items():
            lines.append(f"  - {name} {version_range}")
    if changes.installs:
        lines.append("Packages to install:")
        for package in changes.installs:
            origin = f" [{package.repository}]" if package.repository else ""
            lines.append(f"  - {package.name} {package.version}{origin}")
    if changes.removals:
        lines.append("Packages to remove:")
        for name, reason in changes.removals:
            lines.append(f"  - {name} ({_removal_reason(reason)})")
    if changes.conflicts:
        lines.append("Conflicts:")
        for name, requesters in changes.conflicts.items():
            lines.append(f"  * {name} requested by {', '.join(requesters)}")
    return "\n".join(lines)


def generate_json(changes: PendingProjectChanges) -> str:
    return json.dumps(changes.to_dict(), indent=2)
