"""Maintenance window lookup for production clusters."""

from __future__ import annotations

import json
import re
from pathlib import Path

from ..exceptions import MaintenanceWindowError

# Gardener time window format, e.g. 220000+0000
_WINDOW_TIME = re.compile(r"^\d{6}[+-]\d{4}$")


def get_maintenance_window(window_map_path: str, region: str) -> dict[str, str]:
    """Resolve the maintenance time window of a region.

    The window map is a JSON document ``{"<region>": {"begin": "...", "end": "..."}}``.

    Returns:
        Dict with ``begin`` and ``end`` keys

    Raises:
        MaintenanceWindowError: If the map is unreadable or has no valid entry
    """
    try:
        with Path(window_map_path).open(encoding="utf-8") as f:
            windows = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise MaintenanceWindowError(f"Failed to read maintenance window map: {e}") from e

    window = windows.get(region) if isinstance(windows, dict) else None
    if not isinstance(window, dict):
        raise MaintenanceWindowError(f"No maintenance window defined for region {region}")

    begin = window.get("begin")
    end = window.get("end")
    if not all(isinstance(value, str) and _WINDOW_TIME.match(value) for value in (begin, end)):
        raise MaintenanceWindowError(f"Invalid maintenance window for region {region}: {window}")

    return {"begin": begin, "end": end}
