"""Lifecycle policy decisions shared by the reconcilers.

Every function here is free of side effects: callers hand in what they
observed (seeds, timestamps, the Runtime and its Shoot) and act on the answer.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable

from .constants import (
    ANNOTATION_RUNTIME_GENERATION,
    AUDITLOG_REFERENCE_NAME,
    EXTENSION_AUDITLOG,
)

# Credentials are refreshed once this share of the rotation period has elapsed
ROTATION_PERIOD_RATIO = 0.95

_NOT_READY_SEED_CONDITIONS = ("GardenletReady", "Bootstrapped")


def _seed_usable(seed: dict[str, Any], provider_type: str) -> bool:
    spec = seed.get("spec") or {}
    if (spec.get("provider") or {}).get("type") != provider_type:
        return False
    if (seed.get("metadata") or {}).get("deletionTimestamp"):
        return False
    scheduling = (spec.get("settings") or {}).get("scheduling") or {}
    if scheduling.get("visible", True) is False:
        return False
    for cond in (seed.get("status") or {}).get("conditions") or []:
        if cond.get("type") in _NOT_READY_SEED_CONDITIONS and cond.get("status") == "False":
            return False
    return True


def seed_available(
    list_seeds: Callable[[], Iterable[dict[str, Any]]],
    provider_type: str,
    region: str,
) -> tuple[bool, list[str]]:
    """Check whether a usable seed exists for a provider type and region.

    Args:
        list_seeds: Callable returning the seeds known to the backend; any
            exception it raises is a transient lookup failure and propagates
        provider_type: Hyperscaler type of the Runtime
        region: Requested region

    Returns:
        Tuple of availability and the sorted regions that do have usable seeds
    """
    regions = sorted({
        (seed.get("spec") or {}).get("provider", {}).get("region", "")
        for seed in list_seeds()
        if _seed_usable(seed, provider_type)
    } - {""})
    return region in regions, regions


def parse_sync_time(value: str | None) -> datetime | None:
    """Parse an RFC3339 timestamp, returning None for missing or malformed values."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def rotation_due(
    last_sync: str | None,
    rotation_period: timedelta,
    forced: bool,
    now: datetime | None = None,
) -> bool:
    """Decide whether a kubeconfig has to be re-issued.

    True when rotation is forced, when the last sync time is absent or
    unparsable, or once 95% of the rotation period has elapsed.
    """
    if forced:
        return True
    synced_at = parse_sync_time(last_sync)
    if synced_at is None:
        return True
    now = now or datetime.now(timezone.utc)
    return now - synced_at >= rotation_period * ROTATION_PERIOD_RATIO


def time_until_rotation(
    last_sync: str | None,
    rotation_period: timedelta,
    now: datetime | None = None,
) -> timedelta:
    """Remaining time until ``rotation_due`` flips to True (never negative)."""
    synced_at = parse_sync_time(last_sync)
    if synced_at is None:
        return timedelta(0)
    now = now or datetime.now(timezone.utc)
    remaining = synced_at + rotation_period * ROTATION_PERIOD_RATIO - now
    return max(remaining, timedelta(0))


def spec_drift(runtime: dict[str, Any], shoot: dict[str, Any]) -> bool:
    """Compare the Runtime generation recorded on the Shoot with the current one."""
    annotations = (shoot.get("metadata") or {}).get("annotations") or {}
    applied = annotations.get(ANNOTATION_RUNTIME_GENERATION)
    desired = (runtime.get("metadata") or {}).get("generation")
    return applied != str(desired)


def is_audit_log_reflected(shoot: dict[str, Any], policy_config_map: str) -> bool:
    """Whether the Shoot carries the auditlog extension, credentials and policy reference."""
    spec = shoot.get("spec") or {}
    has_extension = any(
        ext.get("type") == EXTENSION_AUDITLOG for ext in spec.get("extensions") or []
    )
    has_reference = any(
        res.get("name") == AUDITLOG_REFERENCE_NAME for res in spec.get("resources") or []
    )
    audit_config = ((spec.get("kubernetes") or {}).get("kubeAPIServer") or {}).get("auditConfig") or {}
    config_map_ref = (audit_config.get("auditPolicy") or {}).get("configMapRef") or {}
    policy = config_map_ref.get("name")
    return has_extension and has_reference and policy == policy_config_map
