"""Utilities for managing Kubernetes conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import (
    COND_AUDIT_LOG_CONFIGURED,
    COND_KUBECONFIG_MANAGEMENT,
    REASON_AUDIT_LOG_CONFIGURED,
    REASON_AUDIT_LOG_ERROR,
)

STATUS_TRUE = "True"
STATUS_FALSE = "False"
STATUS_UNKNOWN = "Unknown"


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Update or add a condition to the conditions list.

    Conditions are keyed by type: an existing entry of the same type is
    replaced in place, so the list never holds two conditions of one type.

    Args:
        conditions: List of existing conditions
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message
        observed_generation: Generation when condition was observed

    Returns:
        Updated list of conditions
    """
    now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    existing_idx = None
    for idx, cond in enumerate(conditions):
        if cond.get("type") == condition_type:
            existing_idx = idx
            break

    new_condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
    }

    if observed_generation is not None:
        new_condition["observedGeneration"] = observed_generation

    if existing_idx is not None:
        existing = conditions[existing_idx]
        # Only update lastTransitionTime if status changed
        if existing.get("status") == status:
            new_condition["lastTransitionTime"] = existing.get("lastTransitionTime", now)
        conditions[existing_idx] = new_condition
    else:
        conditions.append(new_condition)

    return conditions


def get_condition(conditions: list[dict[str, Any]], condition_type: str) -> dict[str, Any] | None:
    """Return the condition of the given type, if present."""
    for cond in conditions:
        if cond.get("type") == condition_type:
            return cond
    return None


def set_audit_log_condition(
    conditions: list[dict[str, Any]],
    configured: bool,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the AuditLogConfigured condition."""
    return update_condition(
        conditions,
        COND_AUDIT_LOG_CONFIGURED,
        STATUS_TRUE if configured else STATUS_FALSE,
        REASON_AUDIT_LOG_CONFIGURED if configured else REASON_AUDIT_LOG_ERROR,
        message,
        observed_generation,
    )


def set_kubeconfig_ready_condition(
    conditions: list[dict[str, Any]],
    reason: str,
    message: str,
) -> list[dict[str, Any]]:
    """Set the KubeconfigManagement condition for a successful sync."""
    return update_condition(conditions, COND_KUBECONFIG_MANAGEMENT, STATUS_TRUE, reason, message)


def set_kubeconfig_error_condition(
    conditions: list[dict[str, Any]],
    reason: str,
    message: str,
) -> list[dict[str, Any]]:
    """Set the KubeconfigManagement condition for a failed sync."""
    return update_condition(conditions, COND_KUBECONFIG_MANAGEMENT, STATUS_FALSE, reason, message)
