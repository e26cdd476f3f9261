"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_KUBECONFIG_CREATED,
    EVENT_REASON_KUBECONFIG_ROTATED,
    EVENT_REASON_PROVISIONING_STOPPED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_RUNTIME_READY,
    EVENT_REASON_SHOOT_CREATED,
    EVENT_REASON_SHOOT_DELETED,
    EVENT_REASON_SHOOT_UPDATED,
    EVENT_REASON_VALIDATE_FAILED,
)


def emit_event(
    body: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Resource body the event refers to
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(body: dict[str, Any]) -> None:
    """Emit reconcile started event."""
    emit_event(body, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_failed(body: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_validate_failed(body: dict[str, Any], message: str) -> None:
    """Emit validation failed event."""
    emit_event(body, EVENT_REASON_VALIDATE_FAILED, message, type_="Warning")


def emit_shoot_created(body: dict[str, Any], shoot_name: str) -> None:
    emit_event(body, EVENT_REASON_SHOOT_CREATED, f"Shoot {shoot_name} created")


def emit_shoot_updated(body: dict[str, Any], shoot_name: str) -> None:
    emit_event(body, EVENT_REASON_SHOOT_UPDATED, f"Shoot {shoot_name} updated")


def emit_shoot_deleted(body: dict[str, Any], shoot_name: str) -> None:
    emit_event(body, EVENT_REASON_SHOOT_DELETED, f"Deletion of shoot {shoot_name} requested")


def emit_runtime_ready(body: dict[str, Any], shoot_name: str) -> None:
    emit_event(body, EVENT_REASON_RUNTIME_READY, f"Shoot {shoot_name} is ready")


def emit_provisioning_stopped(body: dict[str, Any], message: str) -> None:
    """Emit an event for a reconciliation that will not be retried."""
    emit_event(body, EVENT_REASON_PROVISIONING_STOPPED, message, type_="Warning")


def emit_kubeconfig_created(body: dict[str, Any], secret_name: str) -> None:
    emit_event(body, EVENT_REASON_KUBECONFIG_CREATED, f"Kubeconfig secret {secret_name} created")


def emit_kubeconfig_rotated(body: dict[str, Any], secret_name: str) -> None:
    emit_event(body, EVENT_REASON_KUBECONFIG_ROTATED, f"Kubeconfig secret {secret_name} rotated")
