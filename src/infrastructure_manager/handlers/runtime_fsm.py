"""State selection for the Runtime reconciler.

The next action is always derived from what is observed right now: the
Runtime document and the Shoot as returned by Gardener. Nothing about a
previous pass is stored on the Runtime.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable

from ..constants import (
    LAST_OP_STATE_ERROR,
    LAST_OP_STATE_FAILED,
    LAST_OP_STATE_PENDING,
    LAST_OP_STATE_PROCESSING,
    LAST_OP_STATE_SUCCEEDED,
)
from ..policy import is_audit_log_reflected, spec_drift


class Action(enum.Enum):
    FINISH_DELETION = "FinishDeletion"
    WAIT_FOR_DELETION = "WaitForDeletion"
    DELETE_SHOOT = "DeleteShoot"
    CREATE_SHOOT = "CreateShoot"
    WAIT_FOR_PROCESSING = "WaitForProcessing"
    HANDLE_SHOOT_ERROR = "HandleShootError"
    STOP_ON_FAILURE = "StopOnFailure"
    PATCH_SHOOT = "PatchShoot"
    CONFIGURE_AUDIT_LOG = "ConfigureAuditLog"
    MARK_READY = "MarkReady"


@dataclass(frozen=True)
class ObservedState:
    """Facts the state selection depends on."""

    runtime_deleting: bool
    shoot_exists: bool
    shoot_deleting: bool = False
    last_operation_type: str | None = None
    last_operation_state: str | None = None
    drift: bool = False
    audit_log_enabled: bool = False
    audit_log_reflected: bool = False

    @classmethod
    def observe(
        cls,
        runtime: dict[str, Any],
        shoot: dict[str, Any] | None,
        audit_log_enabled: bool,
        policy_config_map: str,
    ) -> ObservedState:
        runtime_deleting = bool((runtime.get("metadata") or {}).get("deletionTimestamp"))
        if shoot is None:
            return cls(runtime_deleting=runtime_deleting, shoot_exists=False)

        last_operation = (shoot.get("status") or {}).get("lastOperation") or {}
        return cls(
            runtime_deleting=runtime_deleting,
            shoot_exists=True,
            shoot_deleting=bool((shoot.get("metadata") or {}).get("deletionTimestamp")),
            last_operation_type=last_operation.get("type"),
            last_operation_state=last_operation.get("state"),
            drift=spec_drift(runtime, shoot),
            audit_log_enabled=audit_log_enabled,
            audit_log_reflected=is_audit_log_reflected(shoot, policy_config_map),
        )


Predicate = Callable[[ObservedState], bool]


def _in_progress(s: ObservedState) -> bool:
    return s.last_operation_state in (None, LAST_OP_STATE_PENDING, LAST_OP_STATE_PROCESSING)


def _succeeded(s: ObservedState) -> bool:
    return s.last_operation_state == LAST_OP_STATE_SUCCEEDED


# First matching row wins
TRANSITIONS: tuple[tuple[Predicate, Action], ...] = (
    (lambda s: s.runtime_deleting and not s.shoot_exists, Action.FINISH_DELETION),
    (lambda s: s.runtime_deleting and s.shoot_deleting, Action.WAIT_FOR_DELETION),
    (lambda s: s.runtime_deleting, Action.DELETE_SHOOT),
    (lambda s: not s.shoot_exists, Action.CREATE_SHOOT),
    (lambda s: s.shoot_deleting, Action.WAIT_FOR_DELETION),
    (_in_progress, Action.WAIT_FOR_PROCESSING),
    (lambda s: s.last_operation_state == LAST_OP_STATE_ERROR, Action.HANDLE_SHOOT_ERROR),
    (lambda s: s.last_operation_state == LAST_OP_STATE_FAILED, Action.STOP_ON_FAILURE),
    (lambda s: _succeeded(s) and s.drift, Action.PATCH_SHOOT),
    (
        lambda s: _succeeded(s) and s.audit_log_enabled and not s.audit_log_reflected,
        Action.CONFIGURE_AUDIT_LOG,
    ),
    (_succeeded, Action.MARK_READY),
    # Aborted or any state Gardener adds later: keep observing
    (lambda s: True, Action.WAIT_FOR_PROCESSING),
)


def select_action(state: ObservedState) -> Action:
    """Return the action of the first row matching an observed state."""
    return next(action for predicate, action in TRANSITIONS if predicate(state))
