"""Tests for Runtime state selection."""

from __future__ import annotations

import pytest

from conftest import make_runtime, make_shoot
from infrastructure_manager.constants import AUDITLOG_REFERENCE_NAME, EXTENSION_AUDITLOG
from infrastructure_manager.handlers.runtime_fsm import Action, ObservedState, select_action


def _state(**kwargs) -> ObservedState:
    defaults = {"runtime_deleting": False, "shoot_exists": True}
    defaults.update(kwargs)
    return ObservedState(**defaults)


class TestSelectAction:
    """Test cases for select_action."""

    @pytest.mark.parametrize(
        ("state", "expected"),
        [
            (_state(shoot_exists=False), Action.CREATE_SHOOT),
            (_state(last_operation_type="Create", last_operation_state="Pending"), Action.WAIT_FOR_PROCESSING),
            (_state(last_operation_type="Create", last_operation_state="Processing"), Action.WAIT_FOR_PROCESSING),
            (_state(), Action.WAIT_FOR_PROCESSING),
            (_state(last_operation_type="Reconcile", last_operation_state="Error"), Action.HANDLE_SHOOT_ERROR),
            (_state(last_operation_type="Create", last_operation_state="Failed"), Action.STOP_ON_FAILURE),
            (_state(last_operation_state="Succeeded", drift=True), Action.PATCH_SHOOT),
            (
                _state(last_operation_state="Succeeded", audit_log_enabled=True, audit_log_reflected=False),
                Action.CONFIGURE_AUDIT_LOG,
            ),
            (
                _state(last_operation_state="Succeeded", audit_log_enabled=False, audit_log_reflected=False),
                Action.MARK_READY,
            ),
            (
                _state(last_operation_state="Succeeded", audit_log_enabled=True, audit_log_reflected=True),
                Action.MARK_READY,
            ),
            (_state(runtime_deleting=True, shoot_exists=False), Action.FINISH_DELETION),
            (_state(runtime_deleting=True, shoot_deleting=True), Action.WAIT_FOR_DELETION),
            (_state(runtime_deleting=True, last_operation_state="Processing"), Action.DELETE_SHOOT),
            (_state(shoot_deleting=True, last_operation_state="Succeeded"), Action.WAIT_FOR_DELETION),
        ],
    )
    def test_table(self, state, expected):
        assert select_action(state) is expected

    def test_drift_waits_for_running_operation(self):
        """Test that an update is not sent while Gardener is still processing."""
        state = _state(last_operation_state="Processing", drift=True)
        assert select_action(state) is Action.WAIT_FOR_PROCESSING

    def test_drift_before_audit_log(self):
        state = _state(last_operation_state="Succeeded", drift=True, audit_log_enabled=True)
        assert select_action(state) is Action.PATCH_SHOOT

    @pytest.mark.parametrize("operation_state", ["Aborted", "Suspended"])
    def test_other_operation_states_wait(self, operation_state):
        """Test that states outside the known set are observed again instead of failing."""
        state = _state(last_operation_type="Reconcile", last_operation_state=operation_state, drift=True)
        assert select_action(state) is Action.WAIT_FOR_PROCESSING

    def test_same_observation_same_action(self):
        """Test that repeated observations of one state yield one decision."""
        runtime = make_runtime()
        shoot = make_shoot(runtime, "Create", "Processing")

        actions = {
            select_action(ObservedState.observe(runtime, shoot, True, "policy-config-map"))
            for _ in range(3)
        }

        assert actions == {Action.WAIT_FOR_PROCESSING}


class TestObservedState:
    """Test cases for ObservedState.observe."""

    def test_without_shoot(self):
        state = ObservedState.observe(make_runtime(), None, True, "policy-config-map")

        assert state.shoot_exists is False
        assert state.runtime_deleting is False

    def test_runtime_deleting(self):
        runtime = make_runtime()
        runtime["metadata"]["deletionTimestamp"] = "2024-06-01T12:00:00Z"

        state = ObservedState.observe(runtime, None, True, "policy-config-map")

        assert state.runtime_deleting is True

    def test_reads_last_operation_and_drift(self):
        runtime = make_runtime(generation=2)
        shoot = make_shoot(make_runtime(generation=1), "Reconcile", "Succeeded")

        state = ObservedState.observe(runtime, shoot, True, "policy-config-map")

        assert state.last_operation_type == "Reconcile"
        assert state.last_operation_state == "Succeeded"
        assert state.drift is True
        assert state.audit_log_reflected is False

    def test_audit_log_reflected(self):
        runtime = make_runtime()
        shoot = make_shoot(runtime)
        shoot["spec"]["extensions"] = [{"type": EXTENSION_AUDITLOG}]
        shoot["spec"]["resources"] = [{"name": AUDITLOG_REFERENCE_NAME}]
        shoot["spec"]["kubernetes"]["kubeAPIServer"] = {
            "auditConfig": {"auditPolicy": {"configMapRef": {"name": "policy-config-map"}}},
        }

        state = ObservedState.observe(runtime, shoot, True, "policy-config-map")

        assert state.audit_log_reflected is True
        assert state.drift is False
