"""Tests for the GardenerCluster handler."""

from __future__ import annotations

import base64
from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock

import kopf
import pytest
from kubernetes import client
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import ReadTimeoutError

from infrastructure_manager.constants import (
    ANNOTATION_FORCE_ROTATION,
    ANNOTATION_LAST_SYNC,
    COND_KUBECONFIG_MANAGEMENT,
    LABEL_CLUSTER_NAME,
    LABEL_MANAGED_BY,
    LABEL_SHOOT_NAME,
)
from infrastructure_manager.exceptions import SecretAmbiguityError
from infrastructure_manager.handlers.base import ReconcileResult
from infrastructure_manager.handlers.gardener_cluster import (
    GardenerClusterHandler,
    KubeconfigOutcome,
    KubeconfigSyncError,
)

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
KUBECONFIG = "apiVersion: v1\nkind: Config\n"


def _gardener_cluster(annotations=None) -> dict:
    return {
        "apiVersion": "infrastructuremanager.kyma-project.io/v1",
        "kind": "GardenerCluster",
        "metadata": {
            "name": "runtime-id",
            "namespace": "kcp-system",
            "labels": {"kyma-project.io/runtime-id": "runtime-id"},
            "annotations": dict(annotations or {}),
        },
        "spec": {
            "shoot": {"name": "test-shoot"},
            "kubeconfig": {
                "secret": {"name": "kubeconfig-runtime-id", "namespace": "kcp-system", "key": "config"},
            },
        },
        "status": {},
    }


def _secret(synced_at: datetime | None) -> client.V1Secret:
    annotations = {}
    if synced_at is not None:
        annotations[ANNOTATION_LAST_SYNC] = synced_at.strftime("%Y-%m-%dT%H:%M:%SZ")
    return client.V1Secret(
        metadata=client.V1ObjectMeta(
            name="kubeconfig-runtime-id",
            namespace="kcp-system",
            labels={LABEL_CLUSTER_NAME: "runtime-id"},
            annotations=annotations,
        ),
        data={"config": base64.b64encode(b"old").decode()},
    )


def _condition(patch: kopf.Patch) -> dict:
    return next(c for c in patch.status["conditions"] if c["type"] == COND_KUBECONFIG_MANAGEMENT)


@pytest.fixture
def core_api():
    api = MagicMock()
    api.list_secret_for_all_namespaces.return_value = Mock(items=[])
    return api


@pytest.fixture
def provider():
    mock = Mock()
    mock.fetch.return_value = KUBECONFIG
    return mock


@pytest.fixture
def handler(operator_config, core_api, provider):
    return GardenerClusterHandler(
        config=operator_config,
        core_api=core_api,
        kubeconfig_provider=provider,
        now=lambda: NOW,
    )


def _set_secrets(core_api, *secrets):
    core_api.list_secret_for_all_namespaces.return_value = Mock(items=list(secrets))


class TestHandleKubeconfig:
    """Test cases for a single kubeconfig sync pass."""

    def test_creates_missing_secret(self, handler, core_api):
        """Test that a missing secret is created with identity labels and sync time."""
        outcome = handler.handle_kubeconfig(_gardener_cluster(), kopf.Patch())

        assert outcome is KubeconfigOutcome.CREATED
        core_api.list_secret_for_all_namespaces.assert_called_once()
        assert (
            core_api.list_secret_for_all_namespaces.call_args.kwargs["label_selector"]
            == f"{LABEL_CLUSTER_NAME}=runtime-id"
        )
        kwargs = core_api.create_namespaced_secret.call_args.kwargs
        assert kwargs["namespace"] == "kcp-system"
        secret = kwargs["body"]
        assert secret.metadata.name == "kubeconfig-runtime-id"
        assert secret.metadata.labels[LABEL_CLUSTER_NAME] == "runtime-id"
        assert secret.metadata.labels[LABEL_SHOOT_NAME] == "test-shoot"
        assert secret.metadata.labels[LABEL_MANAGED_BY] == "infrastructure-manager"
        assert secret.metadata.labels["kyma-project.io/runtime-id"] == "runtime-id"
        assert secret.metadata.annotations[ANNOTATION_LAST_SYNC] == "2024-06-01T12:00:00Z"
        assert base64.b64decode(secret.data["config"]).decode() == KUBECONFIG

    def test_fresh_secret_untouched(self, handler, core_api, operator_config):
        """Test that a recently synced secret is left alone."""
        _set_secrets(core_api, _secret(NOW - operator_config.rotation_period * 0.5))

        outcome = handler.handle_kubeconfig(_gardener_cluster(), kopf.Patch())

        assert outcome is KubeconfigOutcome.NONE
        core_api.replace_namespaced_secret.assert_not_called()
        core_api.create_namespaced_secret.assert_not_called()

    def test_aged_secret_rotated(self, handler, core_api, operator_config):
        _set_secrets(core_api, _secret(NOW - operator_config.rotation_period * 0.96))

        outcome = handler.handle_kubeconfig(_gardener_cluster(), kopf.Patch())

        assert outcome is KubeconfigOutcome.MODIFIED
        body = core_api.replace_namespaced_secret.call_args.kwargs["body"]
        assert body.metadata.annotations[ANNOTATION_LAST_SYNC] == "2024-06-01T12:00:00Z"
        assert base64.b64decode(body.data["config"]).decode() == KUBECONFIG

    def test_forced_rotation_strips_secret(self, handler, core_api):
        """Test that forcing rotation invalidates the secret and clears the annotation."""
        _set_secrets(core_api, _secret(NOW))
        patch = kopf.Patch()

        outcome = handler.handle_kubeconfig(
            _gardener_cluster({ANNOTATION_FORCE_ROTATION: "true"}), patch
        )

        assert outcome is KubeconfigOutcome.ROTATED
        body = core_api.replace_namespaced_secret.call_args.kwargs["body"]
        assert "config" not in body.data
        assert ANNOTATION_LAST_SYNC not in body.metadata.annotations
        assert patch["metadata"]["annotations"][ANNOTATION_FORCE_ROTATION] is None

    def test_two_secrets_ambiguous(self, handler, core_api):
        _set_secrets(core_api, _secret(NOW), _secret(NOW))

        with pytest.raises(SecretAmbiguityError):
            handler.handle_kubeconfig(_gardener_cluster(), kopf.Patch())
        core_api.create_namespaced_secret.assert_not_called()

    def test_kubeconfig_error(self, handler, provider):
        provider.fetch.side_effect = ApiException(status=500)

        with pytest.raises(KubeconfigSyncError) as exc_info:
            handler.handle_kubeconfig(_gardener_cluster(), kopf.Patch())

        assert exc_info.value.reason == "FailedToGetKubeconfig"


class TestReconcile:
    """Test cases for GardenerCluster reconciliation results."""

    def test_created(self, handler, mock_kopf_event):
        patch = kopf.Patch()

        result = handler.reconcile(_gardener_cluster(), patch)

        assert result == ReconcileResult.stop()
        assert patch.status["state"] == "Ready"
        condition = _condition(patch)
        assert condition["status"] == "True"
        assert condition["reason"] == "KubeconfigSecretCreated"
        reasons = [c.kwargs["reason"] for c in mock_kopf_event.call_args_list]
        assert "KubeconfigCreated" in reasons

    def test_not_due_requeues_until_rotation(self, handler, core_api, operator_config):
        """Test that an up-to-date secret is checked again when rotation becomes due."""
        _set_secrets(core_api, _secret(NOW - operator_config.rotation_period * 0.5))
        patch = kopf.Patch()

        result = handler.reconcile(_gardener_cluster(), patch)

        expected = operator_config.rotation_period * 0.45
        assert result.requeue_after == pytest.approx(expected.total_seconds())
        assert "status" not in patch
        core_api.list_secret_for_all_namespaces.assert_called_once()

    def test_forced_rotation_reissues(self, handler, core_api):
        """Test that a forced rotation writes a fresh kubeconfig in the same pass."""
        _set_secrets(core_api, _secret(NOW))
        patch = kopf.Patch()

        result = handler.reconcile(_gardener_cluster({ANNOTATION_FORCE_ROTATION: "true"}), patch)

        assert result == ReconcileResult.stop()
        assert core_api.replace_namespaced_secret.call_count == 2
        final = core_api.replace_namespaced_secret.call_args.kwargs["body"]
        assert base64.b64decode(final.data["config"]).decode() == KUBECONFIG
        assert final.metadata.annotations[ANNOTATION_LAST_SYNC] == "2024-06-01T12:00:00Z"
        assert patch["metadata"]["annotations"][ANNOTATION_FORCE_ROTATION] is None
        assert _condition(patch)["reason"] == "KubeconfigSecretRotated"

    def test_ambiguous_secrets_permanent(self, handler, core_api):
        _set_secrets(core_api, _secret(NOW), _secret(NOW))
        patch = kopf.Patch()

        with pytest.raises(kopf.PermanentError):
            handler.reconcile(_gardener_cluster(), patch)

        assert patch.status["state"] == "Error"
        assert _condition(patch)["reason"] == "FailedToGetSecret"

    def test_missing_shoot_stops(self, handler, provider):
        """Test that a kubeconfig request for a missing Shoot is not retried."""
        provider.fetch.side_effect = ApiException(status=404, reason="Not Found")
        patch = kopf.Patch()

        result = handler.reconcile(_gardener_cluster(), patch)

        assert result == ReconcileResult.stop()
        condition = _condition(patch)
        assert condition["status"] == "False"
        assert condition["reason"] == "FailedToGetKubeconfig"

    def test_create_error_requeues(self, handler, core_api, operator_config):
        core_api.create_namespaced_secret.side_effect = ApiException(status=500)
        patch = kopf.Patch()

        result = handler.reconcile(_gardener_cluster(), patch)

        assert result == ReconcileResult.requeue(operator_config.requeue_seconds)
        assert _condition(patch)["reason"] == "FailedToCreateSecret"

    def test_secret_update_timeout_requeues(self, handler, core_api, operator_config):
        """Test that a timed out secret write is recorded on status and retried."""
        _set_secrets(core_api, _secret(NOW - operator_config.rotation_period))
        core_api.replace_namespaced_secret.side_effect = ReadTimeoutError(None, "/api/v1/secrets", "Read timed out.")
        patch = kopf.Patch()

        result = handler.reconcile(_gardener_cluster(), patch)

        assert result == ReconcileResult.requeue(operator_config.requeue_seconds)
        assert patch.status["state"] == "Error"
        assert _condition(patch)["reason"] == "FailedToUpdateSecret"

    def test_kubeconfig_timeout_requeues(self, handler, provider, operator_config):
        provider.fetch.side_effect = ReadTimeoutError(None, "/apis/core.gardener.cloud", "Read timed out.")
        patch = kopf.Patch()

        result = handler.reconcile(_gardener_cluster(), patch)

        assert result == ReconcileResult.requeue(operator_config.requeue_seconds)
        assert _condition(patch)["reason"] == "FailedToGetKubeconfig"

    def test_list_error_requeues(self, handler, core_api, operator_config):
        core_api.list_secret_for_all_namespaces.side_effect = ApiException(status=503)
        patch = kopf.Patch()

        result = handler.reconcile(_gardener_cluster(), patch)

        assert result == ReconcileResult.requeue(operator_config.requeue_seconds)
        assert _condition(patch)["reason"] == "FailedToGetSecret"


class TestDelete:
    """Test cases for GardenerCluster deletion."""

    def test_deletes_secret(self, handler, core_api):
        _set_secrets(core_api, _secret(NOW))

        handler.delete(_gardener_cluster(), kopf.Patch())

        core_api.delete_namespaced_secret.assert_called_once_with(
            name="kubeconfig-runtime-id",
            namespace="kcp-system",
            _request_timeout=30,
        )

    def test_missing_secret(self, handler, core_api):
        handler.delete(_gardener_cluster(), kopf.Patch())

        core_api.delete_namespaced_secret.assert_not_called()

    def test_already_deleted(self, handler, core_api):
        _set_secrets(core_api, _secret(NOW))
        core_api.delete_namespaced_secret.side_effect = ApiException(status=404)

        handler.delete(_gardener_cluster(), kopf.Patch())

    def test_delete_error_temporary(self, handler, core_api):
        _set_secrets(core_api, _secret(NOW))
        core_api.delete_namespaced_secret.side_effect = ApiException(status=500)
        patch = kopf.Patch()

        with pytest.raises(kopf.TemporaryError):
            handler.delete(_gardener_cluster(), patch)

        assert _condition(patch)["reason"] == "FailedToDeleteSecret"

    def test_delete_timeout_temporary(self, handler, core_api):
        _set_secrets(core_api, _secret(NOW))
        core_api.delete_namespaced_secret.side_effect = ReadTimeoutError(None, "/api/v1/secrets", "Read timed out.")
        patch = kopf.Patch()

        with pytest.raises(kopf.TemporaryError):
            handler.delete(_gardener_cluster(), patch)

        assert _condition(patch)["reason"] == "FailedToDeleteSecret"

    def test_ambiguous_secrets_permanent(self, handler, core_api):
        _set_secrets(core_api, _secret(NOW), _secret(NOW))

        with pytest.raises(kopf.PermanentError):
            handler.delete(_gardener_cluster(), kopf.Patch())

        core_api.delete_namespaced_secret.assert_not_called()


class TestSerialization:
    """Test cases for overlapping passes on one GardenerCluster."""

    def test_overlapping_timer_pass_skipped(self, handler, core_api, provider):
        """Test that a timer pass arriving mid-sync leaves the secret alone."""
        overlapping = []

        def fetch(shoot_name):
            overlapping.append(handler.reconcile(_gardener_cluster(), kopf.Patch(), wait=False))
            return KUBECONFIG

        provider.fetch.side_effect = fetch

        result = handler.reconcile(_gardener_cluster(), kopf.Patch())

        assert result == ReconcileResult.stop()
        assert overlapping == [ReconcileResult.stop()]
        core_api.list_secret_for_all_namespaces.assert_called_once()
        core_api.create_namespaced_secret.assert_called_once()

    def test_lock_released_after_failure(self, handler, core_api, operator_config):
        """Test that a failed pass does not block the next timer pass."""
        core_api.list_secret_for_all_namespaces.side_effect = [ApiException(status=503), Mock(items=[])]

        handler.reconcile(_gardener_cluster(), kopf.Patch())
        result = handler.reconcile(_gardener_cluster(), kopf.Patch(), wait=False)

        assert result == ReconcileResult.stop()
        core_api.create_namespaced_secret.assert_called_once()

    def test_other_clusters_not_blocked(self, handler, core_api, provider):
        other = _gardener_cluster()
        other["metadata"]["name"] = "other-runtime-id"
        started = []

        def fetch(shoot_name):
            if not started:
                started.append(shoot_name)
                handler.reconcile(other, kopf.Patch(), wait=False)
            return KUBECONFIG

        provider.fetch.side_effect = fetch

        handler.reconcile(_gardener_cluster(), kopf.Patch())

        assert core_api.create_namespaced_secret.call_count == 2
