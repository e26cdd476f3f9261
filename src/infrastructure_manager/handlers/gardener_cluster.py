"""Handler for GardenerCluster CRD.

Keeps one kubeconfig secret per GardenerCluster fresh. The secret is found
by its identity label, a new admin kubeconfig is issued on every pass and
written once the previous one has aged past the rotation threshold.
"""

from __future__ import annotations

import copy
import enum
import threading
from datetime import datetime, timezone
from typing import Any, Callable

import kopf
from kubernetes import client, config as k8s_config

from .. import metrics
from ..config import OperatorConfig, get_config
from ..constants import (
    ANNOTATION_FORCE_ROTATION,
    KIND_GARDENER_CLUSTER,
    REASON_FAILED_TO_CREATE_SECRET,
    REASON_FAILED_TO_DELETE_SECRET,
    REASON_FAILED_TO_GET_KUBECONFIG,
    REASON_FAILED_TO_GET_SECRET,
    REASON_FAILED_TO_UPDATE_SECRET,
    REASON_KUBECONFIG_SECRET_CREATED,
    REASON_KUBECONFIG_SECRET_ROTATED,
    STATE_ERROR,
    STATE_READY,
)
from ..exceptions import SecretAmbiguityError
from ..policy import rotation_due, time_until_rotation
from ..services.gardener import GardenerKubeconfigProvider, KubeconfigProvider, create_gardener_api
from ..tracing import trace_span
from ..utils.conditions import set_kubeconfig_error_condition, set_kubeconfig_ready_condition
from ..utils.errors import TRANSIENT_API_ERRORS, is_not_found, sanitize_exception
from ..utils.events import emit_kubeconfig_created, emit_kubeconfig_rotated, emit_reconcile_failed
from ..utils.secrets import (
    create_kubeconfig_secret,
    delete_kubeconfig_secret,
    find_kubeconfig_secret,
    get_last_sync_time,
    strip_kubeconfig_secret,
    update_kubeconfig_secret,
)
from .base import BaseHandler, ReconcileResult

DEFAULT_KUBECONFIG_KEY = "config"


class KubeconfigOutcome(enum.Enum):
    NONE = "None"
    CREATED = "Created"
    MODIFIED = "Modified"
    ROTATED = "Rotated"


class KubeconfigSyncError(Exception):
    """A kubeconfig sync step failed; ``reason`` is the condition reason to report."""

    def __init__(self, reason: str, cause: Exception) -> None:
        self.reason = reason
        self.cause = cause
        super().__init__(f"{reason}: {sanitize_exception(cause)}")


def _secret_ref(spec: dict[str, Any]) -> dict[str, str]:
    secret = (spec.get("kubeconfig") or {}).get("secret") or {}
    return {
        "name": secret.get("name", ""),
        "namespace": secret.get("namespace", ""),
        "key": secret.get("key") or DEFAULT_KUBECONFIG_KEY,
    }


class GardenerClusterHandler(BaseHandler):
    """Handler for GardenerCluster resources."""

    def __init__(
        self,
        config: OperatorConfig | None = None,
        core_api: client.CoreV1Api | None = None,
        kubeconfig_provider: KubeconfigProvider | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        super().__init__(KIND_GARDENER_CLUSTER)
        self._config = config
        self._core_api = core_api
        self._kubeconfig_provider = kubeconfig_provider
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def config(self) -> OperatorConfig:
        if self._config is None:
            self._config = get_config()
        return self._config

    @property
    def core_api(self) -> client.CoreV1Api:
        if self._core_api is None:
            try:
                k8s_config.load_incluster_config()
            except k8s_config.ConfigException:
                k8s_config.load_kube_config()
            self._core_api = client.CoreV1Api()
        return self._core_api

    @property
    def kubeconfig_provider(self) -> KubeconfigProvider:
        if self._kubeconfig_provider is None:
            self._kubeconfig_provider = GardenerKubeconfigProvider(
                create_gardener_api(self.config.gardener_kubeconfig_path),
                self.config.gardener_namespace,
                self.config.kubeconfig_expiration_seconds,
                self.config.request_timeout_seconds,
            )
        return self._kubeconfig_provider

    def handle_kubeconfig(self, body: dict[str, Any], patch: kopf.Patch) -> KubeconfigOutcome:
        """Bring the kubeconfig secret of a GardenerCluster up to date.

        Raises:
            SecretAmbiguityError: If more than one secret carries the identity label
            KubeconfigSyncError: If a step fails
        """
        return self._sync(body, patch)[0]

    def _sync(
        self,
        body: dict[str, Any],
        patch: kopf.Patch,
    ) -> tuple[KubeconfigOutcome, str | None]:
        """Run one sync pass; also returns the last-sync time the decision was based on."""
        meta = body.get("metadata") or {}
        spec = body.get("spec") or {}
        name = meta.get("name", "")
        shoot_name = (spec.get("shoot") or {}).get("name", "")
        ref = _secret_ref(spec)
        timeout = self.config.request_timeout_seconds

        try:
            secret = find_kubeconfig_secret(self.core_api, name, timeout)
        except TRANSIENT_API_ERRORS as e:
            raise KubeconfigSyncError(REASON_FAILED_TO_GET_SECRET, e) from e

        try:
            kubeconfig = self.kubeconfig_provider.fetch(shoot_name)
        except TRANSIENT_API_ERRORS + (ValueError,) as e:
            raise KubeconfigSyncError(REASON_FAILED_TO_GET_KUBECONFIG, e) from e

        if ANNOTATION_FORCE_ROTATION in (meta.get("annotations") or {}):
            if secret is not None:
                try:
                    strip_kubeconfig_secret(self.core_api, secret, ref["key"], timeout)
                except TRANSIENT_API_ERRORS as e:
                    raise KubeconfigSyncError(REASON_FAILED_TO_UPDATE_SECRET, e) from e
            patch.metadata.annotations[ANNOTATION_FORCE_ROTATION] = None
            return KubeconfigOutcome.ROTATED, None

        now = self._now()
        last_sync = get_last_sync_time(secret)
        if not rotation_due(last_sync, self.config.rotation_period, False, now):
            return KubeconfigOutcome.NONE, last_sync

        if secret is not None:
            try:
                update_kubeconfig_secret(self.core_api, secret, ref["key"], kubeconfig, now, timeout)
            except TRANSIENT_API_ERRORS as e:
                raise KubeconfigSyncError(REASON_FAILED_TO_UPDATE_SECRET, e) from e
            return KubeconfigOutcome.MODIFIED, last_sync

        try:
            create_kubeconfig_secret(
                self.core_api,
                namespace=ref["namespace"],
                secret_name=ref["name"],
                key=ref["key"],
                kubeconfig=kubeconfig,
                cluster_name=name,
                shoot_name=shoot_name,
                synced_at=now,
                extra_labels=meta.get("labels"),
                request_timeout=timeout,
            )
        except TRANSIENT_API_ERRORS as e:
            raise KubeconfigSyncError(REASON_FAILED_TO_CREATE_SECRET, e) from e
        return KubeconfigOutcome.CREATED, None

    @staticmethod
    def _lock_key(meta: dict[str, Any]) -> str:
        return meta.get("uid") or meta.get("name", "")

    def _object_lock(self, meta: dict[str, Any]) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(self._lock_key(meta), threading.Lock())

    def reconcile(self, body: dict[str, Any], patch: kopf.Patch, wait: bool = True) -> ReconcileResult:
        """Reconcile the kubeconfig secret of a GardenerCluster.

        Passes for one GardenerCluster never overlap: change handlers and the
        rotation timer both come through here. With ``wait`` False a pass that
        finds another one running is skipped.
        """
        meta = body.get("metadata") or {}
        lock = self._object_lock(meta)
        if not lock.acquire(blocking=wait):
            self.log_info(meta, "Kubeconfig sync already running, skipping", reason="InProgress")
            return ReconcileResult.stop()
        try:
            with trace_span(
                "reconcile_gardener_cluster",
                kind=KIND_GARDENER_CLUSTER,
                attributes={"gardenercluster.name": meta.get("name", "")},
            ):
                return self.reconcile_with_metrics(body, lambda: self._reconcile(body, patch))
        finally:
            lock.release()

    def _reconcile(self, body: dict[str, Any], patch: kopf.Patch) -> ReconcileResult:
        meta = body.get("metadata") or {}
        conditions = copy.deepcopy((body.get("status") or {}).get("conditions") or [])
        secret_name = _secret_ref(body.get("spec") or {})["name"]

        try:
            outcome, last_sync = self._sync(body, patch)
            if outcome is KubeconfigOutcome.ROTATED:
                metrics.kubeconfig_operations_total.labels(outcome=outcome.value).inc()
                self.log_info(meta, "Forced kubeconfig rotation, secret invalidated", reason=outcome.value)
                # Issue the replacement right away instead of waiting for the next trigger
                outcome, last_sync = self._sync(self._without_rotation_marker(body), patch)
        except SecretAmbiguityError as e:
            self._set_error(meta, patch, conditions, REASON_FAILED_TO_GET_SECRET, str(e))
            emit_reconcile_failed(body, str(e))
            raise kopf.PermanentError(str(e)) from e
        except KubeconfigSyncError as e:
            self._set_error(meta, patch, conditions, e.reason, str(e))
            if e.reason == REASON_FAILED_TO_GET_KUBECONFIG and is_not_found(e.cause):
                return ReconcileResult.stop()
            return ReconcileResult.requeue(self.config.requeue_seconds)

        metrics.kubeconfig_operations_total.labels(outcome=outcome.value).inc()

        if outcome is KubeconfigOutcome.NONE:
            remaining = time_until_rotation(last_sync, self.config.rotation_period, self._now())
            return ReconcileResult.requeue(remaining.total_seconds())

        if outcome is KubeconfigOutcome.CREATED:
            reason, message = REASON_KUBECONFIG_SECRET_CREATED, "Secret created successfully"
            emit_kubeconfig_created(body, secret_name)
        else:
            reason, message = REASON_KUBECONFIG_SECRET_ROTATED, "Secret has been rotated"
            emit_kubeconfig_rotated(body, secret_name)

        self.log_info(meta, message, reason=reason, secret=secret_name)
        conditions = set_kubeconfig_ready_condition(conditions, reason, message)
        patch.status.update({"state": STATE_READY, "conditions": conditions})
        return ReconcileResult.stop()

    def _set_error(
        self,
        meta: dict[str, Any],
        patch: kopf.Patch,
        conditions: list[dict[str, Any]],
        reason: str,
        message: str,
    ) -> None:
        self.log_error(meta, message, reason=reason)
        conditions = set_kubeconfig_error_condition(conditions, reason, message)
        patch.status.update({"state": STATE_ERROR, "conditions": conditions})

    @staticmethod
    def _without_rotation_marker(body: dict[str, Any]) -> dict[str, Any]:
        updated = copy.deepcopy(body)
        annotations = (updated.get("metadata") or {}).get("annotations") or {}
        annotations.pop(ANNOTATION_FORCE_ROTATION, None)
        return updated

    def delete(self, body: dict[str, Any], patch: kopf.Patch) -> None:
        """Delete the kubeconfig secret of a removed GardenerCluster.

        Raises:
            kopf.PermanentError: If the secret cannot be identified unambiguously
            kopf.TemporaryError: If listing or deleting the secret fails
        """
        meta = body.get("metadata") or {}
        with self._object_lock(meta):
            self._delete(body, patch)
        with self._locks_guard:
            self._locks.pop(self._lock_key(meta), None)

    def _delete(self, body: dict[str, Any], patch: kopf.Patch) -> None:
        meta = body.get("metadata") or {}
        name = meta.get("name", "")
        timeout = self.config.request_timeout_seconds
        conditions = copy.deepcopy((body.get("status") or {}).get("conditions") or [])

        try:
            secret = find_kubeconfig_secret(self.core_api, name, timeout)
            if secret is None:
                self.log_info(meta, "Kubeconfig secret already gone", reason="SecretNotFound")
                return
            delete_kubeconfig_secret(self.core_api, secret, timeout)
        except SecretAmbiguityError as e:
            self._set_error(meta, patch, conditions, REASON_FAILED_TO_DELETE_SECRET, str(e))
            raise kopf.PermanentError(str(e)) from e
        except TRANSIENT_API_ERRORS as e:
            if is_not_found(e):
                return
            message = f"Failed to delete kubeconfig secret: {sanitize_exception(e)}"
            self._set_error(meta, patch, conditions, REASON_FAILED_TO_DELETE_SECRET, message)
            raise kopf.TemporaryError(message, delay=self.config.requeue_seconds) from e

        self.log_info(meta, f"Kubeconfig secret {secret.metadata.name} deleted", reason="SecretDeleted")
