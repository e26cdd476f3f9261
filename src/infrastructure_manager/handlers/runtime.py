"""Handler for Runtime CRD."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Callable

import kopf
from kubernetes import client

from .. import metrics
from ..builders import (
    ShootPipeline,
    build_create,
    build_patch,
    new_create_pipeline,
    new_patch_pipeline,
    validate_required_labels,
)
from ..builders.auditlogs import new_auditlog_extender_for_create
from ..config import OperatorConfig, get_config
from ..constants import (
    ANNOTATION_DELETION_CONFIRMATION,
    COND_DEPROVISIONED,
    COND_PROVISIONED,
    KIND_RUNTIME,
    LABEL_RUNTIME_ID,
    LAST_OP_CREATE,
    LAST_OP_STATE_PENDING,
    LAST_OP_STATE_PROCESSING,
    REASON_AUDIT_LOG_ERROR,
    REASON_CONVERSION_ERROR,
    REASON_DELETION,
    REASON_GARDENER_ERROR,
    REASON_PROCESSING,
    REASON_PROCESSING_ERROR,
    REASON_READY,
    REASON_SEED_NOT_FOUND,
    REASON_SHOOT_CREATION_PENDING,
    REASON_SHOOT_DELETION_PENDING,
    REASON_SHOOT_UPDATE_PENDING,
    REASON_VALIDATION_ERROR,
    STATE_FAILED,
    STATE_PENDING,
    STATE_READY,
    STATE_TERMINATING,
)
from ..exceptions import (
    AuditLogError,
    ConversionError,
    MaintenanceWindowError,
    RuntimeValidationError,
)
from ..policy import seed_available
from ..services.auditlog import AuditLogData, AuditLogging
from ..services.gardener import GardenerClient, ShootClient, create_gardener_api
from ..services.maintenance import get_maintenance_window
from ..tracing import trace_span
from ..utils.conditions import (
    STATUS_FALSE,
    STATUS_TRUE,
    STATUS_UNKNOWN,
    set_audit_log_condition,
    update_condition,
)
from ..utils.errors import TRANSIENT_API_ERRORS, is_conflict, is_not_found, sanitize_exception
from ..utils.events import (
    emit_provisioning_stopped,
    emit_runtime_ready,
    emit_shoot_created,
    emit_shoot_deleted,
    emit_shoot_updated,
    emit_validate_failed,
)
from .base import BaseHandler, ReconcileResult
from .runtime_fsm import Action, ObservedState, select_action

MSG_FAILED_TO_CONFIGURE_AUDIT_LOGS = "Failed to configure audit logs"
PURPOSE_PRODUCTION = "production"


@dataclass
class RuntimeContext:
    """Everything a single reconciliation of one Runtime works with."""

    body: dict[str, Any]
    patch: kopf.Patch
    conditions: list[dict[str, Any]] = field(default_factory=list)
    shoot: dict[str, Any] | None = None

    @property
    def meta(self) -> dict[str, Any]:
        return self.body.get("metadata") or {}

    @property
    def shoot_spec(self) -> dict[str, Any]:
        return (self.body.get("spec") or {}).get("shoot") or {}

    @property
    def shoot_name(self) -> str:
        return self.shoot_spec.get("name", "")

    @property
    def provider_type(self) -> str:
        return (self.shoot_spec.get("provider") or {}).get("type", "")

    @property
    def region(self) -> str:
        return self.shoot_spec.get("region", "")

    @property
    def runtime_id(self) -> str:
        labels = self.meta.get("labels") or {}
        return labels.get(LABEL_RUNTIME_ID) or self.meta.get("name", "unknown")

    @property
    def previous_state(self) -> str | None:
        return (self.body.get("status") or {}).get("state")

    @property
    def deleting(self) -> bool:
        return bool(self.meta.get("deletionTimestamp"))

    @property
    def last_operation(self) -> dict[str, Any]:
        return ((self.shoot or {}).get("status") or {}).get("lastOperation") or {}


class RuntimeHandler(BaseHandler):
    """Drives the Shoot of a Runtime through its lifecycle.

    Every call observes the Shoot afresh, picks one action with
    ``select_action`` and performs at most one change against Gardener. The
    returned ``ReconcileResult`` tells the caller whether to run again.
    """

    def __init__(
        self,
        config: OperatorConfig | None = None,
        gardener: ShootClient | None = None,
        audit_logging: AuditLogging | None = None,
    ):
        super().__init__(KIND_RUNTIME)
        self._config = config
        self._gardener = gardener
        self._audit_logging = audit_logging
        self._actions: dict[Action, Callable[[RuntimeContext], ReconcileResult]] = {
            Action.FINISH_DELETION: self._finish_deletion,
            Action.WAIT_FOR_DELETION: self._wait_for_deletion,
            Action.DELETE_SHOOT: self._delete_shoot,
            Action.CREATE_SHOOT: self._create_shoot,
            Action.WAIT_FOR_PROCESSING: self._wait_for_processing,
            Action.HANDLE_SHOOT_ERROR: self._handle_shoot_error,
            Action.STOP_ON_FAILURE: self._stop_on_failure,
            Action.PATCH_SHOOT: self._patch_shoot,
            Action.CONFIGURE_AUDIT_LOG: self._configure_audit_log,
            Action.MARK_READY: self._mark_ready,
        }

    @property
    def config(self) -> OperatorConfig:
        if self._config is None:
            self._config = get_config()
        return self._config

    @property
    def gardener(self) -> ShootClient:
        if self._gardener is None:
            api_client = create_gardener_api(self.config.gardener_kubeconfig_path)
            self._gardener = GardenerClient(
                client.CustomObjectsApi(api_client),
                self.config.gardener_namespace,
                self.config.request_timeout_seconds,
            )
        return self._gardener

    @property
    def audit_logging(self) -> AuditLogging | None:
        if self._audit_logging is None and self.config.audit_log_enabled:
            self._audit_logging = AuditLogging(self.config.audit_log_tenant_config_path)
        return self._audit_logging

    def _requeue(self) -> ReconcileResult:
        return ReconcileResult.requeue(self.config.requeue_seconds)

    def reconcile(self, body: dict[str, Any], patch: kopf.Patch) -> ReconcileResult:
        """Reconcile a Runtime, including its deletion."""
        ctx = RuntimeContext(
            body=body,
            patch=patch,
            conditions=copy.deepcopy((body.get("status") or {}).get("conditions") or []),
        )
        attributes = {"runtime.name": ctx.meta.get("name", ""), "shoot.name": ctx.shoot_name}
        with trace_span("reconcile_runtime", kind=KIND_RUNTIME, attributes=attributes):
            return self.reconcile_with_metrics(body, lambda: self._reconcile(ctx))

    def _reconcile(self, ctx: RuntimeContext) -> ReconcileResult:
        if not ctx.deleting:
            self.ensure_finalizer(ctx.meta, ctx.patch)

        if not ctx.shoot_name:
            if ctx.deleting:
                return self._finish_deletion(ctx)
            return self._stop(ctx, REASON_VALIDATION_ERROR, "spec.shoot.name is required")

        try:
            ctx.shoot = self.gardener.get_shoot(ctx.shoot_name)
        except TRANSIENT_API_ERRORS as e:
            if not is_not_found(e):
                return self._gardener_error(ctx, f"Failed to get shoot: {sanitize_exception(e)}")
            ctx.shoot = None

        observed = ObservedState.observe(
            ctx.body,
            ctx.shoot,
            audit_log_enabled=self.audit_logging is not None,
            policy_config_map=self.config.audit_log_policy_config_map,
        )
        action = select_action(observed)
        self.log_info(
            ctx.meta,
            f"Reconciling shoot {ctx.shoot_name}",
            event="action",
            reason=action.value,
            last_operation_type=observed.last_operation_type,
            last_operation_state=observed.last_operation_state,
        )
        return self._actions[action](ctx)

    def _update_status(
        self,
        ctx: RuntimeContext,
        state: str,
        condition_type: str,
        status: str,
        reason: str,
        message: str,
    ) -> None:
        update_condition(ctx.conditions, condition_type, status, reason, message)
        ctx.patch.status.update({
            "state": state,
            "conditions": ctx.conditions,
            "observedGeneration": ctx.meta.get("generation", 0),
        })
        metrics.set_runtime_state(ctx.runtime_id, ctx.shoot_name, state)

    def _stop(
        self,
        ctx: RuntimeContext,
        reason: str,
        message: str,
        state: str = STATE_PENDING,
    ) -> ReconcileResult:
        """Record a failure that no retry can fix and stop reconciling.

        The Runtime stays Pending unless Gardener itself reports the Shoot as failed.
        """
        self.log_error(ctx.meta, message, event="stopped", reason=reason)
        metrics.runtime_fsm_stop_total.labels(reason=reason).inc()
        emit_provisioning_stopped(ctx.body, message)
        self._update_status(ctx, state, COND_PROVISIONED, STATUS_FALSE, reason, message)
        return ReconcileResult.stop()

    def _gardener_error(self, ctx: RuntimeContext, message: str) -> ReconcileResult:
        self.log_warning(ctx.meta, message, reason=REASON_GARDENER_ERROR)
        self._update_status(
            ctx, STATE_PENDING, COND_PROVISIONED, STATUS_FALSE, REASON_GARDENER_ERROR, message
        )
        return self._requeue()

    def _create_shoot(self, ctx: RuntimeContext) -> ReconcileResult:
        try:
            validate_required_labels(ctx.body)
        except RuntimeValidationError as e:
            emit_validate_failed(ctx.body, str(e))
            return self._stop(ctx, REASON_VALIDATION_ERROR, str(e))

        if ctx.shoot_spec.get("enforceSeedLocation"):
            try:
                available, regions = seed_available(
                    self.gardener.list_seeds, ctx.provider_type, ctx.region
                )
            except TRANSIENT_API_ERRORS as e:
                message = f"Failed to verify whether seed is available for the region {ctx.region}."
                self.log_error(ctx.meta, message, error=e, reason=REASON_GARDENER_ERROR)
                self._update_status(
                    ctx, STATE_PENDING, COND_PROVISIONED, STATUS_UNKNOWN, REASON_GARDENER_ERROR, message
                )
                return self._requeue()

            if not available:
                return self._stop(
                    ctx,
                    REASON_SEED_NOT_FOUND,
                    f"Cannot find available seed for the region {ctx.region}. "
                    f"The following regions have seeds ready: {regions}.",
                )

        audit_log_data: AuditLogData | None = None
        if self.audit_logging is not None:
            try:
                audit_log_data = self.audit_logging.get_audit_log_data(ctx.provider_type, ctx.region)
            except AuditLogError as e:
                self.log_error(ctx.meta, MSG_FAILED_TO_CONFIGURE_AUDIT_LOGS, error=e, reason=REASON_AUDIT_LOG_ERROR)
                if self.config.audit_log_mandatory:
                    return self._stop(ctx, REASON_AUDIT_LOG_ERROR, MSG_FAILED_TO_CONFIGURE_AUDIT_LOGS)
                set_audit_log_condition(ctx.conditions, False, f"{MSG_FAILED_TO_CONFIGURE_AUDIT_LOGS}: {e}")

        maintenance_window = None
        if ctx.shoot_spec.get("purpose") == PURPOSE_PRODUCTION and self.config.maintenance_window_map_path:
            try:
                maintenance_window = get_maintenance_window(self.config.maintenance_window_map_path, ctx.region)
            except MaintenanceWindowError as e:
                self.log_warning(
                    ctx.meta,
                    f"Failed to get maintenance window data for region {ctx.region}",
                    reason="MaintenanceWindowUnavailable",
                    error=str(e),
                )

        pipeline = new_create_pipeline(self.config, audit_log_data, maintenance_window)
        try:
            shoot = build_create(ctx.body, self.config.gardener_namespace, pipeline)
        except ConversionError as e:
            self.log_error(ctx.meta, "Failed to convert Runtime to shoot", error=e, reason=REASON_CONVERSION_ERROR)
            return self._stop(ctx, REASON_CONVERSION_ERROR, "Runtime conversion error")

        try:
            self.gardener.create_shoot(shoot)
        except TRANSIENT_API_ERRORS as e:
            return self._gardener_error(ctx, f"Gardener API create error: {sanitize_exception(e)}")

        self.log_info(ctx.meta, f"Shoot {ctx.shoot_name} created", reason=REASON_SHOOT_CREATION_PENDING)
        emit_shoot_created(ctx.body, ctx.shoot_name)
        if audit_log_data is not None:
            set_audit_log_condition(ctx.conditions, True, "Audit log configured")
        self._update_status(
            ctx, STATE_PENDING, COND_PROVISIONED, STATUS_UNKNOWN, REASON_SHOOT_CREATION_PENDING, "Shoot is pending"
        )
        return self._requeue()

    def _wait_for_processing(self, ctx: RuntimeContext) -> ReconcileResult:
        operation_type = ctx.last_operation.get("type")
        operation_state = ctx.last_operation.get("state") or LAST_OP_STATE_PENDING
        if operation_state not in (LAST_OP_STATE_PENDING, LAST_OP_STATE_PROCESSING):
            self.log_warning(
                ctx.meta,
                f"Shoot {ctx.shoot_name} reports last operation state {operation_state}, waiting",
                reason=REASON_PROCESSING,
            )
        reason = REASON_SHOOT_CREATION_PENDING if operation_type in (None, LAST_OP_CREATE) else REASON_PROCESSING
        self._update_status(
            ctx,
            STATE_PENDING,
            COND_PROVISIONED,
            STATUS_UNKNOWN,
            reason,
            f"Shoot {operation_type or 'operation'} is {operation_state.lower()}",
        )
        return self._requeue()

    def _handle_shoot_error(self, ctx: RuntimeContext) -> ReconcileResult:
        description = ctx.last_operation.get("description", "")
        return self._gardener_error(
            ctx, f"Shoot {ctx.last_operation.get('type')} operation error: {description}"
        )

    def _stop_on_failure(self, ctx: RuntimeContext) -> ReconcileResult:
        description = ctx.last_operation.get("description", "")
        return self._stop(
            ctx,
            REASON_PROCESSING_ERROR,
            f"Shoot {ctx.last_operation.get('type')} operation failed: {description}",
            state=STATE_FAILED,
        )

    def _apply_update(
        self,
        ctx: RuntimeContext,
        pipeline: ShootPipeline,
    ) -> ReconcileResult | None:
        """Run ``pipeline`` on the observed Shoot and send it to Gardener.

        Returns a result when the update did not go through, None otherwise.
        """
        try:
            shoot = build_patch(ctx.body, ctx.shoot, pipeline)
        except ConversionError as e:
            self.log_error(ctx.meta, "Failed to convert Runtime to shoot", error=e, reason=REASON_CONVERSION_ERROR)
            return self._stop(ctx, REASON_CONVERSION_ERROR, "Runtime conversion error")

        try:
            self.gardener.update_shoot(shoot)
        except TRANSIENT_API_ERRORS as e:
            if is_conflict(e):
                self.log_info(ctx.meta, "Shoot changed concurrently, retrying", reason="Conflict")
            return self._gardener_error(ctx, f"Gardener API update error: {sanitize_exception(e)}")

        emit_shoot_updated(ctx.body, ctx.shoot_name)
        return None

    def _patch_shoot(self, ctx: RuntimeContext) -> ReconcileResult:
        failed = self._apply_update(ctx, new_patch_pipeline(self.config))
        if failed is not None:
            return failed

        self._update_status(
            ctx,
            STATE_PENDING,
            COND_PROVISIONED,
            STATUS_UNKNOWN,
            REASON_SHOOT_UPDATE_PENDING,
            "Shoot is pending for update",
        )
        return self._requeue()

    def _configure_audit_log(self, ctx: RuntimeContext) -> ReconcileResult:
        try:
            data = self.audit_logging.get_audit_log_data(ctx.provider_type, ctx.region)
        except AuditLogError as e:
            self.log_error(ctx.meta, MSG_FAILED_TO_CONFIGURE_AUDIT_LOGS, error=e, reason=REASON_AUDIT_LOG_ERROR)
            if self.config.audit_log_mandatory:
                return self._stop(ctx, REASON_AUDIT_LOG_ERROR, MSG_FAILED_TO_CONFIGURE_AUDIT_LOGS)
            set_audit_log_condition(ctx.conditions, False, f"{MSG_FAILED_TO_CONFIGURE_AUDIT_LOGS}: {e}")
            return self._mark_ready(ctx)

        pipeline = ShootPipeline((
            new_auditlog_extender_for_create(self.config.audit_log_policy_config_map, data),
        ))
        failed = self._apply_update(ctx, pipeline)
        if failed is not None:
            return failed

        set_audit_log_condition(ctx.conditions, True, "Audit log configured")
        self._update_status(
            ctx,
            STATE_PENDING,
            COND_PROVISIONED,
            STATUS_UNKNOWN,
            REASON_SHOOT_UPDATE_PENDING,
            "Audit log configuration applied, shoot is pending for update",
        )
        return self._requeue()

    def _mark_ready(self, ctx: RuntimeContext) -> ReconcileResult:
        if ctx.previous_state != STATE_READY:
            self.log_info(ctx.meta, f"Shoot {ctx.shoot_name} is ready", reason=REASON_READY)
            emit_runtime_ready(ctx.body, ctx.shoot_name)
        self._update_status(ctx, STATE_READY, COND_PROVISIONED, STATUS_TRUE, REASON_READY, "Shoot is ready")
        return ReconcileResult.stop()

    def _delete_shoot(self, ctx: RuntimeContext) -> ReconcileResult:
        try:
            self.gardener.patch_shoot(
                ctx.shoot_name,
                {"metadata": {"annotations": {ANNOTATION_DELETION_CONFIRMATION: "true"}}},
            )
            self.gardener.delete_shoot(ctx.shoot_name)
        except TRANSIENT_API_ERRORS as e:
            if is_not_found(e):
                return self._requeue()
            message = f"Gardener API delete error: {sanitize_exception(e)}"
            self.log_warning(ctx.meta, message, reason=REASON_GARDENER_ERROR)
            self._update_status(
                ctx, STATE_TERMINATING, COND_DEPROVISIONED, STATUS_FALSE, REASON_GARDENER_ERROR, message
            )
            return self._requeue()

        self.log_info(ctx.meta, f"Deletion of shoot {ctx.shoot_name} requested", reason=REASON_DELETION)
        emit_shoot_deleted(ctx.body, ctx.shoot_name)
        self._update_status(
            ctx, STATE_TERMINATING, COND_DEPROVISIONED, STATUS_UNKNOWN, REASON_DELETION, "Runtime is being deleted"
        )
        return self._requeue()

    def _wait_for_deletion(self, ctx: RuntimeContext) -> ReconcileResult:
        self._update_status(
            ctx,
            STATE_TERMINATING,
            COND_DEPROVISIONED,
            STATUS_UNKNOWN,
            REASON_SHOOT_DELETION_PENDING,
            "Shoot is being deleted",
        )
        return self._requeue()

    def _finish_deletion(self, ctx: RuntimeContext) -> ReconcileResult:
        self.log_info(ctx.meta, f"Shoot {ctx.shoot_name} is gone, releasing Runtime", reason="Deleted")
        self.remove_finalizer(ctx.meta, ctx.patch)
        metrics.clean_up_runtime_state(ctx.runtime_id, ctx.shoot_name)
        return ReconcileResult.stop()
