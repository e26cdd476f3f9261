"""Base handler class with common functionality for all CRD handlers."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

import kopf

from .. import metrics
from ..constants import FINALIZER
from ..logging import log_resource_event
from ..utils.errors import sanitize_exception
from ..utils.events import emit_reconcile_failed

CONTROLLER_NAME = "infrastructure-manager"


@dataclass(frozen=True)
class ReconcileResult:
    """Directive returned by a reconciliation: stop, or run again after a delay."""

    requeue_after: float | None = None

    @classmethod
    def stop(cls) -> ReconcileResult:
        return cls()

    @classmethod
    def requeue(cls, after: float) -> ReconcileResult:
        return cls(requeue_after=max(after, 0.0))

    @property
    def should_requeue(self) -> bool:
        return self.requeue_after is not None


def raise_for_requeue(result: ReconcileResult, message: str) -> None:
    """Hand a requeue directive over to kopf.

    kopf re-runs a handler only when it raises, so a requeue becomes a
    ``TemporaryError`` carrying the delay. Status written through the patch
    before raising is still applied.
    """
    if result.should_requeue:
        raise kopf.TemporaryError(message, delay=result.requeue_after)


class BaseHandler:
    """Base class for all CRD handlers with common functionality."""

    def __init__(self, kind: str):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "Runtime", "GardenerCluster")
        """
        self.kind = kind
        self.logger = logging.getLogger(__name__)

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", "default"),
            "uid": meta.get("uid", "unknown"),
        }

    def _log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_info(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "info",
        reason: str = "Info",
        **kwargs: Any,
    ) -> None:
        """Log an info-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            event: Event type (default: "info")
            reason: Reason for the event (default: "Info")
            **kwargs: Additional fields to include in the log
        """
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_warning(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        """Log a warning-level structured log message."""
        self._log(logging.WARNING, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        log_data = kwargs.copy()
        if error is not None:
            log_data["error"] = sanitize_exception(error)
            log_data["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, event, reason, **log_data)

    def ensure_finalizer(self, meta: dict[str, Any], patch: kopf.Patch) -> None:
        """Ensure finalizer is present in metadata."""
        finalizers = list(meta.get("finalizers") or [])
        if FINALIZER not in finalizers:
            finalizers.append(FINALIZER)
            patch.metadata["finalizers"] = finalizers

    def remove_finalizer(self, meta: dict[str, Any], patch: kopf.Patch) -> None:
        """Remove finalizer from metadata."""
        finalizers = list(meta.get("finalizers") or [])
        if FINALIZER in finalizers:
            finalizers.remove(FINALIZER)
            patch.metadata["finalizers"] = finalizers

    def reconcile_with_metrics(
        self,
        body: dict[str, Any],
        reconcile_fn: Callable[[], ReconcileResult],
    ) -> ReconcileResult:
        """Execute reconciliation with metrics and error handling.

        Args:
            body: Resource body being reconciled
            reconcile_fn: Function to execute for reconciliation

        Returns:
            The directive returned by ``reconcile_fn``
        """
        meta = body.get("metadata") or {}
        metrics.reconcile_total.labels(kind=self.kind, result="started").inc()

        start_time = time.time()
        try:
            result = reconcile_fn()
        except Exception as e:
            sanitized_error = sanitize_exception(e)
            metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
            self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
            emit_reconcile_failed(body, f"Reconciliation failed: {sanitized_error}")
            metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(duration)

        outcome = "requeue" if result.should_requeue else "success"
        metrics.reconcile_total.labels(kind=self.kind, result=outcome).inc()
        return result
