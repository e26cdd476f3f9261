"""Main entry point for the infrastructure manager operator."""

from __future__ import annotations

from typing import Any

import kopf

from . import health
from . import logging as structured_logging
from . import tracing
from .config import get_config
from .constants import API_GROUP_VERSION, KIND_GARDENER_CLUSTER, KIND_RUNTIME
from .handlers import GardenerClusterHandler, RuntimeHandler, raise_for_requeue
from .utils.context import with_correlation_id

runtime_handler = RuntimeHandler()
gardener_cluster_handler = GardenerClusterHandler()


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    structured_logging.setup_structured_logging()
    tracing.initialize_tracing()

    config = get_config()

    # Keep handler progress in annotations so status stays owned by the handlers
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = 0
    settings.networking.request_timeout = config.request_timeout_seconds
    settings.execution.max_workers = config.max_workers

    health.start_metrics_server(config.metrics_port)
    health.mark_ready()


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    health.mark_not_ready()


@kopf.on.create(API_GROUP_VERSION, KIND_RUNTIME)
@kopf.on.update(API_GROUP_VERSION, KIND_RUNTIME)
@kopf.on.resume(API_GROUP_VERSION, KIND_RUNTIME)
@kopf.on.delete(API_GROUP_VERSION, KIND_RUNTIME)
def handle_runtime(body: kopf.Body, patch: kopf.Patch, **_: Any) -> None:
    """Handle Runtime reconciliation and deletion."""
    with with_correlation_id():
        result = runtime_handler.reconcile(dict(body), patch)
    raise_for_requeue(result, f"Runtime {body.metadata.name} requeued")


@kopf.on.create(API_GROUP_VERSION, KIND_GARDENER_CLUSTER)
@kopf.on.update(API_GROUP_VERSION, KIND_GARDENER_CLUSTER)
@kopf.on.resume(API_GROUP_VERSION, KIND_GARDENER_CLUSTER)
def handle_gardener_cluster(body: kopf.Body, patch: kopf.Patch, **_: Any) -> None:
    """Handle GardenerCluster kubeconfig reconciliation."""
    with with_correlation_id():
        result = gardener_cluster_handler.reconcile(dict(body), patch)
    raise_for_requeue(result, f"GardenerCluster {body.metadata.name} requeued")


@kopf.timer(
    API_GROUP_VERSION,
    KIND_GARDENER_CLUSTER,
    interval=get_config().kubeconfig_check_interval_seconds,
    initial_delay=get_config().kubeconfig_check_interval_seconds,
)
def check_gardener_cluster_kubeconfig(body: kopf.Body, patch: kopf.Patch, **_: Any) -> None:
    """Periodic rotation check; skipped while a change handler pass is running."""
    with with_correlation_id():
        gardener_cluster_handler.reconcile(dict(body), patch, wait=False)


@kopf.on.delete(API_GROUP_VERSION, KIND_GARDENER_CLUSTER)
def handle_gardener_cluster_delete(body: kopf.Body, patch: kopf.Patch, **_: Any) -> None:
    """Remove the kubeconfig secret of a deleted GardenerCluster."""
    with with_correlation_id():
        gardener_cluster_handler.delete(dict(body), patch)
