"""Prometheus metrics for the infrastructure manager."""

from prometheus_client import Counter, Gauge, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "infrastructure_manager_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "infrastructure_manager_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

error_total = Counter(
    "infrastructure_manager_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)

# Runtime state machine metrics
runtime_fsm_stop_total = Counter(
    "infrastructure_manager_runtime_fsm_stop_total",
    "Number of Runtime reconciliations stopped without further retries",
    ["reason"],
)

runtime_state = Gauge(
    "infrastructure_manager_runtime_state",
    "Current state of a Runtime (1 for the active state)",
    ["runtime_id", "shoot_name", "state"],
)

# Kubeconfig rotation metrics
kubeconfig_operations_total = Counter(
    "infrastructure_manager_kubeconfig_operations_total",
    "Outcome of kubeconfig secret reconciliations",
    ["outcome"],
)

# Gardener API metrics
gardener_api_call_total = Counter(
    "infrastructure_manager_gardener_api_call_total",
    "Total number of Gardener API calls",
    ["operation", "result"],
)

gardener_api_call_duration_seconds = Histogram(
    "infrastructure_manager_gardener_api_call_duration_seconds",
    "Duration of Gardener API calls in seconds",
    ["operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

_RUNTIME_STATES = ("Pending", "Ready", "Failed", "Terminating")


def set_runtime_state(runtime_id: str, shoot_name: str, state: str) -> None:
    """Mark ``state`` as the active state of a Runtime."""
    for known in _RUNTIME_STATES:
        runtime_state.labels(runtime_id=runtime_id, shoot_name=shoot_name, state=known).set(
            1 if known == state else 0
        )


def clean_up_runtime_state(runtime_id: str, shoot_name: str) -> None:
    """Drop all state series of a deleted Runtime."""
    for known in _RUNTIME_STATES:
        try:
            runtime_state.remove(runtime_id, shoot_name, known)
        except KeyError:
            continue
