"""Handler classes for the operator's custom resources."""

from .base import BaseHandler, ReconcileResult, raise_for_requeue
from .gardener_cluster import GardenerClusterHandler, KubeconfigOutcome
from .runtime import RuntimeHandler

__all__ = [
    "BaseHandler",
    "GardenerClusterHandler",
    "KubeconfigOutcome",
    "ReconcileResult",
    "RuntimeHandler",
    "raise_for_requeue",
]
