"""Runtime to Shoot conversion pipelines."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

from ..config import OperatorConfig
from ..constants import GARDENER_API_VERSION, KIND_SHOOT, REQUIRED_RUNTIME_LABELS
from ..exceptions import ConversionError, RuntimeValidationError
from ..services.auditlog import AuditLogData
from . import extenders
from .auditlogs import new_auditlog_extender_for_create, new_auditlog_extender_for_patch
from .extenders import Extender


@dataclass(frozen=True)
class ShootPipeline:
    """Ordered extenders applied to a Shoot document.

    Extenders run in order and the first failure aborts the run. Callers only
    ever see fully built documents: the pipeline works on its own copy.
    """

    extenders: tuple[Extender, ...]

    def apply(self, runtime: dict[str, Any], shoot: dict[str, Any]) -> dict[str, Any]:
        """Run all extenders against a copy of ``shoot`` and return it.

        Raises:
            ConversionError: If an extender fails; ``step`` names the extender
        """
        target = copy.deepcopy(shoot)
        for extend in self.extenders:
            try:
                extend(runtime, target)
            except Exception as e:
                step = getattr(extend, "__name__", repr(extend))
                raise ConversionError(step, str(e)) from e
        return target


def validate_required_labels(runtime: dict[str, Any]) -> None:
    """Check that the Runtime carries every label the conversion depends on.

    Raises:
        RuntimeValidationError: Listing the missing labels
    """
    labels = (runtime.get("metadata") or {}).get("labels") or {}
    missing = [label for label in REQUIRED_RUNTIME_LABELS if not labels.get(label)]
    if missing:
        raise RuntimeValidationError(f"Missing required labels: {', '.join(missing)}")


def new_create_pipeline(
    config: OperatorConfig,
    audit_log_data: AuditLogData | None = None,
    maintenance_window: dict[str, str] | None = None,
) -> ShootPipeline:
    """Pipeline producing a complete Shoot for a new Runtime."""
    steps: list[Extender] = [
        extenders.extend_with_annotations,
        extenders.extend_with_labels,
        extenders.extend_with_shoot_basics,
        extenders.new_kubernetes_extender(config.default_kubernetes_version),
        extenders.extend_with_oidc,
        extenders.extend_with_provider,
        extenders.extend_with_networking,
        extenders.extend_with_high_availability,
        extenders.new_dns_extender(
            config.dns_secret_name, config.dns_domain_prefix, config.dns_provider_type
        ),
        extenders.new_network_filter_extender(config.network_filter_egress_default),
        extenders.extend_with_exposure_class,
        extenders.new_maintenance_extender(maintenance_window),
    ]
    if audit_log_data is not None:
        steps.append(
            new_auditlog_extender_for_create(config.audit_log_policy_config_map, audit_log_data)
        )
    return ShootPipeline(tuple(steps))


def new_patch_pipeline(config: OperatorConfig) -> ShootPipeline:
    """Pipeline re-asserting the fields the operator owns on an existing Shoot."""
    steps: list[Extender] = [
        extenders.extend_with_annotations,
        extenders.new_kubernetes_version_extender(config.default_kubernetes_version),
        extenders.extend_with_oidc,
        extenders.extend_with_workers,
        extenders.new_network_filter_extender(config.network_filter_egress_default),
    ]
    if config.audit_log_enabled:
        steps.append(new_auditlog_extender_for_patch(config.audit_log_policy_config_map))
    return ShootPipeline(tuple(steps))


def build_create(
    runtime: dict[str, Any],
    namespace: str,
    pipeline: ShootPipeline,
) -> dict[str, Any]:
    """Build the Shoot document for a Runtime.

    Raises:
        RuntimeValidationError: If required labels are missing
        ConversionError: If the Runtime cannot be converted
    """
    validate_required_labels(runtime)

    shoot_name = extenders.runtime_shoot(runtime).get("name")
    if not shoot_name:
        raise ConversionError("metadata", "spec.shoot.name is required")

    base = {
        "apiVersion": GARDENER_API_VERSION,
        "kind": KIND_SHOOT,
        "metadata": {"name": shoot_name, "namespace": namespace},
        "spec": {},
    }
    return pipeline.apply(runtime, base)


def build_patch(
    runtime: dict[str, Any],
    shoot: dict[str, Any],
    pipeline: ShootPipeline,
) -> dict[str, Any]:
    """Return a copy of ``shoot`` with the patch-mode fields re-asserted.

    The copy keeps the observed resourceVersion so the update is rejected
    when the Shoot changed in the meantime.

    Raises:
        ConversionError: If the Runtime cannot be converted
    """
    return pipeline.apply(runtime, shoot)
