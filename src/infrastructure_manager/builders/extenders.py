"""Shoot extenders.

An extender has the signature ``(runtime, shoot) -> None``: it reads the
Runtime document and mutates the Shoot document in place, raising on error.
Extenders that need operator settings are produced by factories so that the
pipeline only ever holds plain callables.
"""

from __future__ import annotations

import copy
from typing import Any, Callable

from ..constants import (
    ANNOTATION_LICENCE_TYPE,
    ANNOTATION_RUNTIME_GENERATION,
    ANNOTATION_RUNTIME_ID,
    EXTENSION_NETWORK_FILTER,
    LABEL_GLOBAL_ACCOUNT_ID,
    LABEL_RUNTIME_ID,
    LABEL_SHOOT_ACCOUNT,
    LABEL_SHOOT_SUBACCOUNT,
    LABEL_SUBACCOUNT_ID,
)
from .hyperscaler import get_hyperscaler

Extender = Callable[[dict[str, Any], dict[str, Any]], None]

NETWORKING_TYPE = "calico"
PURPOSE_PRODUCTION = "production"

# OIDC fields copied onto the Shoot; the CA bundle is not copied
_OIDC_FIELDS = (
    "clientID",
    "groupsClaim",
    "issuerURL",
    "signingAlgs",
    "usernameClaim",
    "usernamePrefix",
)


def runtime_shoot(runtime: dict[str, Any]) -> dict[str, Any]:
    """Return ``spec.shoot`` of a Runtime."""
    return (runtime.get("spec") or {}).get("shoot") or {}


def _spec(shoot: dict[str, Any]) -> dict[str, Any]:
    return shoot.setdefault("spec", {})


def _metadata(shoot: dict[str, Any]) -> dict[str, Any]:
    return shoot.setdefault("metadata", {})


def upsert_extension(shoot: dict[str, Any], extension: dict[str, Any]) -> None:
    """Replace the extension of the same type in place, or append it."""
    extensions = _spec(shoot).setdefault("extensions", [])
    for idx, existing in enumerate(extensions):
        if existing.get("type") == extension["type"]:
            extensions[idx] = extension
            return
    extensions.append(extension)


def extend_with_annotations(runtime: dict[str, Any], shoot: dict[str, Any]) -> None:
    """Record the Runtime generation, runtime id and licence type on the Shoot."""
    meta = runtime.get("metadata") or {}
    labels = meta.get("labels") or {}
    annotations = _metadata(shoot).setdefault("annotations", {})

    annotations[ANNOTATION_RUNTIME_GENERATION] = str(meta.get("generation"))
    if labels.get(LABEL_RUNTIME_ID):
        annotations[ANNOTATION_RUNTIME_ID] = labels[LABEL_RUNTIME_ID]
    licence_type = runtime_shoot(runtime).get("licenceType")
    if licence_type:
        annotations[ANNOTATION_LICENCE_TYPE] = licence_type


def extend_with_labels(runtime: dict[str, Any], shoot: dict[str, Any]) -> None:
    runtime_labels = (runtime.get("metadata") or {}).get("labels") or {}
    labels = _metadata(shoot).setdefault("labels", {})
    labels[LABEL_SHOOT_ACCOUNT] = runtime_labels.get(LABEL_GLOBAL_ACCOUNT_ID, "")
    labels[LABEL_SHOOT_SUBACCOUNT] = runtime_labels.get(LABEL_SUBACCOUNT_ID, "")


def extend_with_shoot_basics(runtime: dict[str, Any], shoot: dict[str, Any]) -> None:
    """Copy purpose, region and secret binding."""
    desired = runtime_shoot(runtime)
    spec = _spec(shoot)
    for field in ("purpose", "region", "secretBindingName"):
        if not desired.get(field):
            raise ValueError(f"spec.shoot.{field} is required")
        spec[field] = desired[field]


def new_kubernetes_extender(default_version: str) -> Extender:
    """Set the Kubernetes version, falling back to ``default_version``."""

    def extend_with_kubernetes(runtime: dict[str, Any], shoot: dict[str, Any]) -> None:
        version = (runtime_shoot(runtime).get("kubernetes") or {}).get("version") or default_version
        kubernetes = _spec(shoot).setdefault("kubernetes", {})
        kubernetes["version"] = version
        kubernetes["enableStaticTokenKubeconfig"] = False

    return extend_with_kubernetes


def new_kubernetes_version_extender(default_version: str) -> Extender:
    """Patch-mode variant touching the version only."""

    def extend_with_kubernetes_version(runtime: dict[str, Any], shoot: dict[str, Any]) -> None:
        version = (runtime_shoot(runtime).get("kubernetes") or {}).get("version")
        kubernetes = _spec(shoot).setdefault("kubernetes", {})
        if version:
            kubernetes["version"] = version
        elif not kubernetes.get("version"):
            kubernetes["version"] = default_version

    return extend_with_kubernetes_version


def extend_with_oidc(runtime: dict[str, Any], shoot: dict[str, Any]) -> None:
    """Copy the OIDC configuration of the kube-apiserver."""
    kube_api_server = (runtime_shoot(runtime).get("kubernetes") or {}).get("kubeAPIServer") or {}
    oidc = kube_api_server.get("oidcConfig")
    if not oidc:
        return

    oidc_config = {field: copy.deepcopy(oidc[field]) for field in _OIDC_FIELDS if field in oidc}
    target = _spec(shoot).setdefault("kubernetes", {}).setdefault("kubeAPIServer", {})
    target["oidcConfig"] = oidc_config


def extend_with_provider(runtime: dict[str, Any], shoot: dict[str, Any]) -> None:
    """Set provider type, workers, provider configs and the cloud profile."""
    provider = runtime_shoot(runtime).get("provider") or {}
    provider_type = provider.get("type")
    if not provider_type:
        raise ValueError("spec.shoot.provider.type is required")
    workers = provider.get("workers")
    if not workers:
        raise ValueError("spec.shoot.provider.workers must not be empty")

    hyperscaler = get_hyperscaler(provider_type)
    spec = _spec(shoot)
    spec["cloudProfileName"] = hyperscaler.cloud_profile

    target = {"type": provider_type, "workers": copy.deepcopy(workers)}
    for field in ("controlPlaneConfig", "infrastructureConfig"):
        if provider.get(field):
            target[field] = copy.deepcopy(provider[field])
    spec["provider"] = target


def extend_with_workers(runtime: dict[str, Any], shoot: dict[str, Any]) -> None:
    """Patch-mode variant replacing the worker pools only."""
    workers = (runtime_shoot(runtime).get("provider") or {}).get("workers")
    if not workers:
        raise ValueError("spec.shoot.provider.workers must not be empty")
    _spec(shoot).setdefault("provider", {})["workers"] = copy.deepcopy(workers)


def extend_with_networking(runtime: dict[str, Any], shoot: dict[str, Any]) -> None:
    networking = runtime_shoot(runtime).get("networking") or {}
    target = {"type": NETWORKING_TYPE}
    for field in ("pods", "nodes", "services"):
        if networking.get(field):
            target[field] = networking[field]
    _spec(shoot)["networking"] = target


def extend_with_high_availability(runtime: dict[str, Any], shoot: dict[str, Any]) -> None:
    control_plane = runtime_shoot(runtime).get("controlPlane") or {}
    failure_tolerance = (control_plane.get("highAvailability") or {}).get("failureTolerance") or {}
    tolerance_type = failure_tolerance.get("type")
    if not tolerance_type:
        return
    _spec(shoot)["controlPlane"] = {
        "highAvailability": {"failureTolerance": {"type": tolerance_type}},
    }


def new_dns_extender(secret_name: str, domain_prefix: str, provider_type: str) -> Extender:
    """Configure the Shoot domain ``<shoot>.<domain_prefix>``."""

    def extend_with_dns(runtime: dict[str, Any], shoot: dict[str, Any]) -> None:
        shoot_name = runtime_shoot(runtime).get("name")
        _spec(shoot)["dns"] = {
            "domain": f"{shoot_name}.{domain_prefix}",
            "providers": [
                {"type": provider_type, "secretName": secret_name, "primary": True},
            ],
        }

    return extend_with_dns


def new_network_filter_extender(egress_default: bool) -> Extender:
    """Upsert the networking filter extension; it is disabled unless egress filtering is on."""

    def extend_with_network_filter(runtime: dict[str, Any], shoot: dict[str, Any]) -> None:
        security = (runtime.get("spec") or {}).get("security") or {}
        egress = ((security.get("networking") or {}).get("filter") or {}).get("egress") or {}
        enabled = egress.get("enabled", egress_default)
        upsert_extension(shoot, {"type": EXTENSION_NETWORK_FILTER, "disabled": not enabled})

    return extend_with_network_filter


def extend_with_exposure_class(runtime: dict[str, Any], shoot: dict[str, Any]) -> None:
    """Set the exposure class for providers that require one."""
    provider_type = (runtime_shoot(runtime).get("provider") or {}).get("type")
    exposure_class = get_hyperscaler(provider_type).exposure_class
    if exposure_class:
        _spec(shoot)["exposureClassName"] = exposure_class


def new_maintenance_extender(time_window: dict[str, str] | None) -> Extender:
    """Set the maintenance time window of production Shoots."""

    def extend_with_maintenance(runtime: dict[str, Any], shoot: dict[str, Any]) -> None:
        if time_window is None or runtime_shoot(runtime).get("purpose") != PURPOSE_PRODUCTION:
            return
        maintenance = _spec(shoot).setdefault("maintenance", {})
        maintenance["timeWindow"] = {"begin": time_window["begin"], "end": time_window["end"]}

    return extend_with_maintenance
