"""Shoot to Runtime conversion used to adopt existing clusters."""

from __future__ import annotations

import copy
from typing import Any

from ..constants import (
    ANNOTATION_LICENCE_TYPE,
    API_GROUP_VERSION,
    KIND_RUNTIME,
    LABEL_CREATED_BY_MIGRATOR,
)

_OIDC_FIELDS = (
    "clientAuthentication",
    "clientID",
    "groupsClaim",
    "groupsPrefix",
    "issuerURL",
    "requiredClaims",
    "signingAlgs",
    "usernameClaim",
    "usernamePrefix",
)


def _nginx_ingress_enabled(spec: dict[str, Any]) -> bool:
    nginx = (spec.get("addons") or {}).get("nginxIngress") or {}
    return bool(nginx.get("enabled"))


def _failure_tolerance_type(spec: dict[str, Any]) -> str:
    high_availability = (spec.get("controlPlane") or {}).get("highAvailability") or {}
    return (high_availability.get("failureTolerance") or {}).get("type", "")


def runtime_from_shoot(
    shoot: dict[str, Any],
    administrators: list[str],
    namespace: str,
) -> dict[str, Any]:
    """Build a Runtime describing an existing Shoot.

    The status is left empty so the Runtime is picked up as a fresh object
    by the reconciler. The OIDC CA bundle is not carried over and egress
    filtering starts disabled.

    Args:
        shoot: Observed Shoot document
        administrators: Subjects granted cluster-admin on the Shoot
        namespace: Namespace of the Runtime

    Returns:
        Runtime document
    """
    meta = shoot.get("metadata") or {}
    spec = shoot.get("spec") or {}
    kubernetes = spec.get("kubernetes") or {}
    oidc = (kubernetes.get("kubeAPIServer") or {}).get("oidcConfig") or {}
    provider = spec.get("provider") or {}
    networking = spec.get("networking") or {}

    labels = dict(meta.get("labels") or {})
    labels[LABEL_CREATED_BY_MIGRATOR] = "true"
    annotations = dict(meta.get("annotations") or {})

    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_RUNTIME,
        "metadata": {
            "name": meta.get("name"),
            "namespace": namespace,
            "labels": labels,
            "annotations": annotations,
        },
        "spec": {
            "shoot": {
                "name": meta.get("name"),
                "purpose": spec.get("purpose"),
                "region": spec.get("region"),
                "licenceType": annotations.get(ANNOTATION_LICENCE_TYPE),
                "secretBindingName": spec.get("secretBindingName"),
                "kubernetes": {
                    "version": kubernetes.get("version"),
                    "kubeAPIServer": {
                        "oidcConfig": {
                            field: copy.deepcopy(oidc[field])
                            for field in _OIDC_FIELDS
                            if field in oidc
                        },
                    },
                },
                "provider": {
                    "type": provider.get("type"),
                    "workers": copy.deepcopy(provider.get("workers") or []),
                    "controlPlaneConfig": copy.deepcopy(provider.get("controlPlaneConfig")),
                    "infrastructureConfig": copy.deepcopy(provider.get("infrastructureConfig")),
                },
                "networking": {
                    "pods": networking.get("pods"),
                    "nodes": networking.get("nodes"),
                    "services": networking.get("services"),
                },
                "controlPlane": {
                    "highAvailability": {
                        "failureTolerance": {"type": _failure_tolerance_type(spec)},
                    },
                },
            },
            "security": {
                "administrators": list(administrators),
                "networking": {
                    "filter": {
                        "ingress": {"enabled": _nginx_ingress_enabled(spec)},
                        "egress": {"enabled": False},
                    },
                },
            },
        },
        "status": {},
    }
