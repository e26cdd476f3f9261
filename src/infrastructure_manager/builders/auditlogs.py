"""Auditlog extenders for create and patch mode."""

from __future__ import annotations

from typing import Any

from ..constants import (
    AUDITLOG_EXTENSION_API_VERSION,
    AUDITLOG_EXTENSION_KIND,
    AUDITLOG_EXTENSION_TYPE,
    AUDITLOG_REFERENCE_NAME,
    EXTENSION_AUDITLOG,
)
from ..services.auditlog import AuditLogData
from .extenders import Extender, upsert_extension


def _set_extension(shoot: dict[str, Any], data: AuditLogData) -> None:
    upsert_extension(
        shoot,
        {
            "type": EXTENSION_AUDITLOG,
            "providerConfig": {
                "apiVersion": AUDITLOG_EXTENSION_API_VERSION,
                "kind": AUDITLOG_EXTENSION_KIND,
                "type": AUDITLOG_EXTENSION_TYPE,
                "tenantID": data.tenant_id,
                "serviceURL": data.service_url,
                "secretReferenceName": AUDITLOG_REFERENCE_NAME,
            },
        },
    )


def _set_secret(shoot: dict[str, Any], secret_name: str) -> None:
    resource = {
        "name": AUDITLOG_REFERENCE_NAME,
        "resourceRef": {"apiVersion": "v1", "kind": "Secret", "name": secret_name},
    }
    resources = shoot.setdefault("spec", {}).setdefault("resources", [])
    for idx, existing in enumerate(resources):
        if existing.get("name") == AUDITLOG_REFERENCE_NAME:
            resources[idx] = resource
            return
    resources.append(resource)


def _set_policy_config_map(shoot: dict[str, Any], policy_config_map: str) -> None:
    kube_api_server = (
        shoot.setdefault("spec", {}).setdefault("kubernetes", {}).setdefault("kubeAPIServer", {})
    )
    kube_api_server["auditConfig"] = {
        "auditPolicy": {"configMapRef": {"name": policy_config_map}},
    }


def new_auditlog_extender_for_create(policy_config_map: str, data: AuditLogData) -> Extender:
    """Configure the auditlog extension, its credentials and the audit policy."""

    def extend_with_auditlog(_runtime: dict[str, Any], shoot: dict[str, Any]) -> None:
        _set_extension(shoot, data)
        _set_secret(shoot, data.secret_name)
        _set_policy_config_map(shoot, policy_config_map)

    return extend_with_auditlog


def new_auditlog_extender_for_patch(policy_config_map: str) -> Extender:
    """Re-assert the audit policy reference without touching tenant data."""

    def extend_with_auditlog_policy(_runtime: dict[str, Any], shoot: dict[str, Any]) -> None:
        _set_policy_config_map(shoot, policy_config_map)

    return extend_with_auditlog_policy
