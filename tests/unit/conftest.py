"""Shared fixtures for unit tests."""

from __future__ import annotations

import copy
from typing import Any
from unittest.mock import patch

import pytest

from infrastructure_manager.config import OperatorConfig
from infrastructure_manager.constants import (
    ANNOTATION_RUNTIME_GENERATION,
    LABEL_BROKER_PLAN_ID,
    LABEL_BROKER_PLAN_NAME,
    LABEL_GLOBAL_ACCOUNT_ID,
    LABEL_INSTANCE_ID,
    LABEL_KYMA_NAME,
    LABEL_REGION,
    LABEL_RUNTIME_ID,
    LABEL_SHOOT_NAME,
    LABEL_SUBACCOUNT_ID,
)

RUNTIME_LABELS = {
    LABEL_INSTANCE_ID: "instance-id",
    LABEL_RUNTIME_ID: "runtime-id",
    LABEL_BROKER_PLAN_ID: "plan-id",
    LABEL_BROKER_PLAN_NAME: "aws",
    LABEL_GLOBAL_ACCOUNT_ID: "global-account-id",
    LABEL_SUBACCOUNT_ID: "subaccount-id",
    LABEL_SHOOT_NAME: "test-shoot",
    LABEL_REGION: "eu-west-1",
    LABEL_KYMA_NAME: "kyma-name",
}


@pytest.fixture(autouse=True)
def mock_kopf_event():
    """Kubernetes events need a running operator; capture them instead."""
    with patch("kopf.event") as mocked:
        yield mocked


@pytest.fixture
def operator_config() -> OperatorConfig:
    return OperatorConfig(
        gardener_project="kyma-dev",
        requeue_seconds=15,
        request_timeout_seconds=30,
        kubeconfig_expiration_seconds=86400,
        minimal_rotation_ratio=0.6,
    )


def make_runtime(
    provider_type: str = "aws",
    region: str = "eu-west-1",
    purpose: str = "evaluation",
    generation: int = 1,
    **shoot_overrides: Any,
) -> dict[str, Any]:
    shoot = {
        "name": "test-shoot",
        "purpose": purpose,
        "region": region,
        "licenceType": "TestDevelopmentAndDemo",
        "secretBindingName": "test-secret-binding",
        "enforceSeedLocation": False,
        "kubernetes": {
            "version": "1.30",
            "kubeAPIServer": {
                "oidcConfig": {
                    "clientID": "client-id",
                    "groupsClaim": "groups",
                    "issuerURL": "https://kymatest.accounts400.ondemand.com",
                    "signingAlgs": ["RS256"],
                    "usernameClaim": "sub",
                    "usernamePrefix": "-",
                    "caBundle": "ignored",
                },
            },
        },
        "provider": {
            "type": provider_type,
            "workers": [
                {
                    "name": "cpu-worker-0",
                    "machine": {"type": "m6i.large"},
                    "minimum": 1,
                    "maximum": 3,
                    "zones": [f"{region}a"],
                },
            ],
            "infrastructureConfig": {"kind": "InfrastructureConfig"},
            "controlPlaneConfig": {"kind": "ControlPlaneConfig"},
        },
        "networking": {
            "pods": "100.64.0.0/12",
            "nodes": "10.250.0.0/16",
            "services": "100.104.0.0/13",
        },
        "controlPlane": {"highAvailability": {"failureTolerance": {"type": "zone"}}},
    }
    shoot.update(shoot_overrides)
    return {
        "apiVersion": "infrastructuremanager.kyma-project.io/v1",
        "kind": "Runtime",
        "metadata": {
            "name": "runtime-id",
            "namespace": "kcp-system",
            "uid": "uid-1",
            "generation": generation,
            "labels": dict(RUNTIME_LABELS),
            "finalizers": [],
        },
        "spec": {
            "shoot": shoot,
            "security": {
                "administrators": ["admin@example.com"],
                "networking": {
                    "filter": {"ingress": {"enabled": False}, "egress": {"enabled": True}},
                },
            },
        },
        "status": {},
    }


def make_shoot(
    runtime: dict[str, Any],
    operation_type: str | None = "Create",
    operation_state: str | None = "Succeeded",
) -> dict[str, Any]:
    """An observed Shoot matching ``runtime``."""
    shoot = {
        "apiVersion": "core.gardener.cloud/v1beta1",
        "kind": "Shoot",
        "metadata": {
            "name": "test-shoot",
            "namespace": "garden-kyma-dev",
            "resourceVersion": "42",
            "annotations": {
                ANNOTATION_RUNTIME_GENERATION: str(runtime["metadata"]["generation"]),
            },
        },
        "spec": copy.deepcopy({
            "provider": {"type": runtime["spec"]["shoot"]["provider"]["type"], "workers": []},
            "kubernetes": {"version": "1.30"},
        }),
        "status": {},
    }
    if operation_type is not None:
        shoot["status"]["lastOperation"] = {
            "type": operation_type,
            "state": operation_state,
            "description": "",
        }
    return shoot


@pytest.fixture
def runtime() -> dict[str, Any]:
    return make_runtime()
