"""Utilities for managing kubeconfig secrets."""

from __future__ import annotations

import base64
from datetime import datetime, timezone
from typing import Any

from kubernetes import client

from ..constants import (
    ANNOTATION_LAST_SYNC,
    FIELD_MANAGER,
    LABEL_CLUSTER_NAME,
    LABEL_MANAGED_BY,
    LABEL_SHOOT_NAME,
    MANAGED_BY_VALUE,
)
from ..exceptions import SecretAmbiguityError


def format_sync_time(moment: datetime) -> str:
    """Format a timestamp the way the last-sync annotation stores it (RFC3339, UTC)."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _encode(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("utf-8")


def identity_selector(cluster_name: str) -> str:
    """Label selector identifying the secret of a GardenerCluster."""
    return f"{LABEL_CLUSTER_NAME}={cluster_name}"


def find_kubeconfig_secret(
    api: client.CoreV1Api,
    cluster_name: str,
    request_timeout: float | None = None,
) -> client.V1Secret | None:
    """Locate the single secret labelled with the GardenerCluster identity.

    Returns:
        The secret, or None when no secret carries the label

    Raises:
        SecretAmbiguityError: If more than one secret matches
    """
    selector = identity_selector(cluster_name)
    secrets = api.list_secret_for_all_namespaces(
        label_selector=selector,
        _request_timeout=request_timeout,
    ).items

    if len(secrets) > 1:
        raise SecretAmbiguityError(selector, len(secrets))
    return secrets[0] if secrets else None


def create_kubeconfig_secret(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
    key: str,
    kubeconfig: str,
    cluster_name: str,
    shoot_name: str,
    synced_at: datetime,
    extra_labels: dict[str, str] | None = None,
    request_timeout: float | None = None,
) -> client.V1Secret:
    """Create a kubeconfig secret carrying the identity labels and last-sync annotation."""
    labels = dict(extra_labels or {})
    labels[LABEL_MANAGED_BY] = MANAGED_BY_VALUE
    labels[LABEL_CLUSTER_NAME] = cluster_name
    labels[LABEL_SHOOT_NAME] = shoot_name

    secret = client.V1Secret(
        metadata=client.V1ObjectMeta(
            name=secret_name,
            namespace=namespace,
            labels=labels,
            annotations={ANNOTATION_LAST_SYNC: format_sync_time(synced_at)},
        ),
        type="Opaque",
        data={key: _encode(kubeconfig)},
    )

    return api.create_namespaced_secret(
        namespace=namespace,
        body=secret,
        field_manager=FIELD_MANAGER,
        _request_timeout=request_timeout,
    )


def update_kubeconfig_secret(
    api: client.CoreV1Api,
    secret: client.V1Secret,
    key: str,
    kubeconfig: str,
    synced_at: datetime,
    request_timeout: float | None = None,
) -> client.V1Secret:
    """Overwrite the kubeconfig payload and last-sync annotation of an existing secret.

    The full object is replaced, so the resourceVersion of ``secret`` guards
    against concurrent writers.
    """
    secret.data = dict(secret.data or {})
    secret.data[key] = _encode(kubeconfig)
    annotations = dict(secret.metadata.annotations or {})
    annotations[ANNOTATION_LAST_SYNC] = format_sync_time(synced_at)
    secret.metadata.annotations = annotations

    return _replace(api, secret, request_timeout)


def strip_kubeconfig_secret(
    api: client.CoreV1Api,
    secret: client.V1Secret,
    key: str,
    request_timeout: float | None = None,
) -> client.V1Secret:
    """Invalidate the payload of a secret while keeping the secret itself."""
    data = dict(secret.data or {})
    data.pop(key, None)
    secret.data = data
    annotations = dict(secret.metadata.annotations or {})
    annotations.pop(ANNOTATION_LAST_SYNC, None)
    secret.metadata.annotations = annotations

    return _replace(api, secret, request_timeout)


def delete_kubeconfig_secret(
    api: client.CoreV1Api,
    secret: client.V1Secret,
    request_timeout: float | None = None,
) -> None:
    """Delete a kubeconfig secret."""
    api.delete_namespaced_secret(
        name=secret.metadata.name,
        namespace=secret.metadata.namespace,
        _request_timeout=request_timeout,
    )


def get_last_sync_time(secret: client.V1Secret | None) -> str | None:
    """Return the raw last-sync annotation of a secret, if any."""
    if secret is None or secret.metadata is None:
        return None
    return (secret.metadata.annotations or {}).get(ANNOTATION_LAST_SYNC)


def _replace(
    api: client.CoreV1Api,
    secret: client.V1Secret,
    request_timeout: float | None,
) -> Any:
    return api.replace_namespaced_secret(
        name=secret.metadata.name,
        namespace=secret.metadata.namespace,
        body=secret,
        field_manager=FIELD_MANAGER,
        _request_timeout=request_timeout,
    )
