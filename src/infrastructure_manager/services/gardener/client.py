"""Gardener API client built on the Kubernetes custom objects API."""

from __future__ import annotations

import base64
import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator

from kubernetes import client, config

from ... import metrics
from ...constants import (
    GARDENER_AUTH_API_VERSION,
    GARDENER_GROUP,
    GARDENER_VERSION,
    PLURAL_SEEDS,
    PLURAL_SHOOTS,
)

logger = logging.getLogger(__name__)


def create_gardener_api(kubeconfig_path: str | None = None) -> client.ApiClient:
    """Create an API client for the Gardener cluster.

    Args:
        kubeconfig_path: Kubeconfig of the Gardener cluster; when empty the
            in-cluster configuration (or the default kubeconfig) is used
    """
    if kubeconfig_path:
        return config.new_client_from_config(config_file=kubeconfig_path)

    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()
    return client.ApiClient()


@contextmanager
def _observe(operation: str) -> Iterator[None]:
    start_time = time.time()
    try:
        yield
        metrics.gardener_api_call_total.labels(operation=operation, result="success").inc()
    except Exception:
        metrics.gardener_api_call_total.labels(operation=operation, result="error").inc()
        raise
    finally:
        duration = time.time() - start_time
        metrics.gardener_api_call_duration_seconds.labels(operation=operation).observe(duration)


class GardenerClient:
    """Shoot and Seed operations against one Gardener project namespace."""

    def __init__(
        self,
        api: client.CustomObjectsApi,
        namespace: str,
        request_timeout: float | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api: Custom objects API bound to the Gardener cluster
            namespace: Project namespace holding the Shoots (garden-<project>)
            request_timeout: Deadline applied to every request
        """
        self.api = api
        self.namespace = namespace
        self.request_timeout = request_timeout

    def get_shoot(self, name: str) -> dict[str, Any]:
        with _observe("get_shoot"):
            return self.api.get_namespaced_custom_object(
                group=GARDENER_GROUP,
                version=GARDENER_VERSION,
                namespace=self.namespace,
                plural=PLURAL_SHOOTS,
                name=name,
                _request_timeout=self.request_timeout,
            )

    def create_shoot(self, shoot: dict[str, Any]) -> dict[str, Any]:
        with _observe("create_shoot"):
            return self.api.create_namespaced_custom_object(
                group=GARDENER_GROUP,
                version=GARDENER_VERSION,
                namespace=self.namespace,
                plural=PLURAL_SHOOTS,
                body=shoot,
                _request_timeout=self.request_timeout,
            )

    def update_shoot(self, shoot: dict[str, Any]) -> dict[str, Any]:
        with _observe("update_shoot"):
            return self.api.replace_namespaced_custom_object(
                group=GARDENER_GROUP,
                version=GARDENER_VERSION,
                namespace=self.namespace,
                plural=PLURAL_SHOOTS,
                name=shoot["metadata"]["name"],
                body=shoot,
                _request_timeout=self.request_timeout,
            )

    def patch_shoot(self, name: str, patch: dict[str, Any]) -> dict[str, Any]:
        with _observe("patch_shoot"):
            return self.api.patch_namespaced_custom_object(
                group=GARDENER_GROUP,
                version=GARDENER_VERSION,
                namespace=self.namespace,
                plural=PLURAL_SHOOTS,
                name=name,
                body=patch,
                _request_timeout=self.request_timeout,
            )

    def delete_shoot(self, name: str) -> None:
        with _observe("delete_shoot"):
            self.api.delete_namespaced_custom_object(
                group=GARDENER_GROUP,
                version=GARDENER_VERSION,
                namespace=self.namespace,
                plural=PLURAL_SHOOTS,
                name=name,
                _request_timeout=self.request_timeout,
            )

    def list_seeds(self) -> list[dict[str, Any]]:
        with _observe("list_seeds"):
            response = self.api.list_cluster_custom_object(
                group=GARDENER_GROUP,
                version=GARDENER_VERSION,
                plural=PLURAL_SEEDS,
                _request_timeout=self.request_timeout,
            )
        return response.get("items", [])


class GardenerKubeconfigProvider:
    """Issues admin kubeconfigs through the Shoot ``adminkubeconfig`` subresource."""

    def __init__(
        self,
        api_client: client.ApiClient,
        namespace: str,
        expiration_seconds: int,
        request_timeout: float | None = None,
    ) -> None:
        self.api_client = api_client
        self.namespace = namespace
        self.expiration_seconds = expiration_seconds
        self.request_timeout = request_timeout

    def fetch(self, shoot_name: str) -> str:
        """Request a kubeconfig valid for ``expiration_seconds``.

        Raises:
            ApiException: If the Shoot does not exist (404) or the request fails
            ValueError: If the response carries no kubeconfig
        """
        body = {
            "apiVersion": GARDENER_AUTH_API_VERSION,
            "kind": "AdminKubeconfigRequest",
            "spec": {"expirationSeconds": self.expiration_seconds},
        }
        with _observe("create_admin_kubeconfig"):
            response = self.api_client.call_api(
                f"/apis/{GARDENER_GROUP}/{GARDENER_VERSION}/namespaces/{{namespace}}/shoots/{{name}}/adminkubeconfig",
                "POST",
                path_params={"namespace": self.namespace, "name": shoot_name},
                header_params={"Accept": "application/json", "Content-Type": "application/json"},
                body=body,
                auth_settings=["BearerToken"],
                response_type="object",
                _return_http_data_only=True,
                _request_timeout=self.request_timeout,
            )

        encoded = ((response or {}).get("status") or {}).get("kubeconfig")
        if not encoded:
            raise ValueError(f"AdminKubeconfigRequest for shoot {shoot_name} returned no kubeconfig")
        logger.debug(f"Issued kubeconfig for shoot {shoot_name}")
        return base64.b64decode(encoded).decode("utf-8")
