"""Operator configuration loaded from environment variables.

All values are validated when the configuration is built so that an invalid
deployment fails at start-up rather than in the middle of a reconciliation.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from .exceptions import ConfigurationError

DEFAULT_GARDENER_PROJECT = "kyma-dev"
DEFAULT_REQUEUE_SECONDS = 15.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
DEFAULT_KUBECONFIG_EXPIRATION_SECONDS = 86400
DEFAULT_MINIMAL_ROTATION_RATIO = 0.6
DEFAULT_KUBECONFIG_CHECK_INTERVAL_SECONDS = 300.0
DEFAULT_KUBERNETES_VERSION = "1.29"
DEFAULT_POLICY_CONFIG_MAP = "policy-config-map"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


@dataclass(frozen=True)
class OperatorConfig:
    """Runtime settings shared by every handler."""

    gardener_project: str = DEFAULT_GARDENER_PROJECT
    gardener_kubeconfig_path: str | None = None
    requeue_seconds: float = DEFAULT_REQUEUE_SECONDS
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS

    # Kubeconfig rotation
    kubeconfig_expiration_seconds: int = DEFAULT_KUBECONFIG_EXPIRATION_SECONDS
    minimal_rotation_ratio: float = DEFAULT_MINIMAL_ROTATION_RATIO
    kubeconfig_check_interval_seconds: float = DEFAULT_KUBECONFIG_CHECK_INTERVAL_SECONDS

    # Audit logging
    audit_log_mandatory: bool = True
    audit_log_tenant_config_path: str | None = None
    audit_log_policy_config_map: str = DEFAULT_POLICY_CONFIG_MAP

    # Shoot conversion defaults
    maintenance_window_map_path: str | None = None
    default_kubernetes_version: str = DEFAULT_KUBERNETES_VERSION
    dns_secret_name: str = "aws-route53-secret-dev"
    dns_domain_prefix: str = "dev.kyma.ondemand.com"
    dns_provider_type: str = "aws-route53"
    network_filter_egress_default: bool = False

    # Operator runtime
    max_workers: int = 4
    metrics_port: int = 8080

    def __post_init__(self) -> None:
        if not self.gardener_project:
            raise ConfigurationError("GARDENER_PROJECT_NAME must not be empty")
        if self.requeue_seconds <= 0:
            raise ConfigurationError("GARDENER_REQUEUE_SECONDS must be positive")
        if self.request_timeout_seconds <= 0:
            raise ConfigurationError("GARDENER_REQUEST_TIMEOUT_SECONDS must be positive")
        if self.kubeconfig_expiration_seconds <= 0:
            raise ConfigurationError("KUBECONFIG_EXPIRATION_SECONDS must be positive")
        if not 0 < self.minimal_rotation_ratio <= 1:
            raise ConfigurationError("KUBECONFIG_MINIMAL_ROTATION_RATIO must be in (0, 1]")
        if self.kubeconfig_check_interval_seconds <= 0:
            raise ConfigurationError("KUBECONFIG_CHECK_INTERVAL_SECONDS must be positive")
        if self.max_workers < 1:
            raise ConfigurationError("MAX_WORKERS must be at least 1")

    @property
    def gardener_namespace(self) -> str:
        """Namespace holding the Shoots of the Gardener project."""
        return f"garden-{self.gardener_project}"

    @property
    def rotation_period(self) -> timedelta:
        """Interval after which an issued kubeconfig is refreshed."""
        return timedelta(seconds=self.kubeconfig_expiration_seconds * self.minimal_rotation_ratio)

    @property
    def audit_log_enabled(self) -> bool:
        return bool(self.audit_log_tenant_config_path)

    @classmethod
    def from_env(cls) -> OperatorConfig:
        """Build the configuration from environment variables."""
        return cls(
            gardener_project=os.getenv("GARDENER_PROJECT_NAME", DEFAULT_GARDENER_PROJECT),
            gardener_kubeconfig_path=os.getenv("GARDENER_KUBECONFIG_PATH") or None,
            requeue_seconds=_env_float("GARDENER_REQUEUE_SECONDS", DEFAULT_REQUEUE_SECONDS),
            request_timeout_seconds=_env_float(
                "GARDENER_REQUEST_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT_SECONDS
            ),
            kubeconfig_expiration_seconds=_env_int(
                "KUBECONFIG_EXPIRATION_SECONDS", DEFAULT_KUBECONFIG_EXPIRATION_SECONDS
            ),
            minimal_rotation_ratio=_env_float(
                "KUBECONFIG_MINIMAL_ROTATION_RATIO", DEFAULT_MINIMAL_ROTATION_RATIO
            ),
            kubeconfig_check_interval_seconds=_env_float(
                "KUBECONFIG_CHECK_INTERVAL_SECONDS", DEFAULT_KUBECONFIG_CHECK_INTERVAL_SECONDS
            ),
            audit_log_mandatory=_env_bool("AUDIT_LOG_MANDATORY", True),
            audit_log_tenant_config_path=os.getenv("AUDIT_LOG_TENANT_CONFIG_PATH") or None,
            audit_log_policy_config_map=os.getenv(
                "AUDIT_LOG_POLICY_CONFIG_MAP", DEFAULT_POLICY_CONFIG_MAP
            ),
            maintenance_window_map_path=os.getenv("MAINTENANCE_WINDOW_MAP_PATH") or None,
            default_kubernetes_version=os.getenv(
                "DEFAULT_KUBERNETES_VERSION", DEFAULT_KUBERNETES_VERSION
            ),
            dns_secret_name=os.getenv("DNS_SECRET_NAME", "aws-route53-secret-dev"),
            dns_domain_prefix=os.getenv("DNS_DOMAIN_PREFIX", "dev.kyma.ondemand.com"),
            dns_provider_type=os.getenv("DNS_PROVIDER_TYPE", "aws-route53"),
            network_filter_egress_default=_env_bool("NETWORK_FILTER_EGRESS_DEFAULT", False),
            max_workers=_env_int("MAX_WORKERS", 4),
            metrics_port=_env_int("METRICS_PORT", 8080),
        )


@lru_cache(maxsize=1)
def get_config() -> OperatorConfig:
    """Return the process-wide configuration, loading it on first use."""
    return OperatorConfig.from_env()
