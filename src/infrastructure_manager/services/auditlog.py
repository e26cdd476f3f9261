"""Audit log tenant configuration lookup."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from ..exceptions import AuditLogError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditLogData:
    """Tenant data required to configure the auditlog extension of a Shoot."""

    tenant_id: str
    service_url: str
    secret_name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditLogData:
        """Build and validate audit log data from a tenant config entry.

        Raises:
            AuditLogError: If a field is missing or the service URL is invalid
        """
        tenant_id = data.get("tenantID")
        service_url = data.get("serviceURL")
        secret_name = data.get("secretName")

        fields = (
            ("tenantID", tenant_id),
            ("serviceURL", service_url),
            ("secretName", secret_name),
        )
        missing = [name for name, value in fields if not value]
        if missing:
            raise AuditLogError(f"Audit log data is missing required fields: {', '.join(missing)}")

        not_strings = [name for name, value in fields if not isinstance(value, str)]
        if not_strings:
            raise AuditLogError(f"Audit log data fields must be strings: {', '.join(not_strings)}")

        parsed = urlparse(service_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise AuditLogError(f"Audit log service URL {service_url!r} is not a valid URL")

        return cls(tenant_id=tenant_id, service_url=service_url, secret_name=secret_name)


class AuditLogging:
    """Resolves audit log tenants per provider type and region.

    The tenant configuration is a JSON document of the form
    ``{"<providerType>": {"<region>": {"tenantID": ..., "serviceURL": ..., "secretName": ...}}}``.
    """

    def __init__(self, tenant_config_path: str) -> None:
        self.tenant_config_path = Path(tenant_config_path)

    def _load_tenant_config(self) -> dict[str, Any]:
        try:
            with self.tenant_config_path.open(encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise AuditLogError(
                f"Failed to read audit log tenant config {self.tenant_config_path}: {e}"
            ) from e

    def get_audit_log_data(self, provider_type: str, region: str) -> AuditLogData:
        """Look up the audit log tenant for a provider type and region.

        Raises:
            AuditLogError: If the config cannot be read or holds no valid entry
        """
        tenants = self._load_tenant_config()

        provider_tenants = tenants.get(provider_type)
        if not isinstance(provider_tenants, dict):
            raise AuditLogError(f"No audit log tenants configured for provider {provider_type}")

        entry = provider_tenants.get(region)
        if not isinstance(entry, dict):
            raise AuditLogError(
                f"No audit log tenant configured for provider {provider_type} in region {region}"
            )

        return AuditLogData.from_dict(entry)
