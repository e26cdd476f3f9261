"""Tests for audit log tenant lookup."""

from __future__ import annotations

import json

import pytest

from infrastructure_manager.exceptions import AuditLogError
from infrastructure_manager.services.auditlog import AuditLogData, AuditLogging

TENANT = {
    "tenantID": "79c64792-9c1e-4c1b-9941-ef7560dd3eae",
    "serviceURL": "https://auditlog.example.com:3001",
    "secretName": "auditlog-secret",
}


@pytest.fixture
def tenant_config(tmp_path):
    path = tmp_path / "tenants.json"
    path.write_text(json.dumps({"aws": {"eu-west-1": TENANT, "eu-central-1": {"tenantID": "x"}}}))
    return str(path)


class TestAuditLogData:
    """Test cases for AuditLogData.from_dict."""

    def test_valid(self):
        data = AuditLogData.from_dict(TENANT)

        assert data.tenant_id == TENANT["tenantID"]
        assert data.service_url == TENANT["serviceURL"]
        assert data.secret_name == "auditlog-secret"

    def test_missing_fields(self):
        with pytest.raises(AuditLogError, match="serviceURL, secretName"):
            AuditLogData.from_dict({"tenantID": "x"})

    def test_non_string_fields(self):
        with pytest.raises(AuditLogError, match="must be strings: tenantID, serviceURL"):
            AuditLogData.from_dict({**TENANT, "tenantID": 42, "serviceURL": 123})

    @pytest.mark.parametrize("url", ["auditlog.example.com", "ftp://auditlog.example.com", "https://"])
    def test_invalid_url(self, url):
        with pytest.raises(AuditLogError, match="not a valid URL"):
            AuditLogData.from_dict({**TENANT, "serviceURL": url})


class TestAuditLogging:
    """Test cases for AuditLogging.get_audit_log_data."""

    def test_lookup(self, tenant_config):
        logging = AuditLogging(tenant_config)

        assert logging.get_audit_log_data("aws", "eu-west-1") == AuditLogData.from_dict(TENANT)

    def test_unknown_provider(self, tenant_config):
        logging = AuditLogging(tenant_config)

        with pytest.raises(AuditLogError, match="provider gcp"):
            logging.get_audit_log_data("gcp", "europe-west1")

    def test_unknown_region(self, tenant_config):
        logging = AuditLogging(tenant_config)

        with pytest.raises(AuditLogError, match="region us-east-1"):
            logging.get_audit_log_data("aws", "us-east-1")

    def test_incomplete_entry(self, tenant_config):
        """Test that a region entry without all fields is rejected."""
        logging = AuditLogging(tenant_config)

        with pytest.raises(AuditLogError, match="missing required fields"):
            logging.get_audit_log_data("aws", "eu-central-1")

    def test_unreadable_config(self, tmp_path):
        logging = AuditLogging(str(tmp_path / "missing.json"))

        with pytest.raises(AuditLogError, match="Failed to read"):
            logging.get_audit_log_data("aws", "eu-west-1")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "tenants.json"
        path.write_text("{not json")
        logging = AuditLogging(str(path))

        with pytest.raises(AuditLogError):
            logging.get_audit_log_data("aws", "eu-west-1")

    def test_non_string_entry(self, tmp_path):
        """Test that a malformed tenant entry raises the audit log error."""
        path = tmp_path / "tenants.json"
        path.write_text(json.dumps({"aws": {"eu-west-1": {**TENANT, "serviceURL": 123}}}))
        logging = AuditLogging(str(path))

        with pytest.raises(AuditLogError, match="serviceURL"):
            logging.get_audit_log_data("aws", "eu-west-1")
