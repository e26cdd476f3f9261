"""Exception types raised by the operator."""

from __future__ import annotations


class ConfigurationError(Exception):
    """Raised when operator configuration is invalid."""


class RuntimeValidationError(ValueError):
    """Raised when a Runtime misses required fields or labels."""


class ConversionError(Exception):
    """Raised when a Runtime cannot be converted into a Shoot."""

    def __init__(self, step: str, message: str) -> None:
        self.step = step
        super().__init__(f"{step}: {message}")


class AuditLogError(Exception):
    """Raised when audit log data cannot be resolved."""


class MaintenanceWindowError(Exception):
    """Raised when no maintenance window can be resolved for a region."""


class SecretAmbiguityError(Exception):
    """Raised when a label selector matches more than one kubeconfig secret."""

    def __init__(self, selector: str, count: int) -> None:
        self.selector = selector
        self.count = count
        super().__init__(f"Unexpected number of secrets ({count}) found for selector {selector}")
