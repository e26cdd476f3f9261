"""Error classification and sanitization utilities."""

import re

from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

# API errors plus the timeouts and connection failures raised below the client
TRANSIENT_API_ERRORS = (ApiException, HTTPError)

# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"(client-certificate-data)[:\s]+([A-Za-z0-9/+=]+)",
    r"(client-key-data)[:\s]+([A-Za-z0-9/+=]+)",
    r"(certificate-authority-data)[:\s]+([A-Za-z0-9/+=]+)",
    r"(bearer)\s+([A-Za-z0-9\-_\.]+)",
    r"(tenantID)[\"':\s]+([a-fA-F0-9\-]{36})",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "kubeconfig",
    "token",
    "password",
    "secret",
    "credentials",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, r"\1 [REDACTED]", sanitized, flags=re.IGNORECASE)

    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"\b{field}[:=]\s*([^\s,;\)]+)",
            rf"{field}: [REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: Exception) -> str:
    """Sanitize exception message."""
    if isinstance(error, ApiException):
        return sanitize_error_message(f"({error.status}) {error.reason}")
    return sanitize_error_message(str(error))


def is_not_found(error: BaseException) -> bool:
    """Whether an error is a Kubernetes 404."""
    return isinstance(error, ApiException) and error.status == 404


def is_conflict(error: BaseException) -> bool:
    """Whether an error is an optimistic-concurrency or already-exists rejection."""
    return isinstance(error, ApiException) and error.status == 409
