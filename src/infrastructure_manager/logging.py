"""JSON log lines for Runtime and GardenerCluster events."""

import json
import logging
import sys
from typing import Any

from .utils.context import correlation_fields

REDACTED = "***REDACTED***"

# Extra log fields that may carry credentials
SECRET_FIELDS = frozenset({"kubeconfig", "token", "password", "client_key"})


def setup_structured_logging(level: int = logging.INFO) -> None:
    """Write bare messages to stdout; each message is already a JSON document."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def log_resource_event(
    logger: logging.Logger,
    controller: str,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    uid: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Write one JSON line about a reconciled resource.

    Extra keyword fields follow the correlation id, with credential fields
    redacted.
    """
    record = {
        "controller": controller,
        "resource": resource_kind,
        "name": resource_name,
        "namespace": namespace,
        "uid": uid,
        "event": event,
        "reason": reason,
        "message": message,
        **correlation_fields(),
        **sanitize_secrets(kwargs),
    }
    logger.log(level, json.dumps(record, default=str))


def sanitize_secrets(fields: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``fields`` with credential values replaced."""
    return {key: REDACTED if key in SECRET_FIELDS else value for key, value in fields.items()}
