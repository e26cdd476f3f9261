"""Correlation ids tying together the log lines of one handler invocation."""

from __future__ import annotations

import contextvars
import uuid
from contextlib import contextmanager
from typing import Iterator

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "infrastructure_manager_correlation_id", default=None
)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


@contextmanager
def with_correlation_id(corr_id: str | None = None) -> Iterator[str]:
    """Tag every log line written inside the block with ``corr_id``.

    A fresh id is generated when none is given.
    """
    corr_id = corr_id or uuid.uuid4().hex
    token = _correlation_id.set(corr_id)
    try:
        yield corr_id
    finally:
        _correlation_id.reset(token)


def correlation_fields() -> dict[str, str]:
    """Log fields of the current invocation, empty outside of one."""
    corr_id = _correlation_id.get()
    return {"correlation_id": corr_id} if corr_id else {}
