# src/logging/context.py — v1
"""Contextual logging support — attach job, run_id and current item to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per batch job.
_job: contextvars.ContextVar[str | None] = contextvars.ContextVar("job", default=None)
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_item: contextvars.ContextVar[str | None] = contextvars.ContextVar("item", default=None)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    job: str | None = None
    run_id: str | None = None
    item: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(job=_job.get(), run_id=_run_id.get(), item=_item.get())


def set_job_context(job: str, run_id: str) -> None:
    """Set job-level context (called once per batch job)."""
    _job.set(job)
    _run_id.set(run_id)
    _item.set(None)


def set_item_context(item: str | None) -> None:
    """Set the item currently being processed."""
    _item.set(item)


def clear_context() -> None:
    """Reset all context variables."""
    _job.set(None)
    _run_id.set(None)
    _item.set(None)
