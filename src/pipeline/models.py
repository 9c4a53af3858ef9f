# src/pipeline/models.py — v1
"""Batch job report: "processed N of M items" plus skipped/flagged lists."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class JobItem:
    """One item that did not go through cleanly."""

    key: str
    reason: str


@dataclass
class JobReport:
    """Outcome of a batch job run.

    `processed` counts items that completed (including no-op items already
    in the store); `skipped` lists items dropped after an error, `flagged`
    lists items left for manual resolution.
    """

    job: str
    total: int = 0
    processed: int = 0
    skipped: list[JobItem] = field(default_factory=list)
    flagged: list[JobItem] = field(default_factory=list)
    stats: dict[str, Any] = field(default_factory=dict)
    dry_run: bool = False

    def skip(self, key: str, reason: str) -> None:
        self.skipped.append(JobItem(key, reason))

    def flag(self, key: str, reason: str) -> None:
        self.flagged.append(JobItem(key, reason))

    def summary(self) -> str:
        parts = [f"{self.job}: processed {self.processed} of {self.total} items"]
        if self.skipped:
            parts.append(f"{len(self.skipped)} skipped")
        if self.flagged:
            parts.append(f"{len(self.flagged)} flagged")
        for name, value in self.stats.items():
            parts.append(f"{name}={value}")
        text = ", ".join(parts)
        if self.dry_run:
            text += " (dry run)"
        lines = [text]
        lines.extend(f"  skipped {i.key}: {i.reason}" for i in self.skipped)
        lines.extend(f"  flagged {i.key}: {i.reason}" for i in self.flagged)
        return "\n".join(lines)
