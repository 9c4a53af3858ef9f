# src/consolidator/models.py — v2
"""Consolidation run reports."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class PassResult(BaseModel):
    """Result of a single consolidation pass."""

    pass_name: str
    duration_ms: int
    items_processed: int
    items_modified: int
    error: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class ConsolidationReport(BaseModel):
    """Top-level report for a full consolidation run."""

    consolidation_id: str
    timestamp: datetime
    trigger: Literal["scheduled", "manual"] = "manual"
    dry_run: bool = False
    passes_executed: list[str] = Field(default_factory=list)
    passes_failed: list[str] = Field(default_factory=list)
    results: dict[str, PassResult] = Field(default_factory=dict)
    unresolved_contradictions: int = 0
    store_stats: dict[str, int] = Field(default_factory=dict)

    def summary(self) -> str:
        lines = [
            f"Consolidation {self.consolidation_id}"
            f"{' (dry run)' if self.dry_run else ''}: "
            f"{len(self.passes_executed)} pass(es) ok, {len(self.passes_failed)} failed, "
            f"{self.unresolved_contradictions} unresolved contradiction(s)"
        ]
        for name, result in self.results.items():
            status = f"FAILED: {result.error}" if result.error else (
                f"{result.items_modified}/{result.items_processed} modified"
            )
            lines.append(f"  {name:20s} {status} ({result.duration_ms}ms)")
        return "\n".join(lines)
