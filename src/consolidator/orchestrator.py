# src/consolidator/orchestrator.py — v2
"""Consolidator orchestrator — run the periodic maintenance passes in order.

Passes:
  org_dedup           merge duplicate organizations
  relation_direction  bulk-reverse edges from inverted-convention sources
  relation_repair     duplicate removal + contradiction resolution
  influence           influence scores and topic ranks

A failing pass is logged and recorded; later passes still run.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from peoplegraph.consolidator.models import ConsolidationReport, PassResult
from peoplegraph.graph.entity_matcher import EntityMatcher
from peoplegraph.graph.org_deduplicator import OrganizationDeduplicator
from peoplegraph.graph.relation_repairer import GroundTruthTable, RelationRepairer
from peoplegraph.metrics.aggregator import MetricsAggregator

if TYPE_CHECKING:
    from peoplegraph.config.settings import Settings
    from peoplegraph.storage.base_repository import BaseKnowledgeStore

logger = logging.getLogger(__name__)

# Execution order
PASS_REGISTRY: list[str] = [
    "org_dedup",
    "relation_direction",
    "relation_repair",
    "influence",
]


class ConsolidatorOrchestrator:
    """Orchestrate consolidation passes over the knowledge store.

    Args:
        store: Knowledge store.
        settings: Application settings (pass list and pass config).
        ground_truth: Advisor ground truth; loaded from settings when omitted.
    """

    def __init__(
        self,
        store: BaseKnowledgeStore,
        settings: Settings | None = None,
        ground_truth: GroundTruthTable | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._ground_truth = ground_truth
        self._active_passes = self._resolve_active_passes(settings)

    @property
    def active_passes(self) -> list[str]:
        return list(self._active_passes)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run_all(self, trigger: str = "manual", dry_run: bool = False) -> ConsolidationReport:
        """Run all active passes in order."""
        ts = datetime.now(timezone.utc)
        report = ConsolidationReport(
            consolidation_id=f"cons_{ts.strftime('%Y%m%d_%H%M%S')}",
            timestamp=ts,
            trigger=trigger,  # type: ignore[arg-type]
            dry_run=dry_run,
        )

        for pass_name in self._active_passes:
            logger.info("Running consolidation pass: %s", pass_name)
            start = time.monotonic()
            try:
                detail = self._run_pass(pass_name, dry_run)
            except Exception as e:
                logger.exception("Pass %s failed", pass_name)
                report.results[pass_name] = PassResult(
                    pass_name=pass_name,
                    duration_ms=int((time.monotonic() - start) * 1000),
                    items_processed=0,
                    items_modified=0,
                    error=str(e) or type(e).__name__,
                )
                report.passes_failed.append(pass_name)
                continue

            duration_ms = int((time.monotonic() - start) * 1000)
            report.results[pass_name] = PassResult(
                pass_name=pass_name,
                duration_ms=duration_ms,
                items_processed=detail.pop("items_processed", 0),
                items_modified=detail.pop("items_modified", 0),
                details=detail,
            )
            report.passes_executed.append(pass_name)
            report.unresolved_contradictions += detail.get("unresolved_contradictions", 0)
            logger.info("Pass %s completed in %dms: %s", pass_name, duration_ms, detail)

        report.store_stats = self._gather_store_stats()
        if report.unresolved_contradictions:
            logger.warning(
                "%d advisor contradiction(s) need manual review",
                report.unresolved_contradictions,
            )
        return report

    # ------------------------------------------------------------------
    # Internal pass dispatch
    # ------------------------------------------------------------------

    def _run_pass(self, pass_name: str, dry_run: bool) -> dict[str, Any]:
        if pass_name == "org_dedup":
            return self._execute_org_dedup(dry_run)
        elif pass_name == "relation_direction":
            return self._execute_relation_direction(dry_run)
        elif pass_name == "relation_repair":
            return self._execute_relation_repair(dry_run)
        elif pass_name == "influence":
            return self._execute_influence(dry_run)
        else:
            raise ValueError(f"Unknown pass: {pass_name}")

    def _execute_org_dedup(self, dry_run: bool) -> dict[str, Any]:
        report = OrganizationDeduplicator(self._store, self._settings).run(dry_run=dry_run)
        return {
            "items_processed": report.stats["organizations_scanned"],
            "items_modified": report.stats["organizations_deleted"],
            **report.stats,
        }

    def _execute_relation_direction(self, dry_run: bool) -> dict[str, Any]:
        sources = self._settings.direction_sources_list if self._settings else []
        if not sources:
            return {"skipped": True, "items_processed": 0, "items_modified": 0}

        repairer = RelationRepairer(self._store)
        totals = {"reversed": 0, "deleted_redundant": 0, "already_normalized": 0}
        for provenance in sources:
            stats = repairer.migrate_direction(provenance, dry_run=dry_run).stats
            for key, value in stats.items():
                totals[key] += value
        modified = totals["reversed"] + totals["deleted_redundant"]
        return {
            "items_processed": modified + totals["already_normalized"],
            "items_modified": modified,
            **totals,
        }

    def _execute_relation_repair(self, dry_run: bool) -> dict[str, Any]:
        report = RelationRepairer(self._store).run(
            self._load_ground_truth(), dry_run=dry_run
        )
        stats = report.stats
        return {
            "items_processed": len(self._store.relations.list_all()),
            "items_modified": (
                stats["duplicates_removed"]
                + stats["contradictions_resolved"]
                + stats["reversed_by_ground_truth"]
            ),
            **stats,
            "unresolved_pairs": [
                f"{p.person_a}<->{p.person_b}" for p in report.unresolved
            ],
        }

    def _execute_influence(self, dry_run: bool) -> dict[str, Any]:
        config = self._settings.influence_config() if self._settings else None
        report = MetricsAggregator(self._store, config).run(dry_run=dry_run)
        return {
            "items_processed": report.stats["people"],
            "items_modified": report.stats["updated"],
            "topics": report.stats["topics"],
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_ground_truth(self) -> GroundTruthTable:
        if self._ground_truth is not None:
            return self._ground_truth
        path = self._settings.consolidator_ground_truth_file if self._settings else None
        if path is None:
            return GroundTruthTable()
        matcher = EntityMatcher(self._store.people, self._store.organizations)
        self._ground_truth = GroundTruthTable.from_file(path, matcher)
        return self._ground_truth

    def _resolve_active_passes(self, settings: Settings | None) -> list[str]:
        """Determine which passes to execute from config."""
        if settings is None:
            return list(PASS_REGISTRY)

        requested = settings.consolidator_passes_list
        unknown = [p for p in requested if p not in PASS_REGISTRY]
        if unknown:
            logger.warning("Ignoring unknown consolidation pass(es): %s", unknown)

        # Preserve ordering from PASS_REGISTRY
        return [p for p in PASS_REGISTRY if p in requested]

    def _gather_store_stats(self) -> dict[str, int]:
        return {
            "people": len(self._store.people.list_all()),
            "organizations": len(self._store.organizations.list_all()),
            "relations": len(self._store.relations.list_all()),
            "contents": len(self._store.contents.list_all()),
        }
