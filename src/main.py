# src/main.py — v2
"""CLI entry point — batch jobs over the knowledge store.

Usage:
    peoplegraph enroll <name>... [--file names.txt] [--dry-run]
    peoplegraph import-relations [--dry-run]
    peoplegraph dedup-orgs [--dry-run]
    peoplegraph fix-direction --source <provenance>... [--dry-run]
    peoplegraph repair-relations [--ground-truth file.json] [--dry-run]
    peoplegraph compute-metrics [--dry-run]
    peoplegraph consolidate [--dry-run]
    peoplegraph apply-audit <audit.csv> [--dry-run]

Every command prints a "processed N of M" style summary. Exit code is 0
unless configuration or input is invalid.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from peoplegraph.config.settings import ConfigurationError, Settings, load_settings
from peoplegraph.logging.context import set_job_context
from peoplegraph.logging.logger import setup_logging
from peoplegraph.storage.base_repository import BaseKnowledgeStore
from peoplegraph.storage.store_factory import create_store
from peoplegraph.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = load_settings()
    except (ConfigurationError, ValidationError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )

    store = create_store(settings)
    try:
        return asyncio.run(args.func(args, settings, store))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except (ConfigurationError, ValueError, OSError) as exc:
        logger.error("Invalid input: %s", exc, exc_info=args.verbose)
        return 1
    finally:
        store.close()


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="peoplegraph",
        description=f"peoplegraph v{__version__} — people knowledge graph maintenance",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    def add_command(name: str, func, help_text: str) -> argparse.ArgumentParser:
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--dry-run", action="store_true",
            help="Report what would change without writing",
        )
        sub.set_defaults(func=func)
        return sub

    # --- enroll ---
    p_enroll = add_command("enroll", _cmd_enroll, "Enroll people by name")
    p_enroll.add_argument("names", nargs="*", help="Person names")
    p_enroll.add_argument(
        "-f", "--file", type=Path, default=None,
        help="File with one name per line",
    )

    # --- import-relations ---
    add_command(
        "import-relations", _cmd_import_relations,
        "Import relations from the knowledge source",
    )

    # --- dedup-orgs ---
    add_command("dedup-orgs", _cmd_dedup_orgs, "Merge duplicate organizations")

    # --- fix-direction ---
    p_fix = add_command(
        "fix-direction", _cmd_fix_direction,
        "Reverse edges from a source with the inverted convention",
    )
    p_fix.add_argument(
        "-s", "--source", action="append", dest="sources", default=None,
        help="Provenance tag to migrate (repeatable; default: CONSOLIDATOR_DIRECTION_SOURCES)",
    )

    # --- repair-relations ---
    p_repair = add_command(
        "repair-relations", _cmd_repair_relations,
        "Remove duplicate edges and resolve advisor contradictions",
    )
    p_repair.add_argument(
        "-g", "--ground-truth", type=Path, default=None,
        help="JSON object {student name: advisor name}",
    )

    # --- compute-metrics ---
    add_command(
        "compute-metrics", _cmd_compute_metrics,
        "Recompute influence scores and topic ranks",
    )

    # --- consolidate ---
    add_command("consolidate", _cmd_consolidate, "Run all consolidation passes")

    # --- apply-audit ---
    p_apply = add_command(
        "apply-audit", _cmd_apply_audit,
        "Apply the human-annotated actions of an audit CSV",
    )
    p_apply.add_argument("csv_file", type=Path, help="Annotated audit CSV")

    return parser


async def _cmd_enroll(
    args: argparse.Namespace, settings: Settings, store: BaseKnowledgeStore
) -> int:
    from peoplegraph.external.wikidata_client import WikidataClient
    from peoplegraph.pipeline.person_enrollment import PersonEnrollmentJob

    names = list(args.names)
    if args.file is not None:
        text = args.file.read_text(encoding="utf-8")
        names.extend(line.strip() for line in text.splitlines() if line.strip())
    if not names:
        logger.error("No names given")
        return 1

    source = WikidataClient.from_settings(settings)
    try:
        report = await PersonEnrollmentJob(store, source, settings=settings).run(
            names, dry_run=args.dry_run
        )
    finally:
        await source.close()
    print(report.summary())
    return 0


async def _cmd_import_relations(
    args: argparse.Namespace, settings: Settings, store: BaseKnowledgeStore
) -> int:
    from peoplegraph.external.wikidata_client import WikidataClient
    from peoplegraph.pipeline.relation_import import ExternalRelationImportJob

    source = WikidataClient.from_settings(settings)
    try:
        report = await ExternalRelationImportJob(store, source, settings=settings).run(
            dry_run=args.dry_run
        )
    finally:
        await source.close()
    print(report.summary())
    return 0


async def _cmd_dedup_orgs(
    args: argparse.Namespace, settings: Settings, store: BaseKnowledgeStore
) -> int:
    from peoplegraph.graph.org_deduplicator import OrganizationDeduplicator

    set_job_context("dedup-orgs", "cli")
    report = OrganizationDeduplicator(store, settings).run(dry_run=args.dry_run)

    print(f"\nOrganization dedup{' (dry run)' if report.dry_run else ''}:")
    for group in report.groups:
        print(
            f"  {group.survivor_name} ({group.survivor_id}) <- "
            f"{', '.join(group.merged_ids)}: {group.edges_moved} moved, "
            f"{group.duplicates_dropped} dropped"
        )
    for group in report.failed_groups:
        print(f"  FAILED {group.survivor_name}: {group.error}")
    _print_stats(report.stats)
    return 0


async def _cmd_fix_direction(
    args: argparse.Namespace, settings: Settings, store: BaseKnowledgeStore
) -> int:
    from peoplegraph.graph.relation_repairer import RelationRepairer

    sources = args.sources or settings.direction_sources_list
    if not sources:
        logger.error("No source given (use --source or CONSOLIDATOR_DIRECTION_SOURCES)")
        return 1

    set_job_context("fix-direction", "cli")
    repairer = RelationRepairer(store)
    for provenance in sources:
        report = repairer.migrate_direction(provenance, dry_run=args.dry_run)
        print(f"\nDirection migration for {provenance}"
              f"{' (dry run)' if report.dry_run else ''}:")
        _print_stats(report.stats)
    return 0


async def _cmd_repair_relations(
    args: argparse.Namespace, settings: Settings, store: BaseKnowledgeStore
) -> int:
    from peoplegraph.graph.entity_matcher import EntityMatcher
    from peoplegraph.graph.relation_repairer import GroundTruthTable, RelationRepairer

    set_job_context("repair-relations", "cli")
    path = args.ground_truth or settings.consolidator_ground_truth_file
    ground_truth = GroundTruthTable()
    if path is not None:
        matcher = EntityMatcher(store.people, store.organizations)
        ground_truth = GroundTruthTable.from_file(path, matcher)

    report = RelationRepairer(store).run(ground_truth, dry_run=args.dry_run)
    print(f"\nRelation repair{' (dry run)' if report.dry_run else ''}:")
    _print_stats(report.stats)
    for pair in report.unresolved:
        print(f"  unresolved: {pair.person_a} <-> {pair.person_b}")
    return 0


async def _cmd_compute_metrics(
    args: argparse.Namespace, settings: Settings, store: BaseKnowledgeStore
) -> int:
    from peoplegraph.metrics.aggregator import MetricsAggregator

    set_job_context("compute-metrics", "cli")
    report = MetricsAggregator(store, settings.influence_config()).run(
        dry_run=args.dry_run
    )
    print(f"\nMetrics{' (dry run)' if report.dry_run else ''}:")
    _print_stats(report.stats)
    return 0


async def _cmd_consolidate(
    args: argparse.Namespace, settings: Settings, store: BaseKnowledgeStore
) -> int:
    from peoplegraph.consolidator.orchestrator import ConsolidatorOrchestrator

    set_job_context("consolidate", "cli")
    report = ConsolidatorOrchestrator(store, settings).run_all(dry_run=args.dry_run)
    print(report.summary())
    return 0


async def _cmd_apply_audit(
    args: argparse.Namespace, settings: Settings, store: BaseKnowledgeStore
) -> int:
    from peoplegraph.audit.report import apply_audit_actions, read_audit_csv

    csv_file: Path = args.csv_file
    if not csv_file.is_file():
        logger.error("File not found: %s", csv_file)
        return 1

    set_job_context("apply-audit", "cli")
    rows = read_audit_csv(csv_file)
    report = apply_audit_actions(store, rows, dry_run=args.dry_run)
    print(f"\nAudit apply{' (dry run)' if report.dry_run else ''}: "
          f"{len(rows)} row(s) read")
    _print_stats(report.stats)
    return 0


def _print_stats(stats: dict[str, int]) -> None:
    for name, value in stats.items():
        print(f"  {name:28s} {value}")


if __name__ == "__main__":
    sys.exit(main())
