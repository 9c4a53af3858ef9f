# src/graph/org_deduplicator.py — v1
"""Organization deduplicator — merge records describing the same institution.

Groups are connected components of organizations sharing a normalized name
or an identical external identifier. Each group keeps one survivor (highest
survivor score) and folds the others into it:
  - every affiliation fact of a loser is re-pointed at the survivor, unless
    the survivor already holds an identical fact, in which case it is dropped;
  - losers are deleted.
One store transaction per group: a failure leaves that group untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import networkx as nx

from peoplegraph.config.settings import Settings
from peoplegraph.core.models import Organization
from peoplegraph.core.names import is_well_formed_identifier, normalize_name
from peoplegraph.storage.base_repository import BaseKnowledgeStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SurvivorWeights:
    """Weights of the survivor-selection score."""

    canonical_id: float = 1000.0
    any_id: float = 100.0
    reference: float = 1.0
    localized_name: float = 0.5
    identifier_pattern: str = r"^Q\d+$"

    @classmethod
    def from_settings(cls, settings: Settings) -> SurvivorWeights:
        return cls(
            canonical_id=settings.dedup_w_canonical_id,
            any_id=settings.dedup_w_any_id,
            reference=settings.dedup_w_reference,
            localized_name=settings.dedup_w_localized_name,
            identifier_pattern=settings.identifier_pattern,
        )


@dataclass
class MergeGroupReport:
    """Outcome of one duplicate group."""

    survivor_id: str
    survivor_name: str
    merged_ids: list[str] = field(default_factory=list)
    edges_moved: int = 0
    duplicates_dropped: int = 0
    error: str | None = None


@dataclass
class DedupReport:
    """Full deduplication report, used for auditing."""

    groups: list[MergeGroupReport] = field(default_factory=list)
    failed_groups: list[MergeGroupReport] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)
    dry_run: bool = False


def survivor_score(
    org: Organization, reference_count: int, weights: SurvivorWeights
) -> float:
    """Higher is better: canonical id >> any id >> references >> localized name."""
    score = 0.0
    if is_well_formed_identifier(org.external_id, weights.identifier_pattern):
        score += weights.canonical_id
    elif org.external_id:
        score += weights.any_id
    score += reference_count * weights.reference
    if org.name_localized:
        score += weights.localized_name
    return score


def group_duplicates(organizations: list[Organization]) -> list[list[Organization]]:
    """Connected components (size > 1) over shared normalized names or ids."""
    graph = nx.Graph()
    for org in organizations:
        graph.add_node(org.id)
        graph.add_edge(org.id, f"name:{normalize_name(org.name)}")
        if org.external_id:
            graph.add_edge(org.id, f"xid:{org.external_id.strip()}")

    by_id = {o.id: o for o in organizations}
    groups: list[list[Organization]] = []
    for component in nx.connected_components(graph):
        members = sorted(n for n in component if n in by_id)
        if len(members) > 1:
            groups.append([by_id[m] for m in members])
    groups.sort(key=lambda g: normalize_name(g[0].name))
    return groups


class OrganizationDeduplicator:
    """Scan all organizations and merge duplicate groups.

    Args:
        store: Knowledge store (organizations repository + transactions).
        settings: Source of the survivor score weights.
        weights: Explicit weights, overriding settings.
    """

    def __init__(
        self,
        store: BaseKnowledgeStore,
        settings: Settings | None = None,
        weights: SurvivorWeights | None = None,
    ) -> None:
        self._store = store
        self._orgs = store.organizations
        if weights is None:
            weights = (
                SurvivorWeights.from_settings(settings) if settings else SurvivorWeights()
            )
        self._weights = weights

    def select_survivor(self, group: list[Organization]) -> Organization:
        """Highest score wins; ties go to the lowest id."""
        return min(
            group,
            key=lambda o: (
                -survivor_score(o, self._orgs.count_references(o.id), self._weights),
                o.id,
            ),
        )

    def run(self, dry_run: bool = False) -> DedupReport:
        """Deduplicate every organization group.

        Args:
            dry_run: Plan the merges without writing anything.

        Returns:
            DedupReport with one entry per merged group.
        """
        organizations = self._orgs.list_all()
        groups = group_duplicates(organizations)
        report = DedupReport(dry_run=dry_run)
        logger.info(
            "Organization dedup: %d organizations, %d duplicate groups",
            len(organizations), len(groups),
        )

        for group in groups:
            survivor = self.select_survivor(group)
            losers = [o for o in group if o.id != survivor.id]
            entry = MergeGroupReport(
                survivor_id=survivor.id,
                survivor_name=survivor.name,
                merged_ids=[o.id for o in losers],
            )
            if dry_run:
                entry.edges_moved = sum(
                    self._orgs.count_references(o.id) for o in losers
                )
                report.groups.append(entry)
                continue

            try:
                with self._store.transaction():
                    self._merge_group(survivor, losers, entry)
            except Exception as e:
                logger.exception(
                    "Merge of %r into %s failed, group left unchanged",
                    survivor.name, survivor.id,
                )
                entry.error = str(e)
                entry.edges_moved = 0
                entry.duplicates_dropped = 0
                report.failed_groups.append(entry)
                continue

            logger.info(
                "Merged %d record(s) into %r (%s): %d moved, %d duplicates dropped",
                len(losers), survivor.name, survivor.id,
                entry.edges_moved, entry.duplicates_dropped,
            )
            report.groups.append(entry)

        report.stats = {
            "organizations_scanned": len(organizations),
            "duplicate_groups": len(groups),
            "groups_merged": len(report.groups),
            "groups_failed": len(report.failed_groups),
            "organizations_deleted": sum(
                len(g.merged_ids) for g in report.groups
            ) if not dry_run else 0,
            "edges_moved": sum(g.edges_moved for g in report.groups),
            "duplicates_dropped": sum(g.duplicates_dropped for g in report.groups),
        }
        return report

    def _merge_group(
        self,
        survivor: Organization,
        losers: list[Organization],
        entry: MergeGroupReport,
    ) -> None:
        existing_keys = {
            f.identity_key()
            for f in self._orgs.list_affiliations(organization_id=survivor.id)
        }
        updates: dict[str, object] = {}

        for loser in losers:
            for fact in self._orgs.list_affiliations(organization_id=loser.id):
                key = fact.identity_key()
                if key in existing_keys:
                    self._orgs.delete_affiliation(fact.id)
                    entry.duplicates_dropped += 1
                else:
                    self._orgs.move_affiliation(fact.id, survivor.id)
                    existing_keys.add(key)
                    entry.edges_moved += 1

            if not survivor.name_localized and loser.name_localized:
                updates.setdefault("name_localized", loser.name_localized)
            if not survivor.external_id and loser.external_id:
                updates.setdefault("external_id", loser.external_id)

            if not self._orgs.delete(loser.id):
                raise RuntimeError(f"Organization {loser.id} vanished during merge")

        if updates:
            self._orgs.update(survivor.model_copy(update=updates))
