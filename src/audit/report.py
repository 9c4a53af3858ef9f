# src/audit/report.py — v1
"""Content relevance audit — the human-in-the-loop cleanup contract.

build_audit_rows -> write_audit_csv -> (human fills the action column)
-> read_audit_csv -> apply_audit_actions.

The engine never deletes content on its own scoring: only rows a human
marked `delete` are applied.
"""

from __future__ import annotations

import csv
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, Field

from peoplegraph.core.errors import ExternalServiceFailure
from peoplegraph.core.models import ContentItem, Person
from peoplegraph.external.retry import Cooldown, RetryConfig, with_retry
from peoplegraph.storage.base_repository import BaseKnowledgeStore

logger = logging.getLogger(__name__)

AUDIT_COLUMNS: list[str] = [
    "person_name", "organization", "source_type", "title", "url",
    "published_at", "score", "reason", "is_first_party", "action",
    "person_id", "item_id",
]

FALLBACK_SCORE = 3
FALLBACK_REASON = "scoring failed, manual review"

_TRUE = {"true", "1", "yes", "y"}


class RelevanceVerdict(BaseModel):
    """Relevance of one content item to its person (1 = unrelated, 5 = core)."""

    score: int = Field(ge=1, le=5)
    reason: str = ""
    is_first_party: bool = False


class RelevanceScorer(ABC):
    """External collaborator scoring content relevance."""

    @abstractmethod
    async def score(self, person: Person, item: ContentItem) -> RelevanceVerdict:
        """Score one item."""


class AuditRow(BaseModel):
    """One row of the audit artifact."""

    person_name: str
    organization: str = ""
    source_type: str
    title: str = ""
    url: str = ""
    published_at: str = ""
    score: int
    reason: str = ""
    is_first_party: bool = False
    action: str = ""
    person_id: str
    item_id: str


def _organization_label(store: BaseKnowledgeStore, person: Person) -> str:
    for fact in store.organizations.list_affiliations(person_id=person.id):
        org = store.organizations.get(fact.organization_id)
        if org is not None:
            return org.name
    return person.organizations[0] if person.organizations else ""


async def build_audit_rows(
    store: BaseKnowledgeStore,
    scorer: RelevanceScorer,
    threshold: int = 3,
    source_types: list[str] | None = None,
    retry: RetryConfig | None = None,
    cooldown: Cooldown | None = None,
) -> list[AuditRow]:
    """Score every content item and keep those at or below the threshold.

    Returns:
        Rows sorted most suspicious first (score asc, then person, title).
    """
    retry = retry or RetryConfig()
    cooldown = cooldown or Cooldown(0.0)
    people = {p.id: p for p in store.people.list_all()}
    orgs: dict[str, str] = {}
    rows: list[AuditRow] = []
    failures = 0

    items = store.contents.list_all(source_types=source_types)
    for item in items:
        person = people.get(item.person_id)
        if person is None:
            logger.warning("Content %s points at unknown person %s", item.id, item.person_id)
            continue
        await cooldown.wait()
        try:
            verdict = await with_retry(
                scorer.score, person, item,
                operation=f"score {item.id}", config=retry,
            )
        except ExternalServiceFailure as e:
            logger.warning("%s; using fallback score", e)
            verdict = RelevanceVerdict(score=FALLBACK_SCORE, reason=FALLBACK_REASON)
            failures += 1

        if verdict.score > threshold:
            continue
        if person.id not in orgs:
            orgs[person.id] = _organization_label(store, person)
        rows.append(
            AuditRow(
                person_name=person.name,
                organization=orgs[person.id],
                source_type=item.source_type,
                title=item.title,
                url=item.url,
                published_at=item.published_at.isoformat() if item.published_at else "",
                score=verdict.score,
                reason=verdict.reason,
                is_first_party=verdict.is_first_party,
                person_id=person.id,
                item_id=item.id,
            )
        )

    rows.sort(key=lambda r: (r.score, r.person_name, r.title, r.item_id))
    logger.info(
        "Audit: %d item(s) scored, %d flagged (threshold %d), %d scoring failure(s)",
        len(items), len(rows), threshold, failures,
    )
    return rows


def write_audit_csv(rows: list[AuditRow], path: Path) -> None:
    """Write the audit artifact (UTF-8 with BOM, for spreadsheet tools).

    Args:
        rows: Audit rows; the action column is written empty.
        path: Output file path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8-sig") as f:
        writer = csv.DictWriter(f, fieldnames=AUDIT_COLUMNS)
        writer.writeheader()
        for row in rows:
            data = row.model_dump()
            data["action"] = ""
            data["is_first_party"] = "true" if row.is_first_party else "false"
            writer.writerow(data)
    logger.info("Wrote %d audit row(s) to %s", len(rows), path)


def read_audit_csv(path: Path) -> list[AuditRow]:
    """Read an annotated audit artifact.

    Raises:
        ValueError: Missing columns or malformed rows.
    """
    with path.open(newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        missing = set(AUDIT_COLUMNS) - set(reader.fieldnames or [])
        if missing:
            raise ValueError(f"{path}: missing column(s) {sorted(missing)}")
        rows: list[AuditRow] = []
        for line_no, raw in enumerate(reader, start=2):
            try:
                rows.append(
                    AuditRow(
                        **{k: (raw.get(k) or "").strip() for k in AUDIT_COLUMNS
                           if k not in ("score", "is_first_party")},
                        score=int(raw["score"]),
                        is_first_party=(raw.get("is_first_party") or "").strip().lower() in _TRUE,
                    )
                )
            except (TypeError, ValueError) as e:
                raise ValueError(f"{path}:{line_no}: {e}") from e
    return rows


@dataclass
class ApplyReport:
    """Outcome of applying human-annotated audit actions."""

    deleted: list[str] = field(default_factory=list)
    already_missing: list[str] = field(default_factory=list)
    kept: int = 0
    unannotated: int = 0
    unknown_actions: list[tuple[str, str]] = field(default_factory=list)
    dry_run: bool = False

    @property
    def stats(self) -> dict[str, int]:
        return {
            "deleted": len(self.deleted),
            "already_missing": len(self.already_missing),
            "kept": self.kept,
            "unannotated": self.unannotated,
            "unknown_actions": len(self.unknown_actions),
        }


def apply_audit_actions(
    store: BaseKnowledgeStore,
    rows: list[AuditRow],
    dry_run: bool = False,
) -> ApplyReport:
    """Delete exactly the content items whose action is `delete`."""
    report = ApplyReport(dry_run=dry_run)
    to_delete: list[str] = []
    for row in rows:
        action = row.action.strip().lower()
        if action == "delete":
            to_delete.append(row.item_id)
        elif action == "keep":
            report.kept += 1
        elif not action:
            report.unannotated += 1
        else:
            logger.warning("Unknown action %r for item %s, ignored", row.action, row.item_id)
            report.unknown_actions.append((row.item_id, row.action))

    with store.transaction():
        for item_id in dict.fromkeys(to_delete):
            if store.contents.get(item_id) is None:
                report.already_missing.append(item_id)
            elif dry_run:
                report.deleted.append(item_id)
            elif store.contents.delete(item_id):
                report.deleted.append(item_id)
            else:
                report.already_missing.append(item_id)

    logger.info(
        "Audit apply%s: %d deleted, %d already missing, %d kept, %d unannotated",
        " (dry run)" if dry_run else "",
        len(report.deleted), len(report.already_missing),
        report.kept, report.unannotated,
    )
    return report
