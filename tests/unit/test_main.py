# tests/unit/test_main.py — v2
"""Tests for main.py — CLI entry point."""

from __future__ import annotations

import csv
from pathlib import Path
from unittest.mock import patch

import pytest

from peoplegraph.audit.report import AUDIT_COLUMNS
from peoplegraph.core.models import ContentItem, Organization, Person, RelationEdge
from peoplegraph.external.base_knowledge_source import (
    ExternalEntity,
    KnowledgeSource,
    SearchHit,
)
from peoplegraph.main import _build_parser, main
from peoplegraph.storage.sqlite_store import SqliteKnowledgeStore


@pytest.fixture
def db_path(tmp_path: Path, monkeypatch) -> Path:
    """Point the CLI at a fresh SQLite file, isolated from any .env."""
    path = tmp_path / "cli.db"
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("STORE_BACKEND", "sqlite")
    monkeypatch.setenv("STORE_PATH", str(path))
    monkeypatch.setenv("EXTERNAL_COOLDOWN_S", "0")
    monkeypatch.setenv("EXTERNAL_RETRY_DELAY_S", "0")
    return path


def _seed(path: Path, fn) -> None:
    kb = SqliteKnowledgeStore(path)
    try:
        with kb.transaction():
            fn(kb)
    finally:
        kb.close()


def _open(path: Path) -> SqliteKnowledgeStore:
    return SqliteKnowledgeStore(path)


class OneEntitySource(KnowledgeSource):
    async def search(self, query, limit=5):
        return [SearchHit(external_id="Q3022141", label="Demis Hassabis")]

    async def get_entity(self, external_id):
        return ExternalEntity(external_id=external_id, label="Demis Hassabis")

    async def get_relations(self, external_id):
        return []


class TestBuildParser:
    def test_version_flag(self):
        with pytest.raises(SystemExit) as exc_info:
            _build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0

    def test_enroll(self):
        args = _build_parser().parse_args(["enroll", "Yann LeCun", "Fei-Fei Li", "--dry-run"])
        assert args.names == ["Yann LeCun", "Fei-Fei Li"]
        assert args.dry_run is True
        assert args.file is None

    def test_fix_direction_repeatable_source(self):
        args = _build_parser().parse_args(["fix-direction", "-s", "a", "--source", "b"])
        assert args.sources == ["a", "b"]

    def test_repair_ground_truth(self):
        args = _build_parser().parse_args(["repair-relations", "-g", "gt.json"])
        assert args.ground_truth == Path("gt.json")
        assert args.dry_run is False

    def test_apply_audit(self):
        args = _build_parser().parse_args(["apply-audit", "audit.csv"])
        assert args.csv_file == Path("audit.csv")


class TestMain:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_configuration_error(self, db_path, monkeypatch, capsys):
        monkeypatch.setenv("INFLUENCE_W_CONTENT", "-1")
        assert main(["compute-metrics"]) == 2
        assert "Configuration error" in capsys.readouterr().err

    def test_dedup_orgs(self, db_path, capsys):
        def seed(kb):
            kb.organizations.add(Organization(id="o1", name="OpenAI", external_id="Q21708200"))
            kb.organizations.add(Organization(id="o2", name="openai", external_id="baike-1"))
        _seed(db_path, seed)

        assert main(["dedup-orgs"]) == 0
        assert "OpenAI (o1) <- o2" in capsys.readouterr().out
        kb = _open(db_path)
        assert [o.id for o in kb.organizations.list_all()] == ["o1"]
        kb.close()

    def test_dedup_orgs_dry_run(self, db_path):
        def seed(kb):
            kb.organizations.add(Organization(id="o1", name="OpenAI"))
            kb.organizations.add(Organization(id="o2", name="openai"))
        _seed(db_path, seed)

        assert main(["dedup-orgs", "--dry-run"]) == 0
        kb = _open(db_path)
        assert len(kb.organizations.list_all()) == 2
        kb.close()

    def test_fix_direction_requires_source(self, db_path):
        assert main(["fix-direction"]) == 1

    def test_fix_direction(self, db_path):
        _seed(db_path, lambda kb: kb.relations.add(RelationEdge(
            id="e1", source_id="a", target_id="b", relation_type="advisor",
            provenance="legacy", normalized=False,
        )))
        assert main(["fix-direction", "--source", "legacy"]) == 0
        kb = _open(db_path)
        edge = kb.relations.get("e1")
        assert (edge.source_id, edge.target_id) == ("b", "a")
        kb.close()

    def test_repair_relations_reports_unresolved(self, db_path, capsys):
        def seed(kb):
            kb.relations.add(RelationEdge(source_id="a", target_id="b", relation_type="advisor"))
            kb.relations.add(RelationEdge(source_id="b", target_id="a", relation_type="advisor"))
        _seed(db_path, seed)

        assert main(["repair-relations"]) == 0
        assert "unresolved: a <-> b" in capsys.readouterr().out

    def test_missing_ground_truth_file(self, db_path):
        assert main(["repair-relations", "-g", "missing.json"]) == 1

    def test_compute_metrics(self, db_path):
        _seed(db_path, lambda kb: kb.people.add(
            Person(id="p1", name="Andrej Karpathy", qualitative_score=9, topics=["llm"])
        ))
        assert main(["compute-metrics"]) == 0
        kb = _open(db_path)
        person = kb.people.get("p1")
        assert person.influence_score == pytest.approx(18.0)
        assert person.topic_ranks == {"llm": 1}
        kb.close()

    def test_consolidate(self, db_path, capsys):
        assert main(["consolidate"]) == 0
        assert "pass(es) ok" in capsys.readouterr().out

    def test_apply_audit(self, db_path, tmp_path):
        _seed(db_path, lambda kb: kb.contents.add(
            ContentItem(id="c1", person_id="p1", source_type="youtube")
        ))
        csv_path = tmp_path / "audit.csv"
        with csv_path.open("w", newline="", encoding="utf-8-sig") as f:
            writer = csv.DictWriter(f, fieldnames=AUDIT_COLUMNS)
            writer.writeheader()
            writer.writerow({
                "person_name": "A", "source_type": "youtube", "score": "1",
                "action": "delete", "person_id": "p1", "item_id": "c1",
            })

        assert main(["apply-audit", str(csv_path)]) == 0
        kb = _open(db_path)
        assert kb.contents.get("c1") is None
        kb.close()

    def test_apply_audit_missing_file(self, db_path):
        assert main(["apply-audit", "nope.csv"]) == 1

    def test_enroll_requires_names(self, db_path):
        assert main(["enroll"]) == 1

    def test_enroll_from_file(self, db_path, tmp_path, capsys):
        names = tmp_path / "names.txt"
        names.write_text("Demis Hassabis\n\n", encoding="utf-8")
        with patch(
            "peoplegraph.external.wikidata_client.WikidataClient.from_settings",
            return_value=OneEntitySource(),
        ):
            assert main(["enroll", "-f", str(names)]) == 0
        assert "processed 1 of 1 items" in capsys.readouterr().out
        kb = _open(db_path)
        assert kb.people.get_by_external_id("Q3022141") is not None
        kb.close()
