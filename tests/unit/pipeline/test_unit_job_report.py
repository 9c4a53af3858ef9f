# tests/unit/pipeline/test_unit_job_report.py — v1
"""Tests for pipeline/models.py."""

from __future__ import annotations

from peoplegraph.pipeline.models import JobReport


class TestJobReport:
    def test_minimal_summary(self):
        report = JobReport(job="enroll", total=3, processed=3)
        assert report.summary() == "enroll: processed 3 of 3 items"

    def test_full_summary(self):
        report = JobReport(job="enroll", total=3, processed=1,
                           stats={"created": 1}, dry_run=True)
        report.skip("Nobody", "not found")
        report.flag("Yann Lecunn", "identifier conflict")
        lines = report.summary().splitlines()
        assert lines[0] == (
            "enroll: processed 1 of 3 items, 1 skipped, 1 flagged, created=1 (dry run)"
        )
        assert lines[1] == "  skipped Nobody: not found"
        assert lines[2] == "  flagged Yann Lecunn: identifier conflict"

    def test_defaults_not_shared(self):
        a, b = JobReport(job="a"), JobReport(job="b")
        a.skip("x", "y")
        assert b.skipped == []
