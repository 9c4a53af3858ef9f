# tests/unit/metrics/test_unit_influence.py — v1
"""Tests for metrics/influence.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from peoplegraph.metrics.influence import (
    InfluenceConfig,
    InfluenceSignals,
    academic_factor,
    compute_influence,
    content_factor,
    popularity_factor,
    qualitative_factor,
)

CFG = InfluenceConfig()


class TestFactors:
    def test_content_linear_plus_cards(self):
        s = InfluenceSignals(content_count=10, card_count=2)
        assert content_factor(s, CFG) == pytest.approx(43.0)

    def test_content_capped(self):
        s = InfluenceSignals(content_count=100, card_count=10)
        assert content_factor(s, CFG) == 100.0

    def test_card_bonus_capped(self):
        s = InfluenceSignals(card_count=50)
        assert content_factor(s, CFG) == 20.0

    def test_popularity_log_scaled(self):
        assert popularity_factor(InfluenceSignals(popularity_count=999), CFG) == pytest.approx(60.0)
        assert popularity_factor(InfluenceSignals(popularity_count=0), CFG) == 0.0
        assert popularity_factor(InfluenceSignals(popularity_count=10**9), CFG) == 100.0

    def test_academic_blend(self):
        s = InfluenceSignals(citation_count=9999, h_index=40)
        # 0.6 * 80 + 0.4 * 50
        assert academic_factor(s, CFG) == pytest.approx(68.0)

    def test_qualitative_clamped(self):
        assert qualitative_factor(InfluenceSignals(qualitative_score=8), CFG) == 80.0
        assert qualitative_factor(InfluenceSignals(qualitative_score=15), CFG) == 100.0
        assert qualitative_factor(InfluenceSignals(qualitative_score=-3), CFG) == 0.0


class TestComputeInfluence:
    def test_weighted_sum(self):
        signals = InfluenceSignals(
            content_count=10, card_count=2, popularity_count=999,
            citation_count=9999, h_index=40, qualitative_score=8,
        )
        result = compute_influence(signals)
        assert result.content == pytest.approx(43.0)
        assert result.score == pytest.approx(0.30 * 43 + 0.25 * 60 + 0.25 * 68 + 0.20 * 80)

    def test_zero_signals(self):
        assert compute_influence(InfluenceSignals()).score == 0.0

    def test_bounded_by_100(self):
        huge = InfluenceSignals(
            content_count=10**6, card_count=10**6, popularity_count=10**12,
            citation_count=10**12, h_index=10**6, qualitative_score=10,
        )
        assert compute_influence(huge).score == pytest.approx(100.0)

    @pytest.mark.parametrize("field", [
        "content_count", "card_count", "popularity_count", "citation_count", "h_index",
    ])
    def test_monotone_in_each_signal(self, field):
        base = InfluenceSignals(
            content_count=3, card_count=1, popularity_count=50,
            citation_count=200, h_index=5, qualitative_score=4,
        )
        lower = compute_influence(base).score
        for bump in (1, 10, 1000):
            raised = base.model_copy(update={field: getattr(base, field) + bump})
            assert compute_influence(raised).score >= lower

    def test_custom_weights(self):
        cfg = InfluenceConfig(w_content=0, w_popularity=0, w_academic=0, w_qualitative=1)
        result = compute_influence(InfluenceSignals(content_count=30, qualitative_score=5), cfg)
        assert result.score == pytest.approx(50.0)


class TestConfigValidation:
    def test_negative_weight(self):
        with pytest.raises(ValidationError):
            InfluenceConfig(w_content=-0.1)

    def test_all_zero_weights(self):
        with pytest.raises(ValidationError):
            InfluenceConfig(w_content=0, w_popularity=0, w_academic=0, w_qualitative=0)

    def test_citation_share_bounds(self):
        with pytest.raises(ValidationError):
            InfluenceConfig(citation_share=1.2)
