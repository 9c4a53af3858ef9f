# src/metrics/influence.py — v1
"""Influence score — weighted sum of four independently normalized factors.

Each factor is scaled to [0, cap]:
  - content richness: saturating linear in content items, plus profile cards;
  - external popularity: min(cap, m * log10(count + 1));
  - academic impact: share * log-scaled citations + (1 - share) * linear h-index;
  - qualitative: 0-10 rating rescaled x10.

Pure functions. Every weight and cap is a named InfluenceConfig field.
"""

from __future__ import annotations

import math

from pydantic import BaseModel, Field, model_validator


class InfluenceConfig(BaseModel):
    """Parameters of the influence formula. All values are non-negative."""

    w_content: float = Field(default=0.30, ge=0.0)
    w_popularity: float = Field(default=0.25, ge=0.0)
    w_academic: float = Field(default=0.25, ge=0.0)
    w_qualitative: float = Field(default=0.20, ge=0.0)

    content_item_points: float = Field(default=3.3, ge=0.0)
    card_points: float = Field(default=5.0, ge=0.0)
    card_cap: float = Field(default=20.0, ge=0.0)
    content_cap: float = Field(default=100.0, ge=0.0)

    popularity_log_multiplier: float = Field(default=20.0, ge=0.0)
    popularity_cap: float = Field(default=100.0, ge=0.0)

    citation_log_multiplier: float = Field(default=20.0, ge=0.0)
    citation_cap: float = Field(default=100.0, ge=0.0)
    h_index_points: float = Field(default=1.25, ge=0.0)
    h_index_cap: float = Field(default=100.0, ge=0.0)
    citation_share: float = Field(default=0.6, ge=0.0, le=1.0)

    qualitative_max: float = Field(default=10.0, gt=0.0)
    qualitative_scale: float = Field(default=10.0, ge=0.0)

    @model_validator(mode="after")
    def _weights_not_all_zero(self) -> InfluenceConfig:
        if self.w_content + self.w_popularity + self.w_academic + self.w_qualitative == 0:
            raise ValueError("influence weights must not all be zero")
        return self


class InfluenceSignals(BaseModel):
    """Raw inputs of the influence score for one person."""

    content_count: int = Field(default=0, ge=0)
    card_count: int = Field(default=0, ge=0)
    popularity_count: int = Field(default=0, ge=0)
    citation_count: int = Field(default=0, ge=0)
    h_index: int = Field(default=0, ge=0)
    qualitative_score: float = 0.0


class InfluenceBreakdown(BaseModel):
    """The four normalized factors and the final weighted score."""

    content: float
    popularity: float
    academic: float
    qualitative: float
    score: float


def _log_scaled(count: int, multiplier: float, cap: float) -> float:
    return min(cap, multiplier * math.log10(max(count, 0) + 1))


def content_factor(signals: InfluenceSignals, config: InfluenceConfig) -> float:
    items = signals.content_count * config.content_item_points
    cards = min(config.card_cap, signals.card_count * config.card_points)
    return min(config.content_cap, min(config.content_cap, items) + cards)


def popularity_factor(signals: InfluenceSignals, config: InfluenceConfig) -> float:
    return _log_scaled(
        signals.popularity_count, config.popularity_log_multiplier, config.popularity_cap
    )


def academic_factor(signals: InfluenceSignals, config: InfluenceConfig) -> float:
    citations = _log_scaled(
        signals.citation_count, config.citation_log_multiplier, config.citation_cap
    )
    h_index = min(config.h_index_cap, signals.h_index * config.h_index_points)
    return config.citation_share * citations + (1 - config.citation_share) * h_index


def qualitative_factor(signals: InfluenceSignals, config: InfluenceConfig) -> float:
    rating = min(config.qualitative_max, max(0.0, signals.qualitative_score))
    return rating * config.qualitative_scale


def compute_influence(
    signals: InfluenceSignals, config: InfluenceConfig | None = None
) -> InfluenceBreakdown:
    """Compute the influence score and its factors.

    Monotone: raising any single signal never lowers the score, since every
    factor is non-decreasing in its inputs and every weight is non-negative.
    """
    config = config or InfluenceConfig()
    content = content_factor(signals, config)
    popularity = popularity_factor(signals, config)
    academic = academic_factor(signals, config)
    qualitative = qualitative_factor(signals, config)
    score = (
        config.w_content * content
        + config.w_popularity * popularity
        + config.w_academic * academic
        + config.w_qualitative * qualitative
    )
    return InfluenceBreakdown(
        content=content,
        popularity=popularity,
        academic=academic,
        qualitative=qualitative,
        score=score,
    )
