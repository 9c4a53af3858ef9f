# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from peoplegraph.core.names import DEFAULT_IDENTIFIER_PATTERN

if TYPE_CHECKING:
    from peoplegraph.metrics.influence import InfluenceConfig


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Store ===
    store_backend: Literal["memory", "sqlite"] = "sqlite"
    store_path: Path | None = Path("~/.peoplegraph/peoplegraph.db")

    # === External knowledge source ===
    knowledge_api_url: str = "https://www.wikidata.org/w/api.php"
    knowledge_user_agent: str = "peoplegraph/0.4 (mailto:admin@example.com)"
    knowledge_timeout_s: float = 10.0
    knowledge_language: str = "en"

    # === Outbound call pacing ===
    external_cooldown_s: float = 3.0
    external_max_retries: int = 2
    external_retry_delay_s: float = 1.0

    # === Entity matching ===
    identifier_pattern: str = DEFAULT_IDENTIFIER_PATTERN

    # === Organization dedup (survivor score) ===
    dedup_w_canonical_id: float = 1000.0
    dedup_w_any_id: float = 100.0
    dedup_w_reference: float = 1.0
    dedup_w_localized_name: float = 0.5

    # === Influence score ===
    influence_w_content: float = 0.30
    influence_w_popularity: float = 0.25
    influence_w_academic: float = 0.25
    influence_w_qualitative: float = 0.20
    influence_content_item_points: float = 3.3
    influence_card_points: float = 5.0
    influence_card_cap: float = 20.0
    influence_log_multiplier: float = 20.0
    influence_h_index_points: float = 1.25
    influence_citation_share: float = 0.6
    influence_factor_cap: float = 100.0

    # === Relation inference ===
    inference_min_confidence: float = 0.7

    # === Audit ===
    audit_threshold: int = 3
    audit_output_dir: Path = Path("./exports")

    # === Consolidator ===
    consolidator_passes: str = "org_dedup,relation_repair,influence"
    consolidator_direction_sources: str = ""
    consolidator_ground_truth_file: Path | None = None

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("external_max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("external_max_retries must be >= 0")
        return v

    @field_validator("audit_threshold")
    @classmethod
    def validate_audit_threshold(cls, v: int) -> int:
        if not 1 <= v <= 5:
            raise ValueError("audit_threshold must be within 1..5")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        weights = (
            self.influence_w_content,
            self.influence_w_popularity,
            self.influence_w_academic,
            self.influence_w_qualitative,
        )
        if any(w < 0 for w in weights):
            errors.append("INFLUENCE_W_* weights must be non-negative")
        elif sum(weights) == 0:
            errors.append("INFLUENCE_W_* weights must not all be zero")

        if not 0.0 <= self.influence_citation_share <= 1.0:
            errors.append("INFLUENCE_CITATION_SHARE must be within [0, 1]")

        if not 0.0 <= self.inference_min_confidence <= 1.0:
            errors.append("INFERENCE_MIN_CONFIDENCE must be within [0, 1]")

        if self.store_backend == "sqlite" and self.store_path is None:
            errors.append("STORE_BACKEND=sqlite requires STORE_PATH")

        if self.external_cooldown_s < 0:
            errors.append("EXTERNAL_COOLDOWN_S must be >= 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def consolidator_passes_list(self) -> list[str]:
        """Parse comma-separated consolidator passes."""
        return [p.strip() for p in self.consolidator_passes.split(",") if p.strip()]

    @property
    def direction_sources_list(self) -> list[str]:
        """Provenance tags whose stored edges use the inverted convention."""
        return [
            s.strip()
            for s in self.consolidator_direction_sources.split(",")
            if s.strip()
        ]

    def influence_config(self) -> InfluenceConfig:
        """Build the influence formula parameters from settings."""
        from peoplegraph.metrics.influence import InfluenceConfig

        cap = self.influence_factor_cap
        return InfluenceConfig(
            w_content=self.influence_w_content,
            w_popularity=self.influence_w_popularity,
            w_academic=self.influence_w_academic,
            w_qualitative=self.influence_w_qualitative,
            content_item_points=self.influence_content_item_points,
            card_points=self.influence_card_points,
            card_cap=self.influence_card_cap,
            content_cap=cap,
            popularity_log_multiplier=self.influence_log_multiplier,
            popularity_cap=cap,
            citation_log_multiplier=self.influence_log_multiplier,
            citation_cap=cap,
            h_index_points=self.influence_h_index_points,
            h_index_cap=cap,
            citation_share=self.influence_citation_share,
        )


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
