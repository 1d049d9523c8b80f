"""Tunable tables and thresholds for the scorer and the experiment engine."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping

from dotenv import load_dotenv

load_dotenv()


def _frozen(table: dict) -> Mapping:
    return MappingProxyType(dict(table))


DEFAULT_WEIGHTS = {
    "engagement": 0.30,
    "reach": 0.15,
    "duplication": 0.15,
    "requester_value": 0.15,
    "category_urgency": 0.15,
    "strategic_alignment": 0.10,
}

# Ordered highest first; first threshold the score reaches wins.
DEFAULT_LEVEL_THRESHOLDS = (
    ("critical", 8.0),
    ("high", 6.0),
    ("medium", 3.5),
)

TIER_WEIGHTS = {
    "free": 0.3,
    "pro": 0.6,
    "enterprise": 0.9,
}

CATEGORY_URGENCY = {
    "security": 1.0,
    "bug": 0.9,
    "performance": 0.75,
    "integration": 0.55,
    "feature": 0.5,
    "ux": 0.5,
    "improvement": 0.45,
    "general": 0.3,
    "feedback": 0.3,
    "other": 0.3,
    "question": 0.2,
}

CATEGORY_ALIASES = {
    "bug report": "bug",
    "bug_report": "bug",
    "bug-report": "bug",
    "defect": "bug",
    "feature request": "feature",
    "feature_request": "feature",
    "feature-request": "feature",
    "enhancement": "improvement",
    "ui": "ux",
    "ui/ux": "ux",
    "design": "ux",
    "integrations": "integration",
    "perf": "performance",
    "speed": "performance",
    "general feedback": "general",
}

STRATEGY_AFFINITY = {
    "growth": {
        "feature": 1.0,
        "integration": 0.8,
        "ux": 0.7,
        "improvement": 0.6,
        "performance": 0.4,
        "bug": 0.3,
        "security": 0.3,
    },
    "retention": {
        "bug": 1.0,
        "performance": 0.8,
        "ux": 0.8,
        "security": 0.7,
        "improvement": 0.5,
        "integration": 0.4,
        "feature": 0.3,
    },
    "enterprise": {
        "security": 1.0,
        "integration": 0.9,
        "performance": 0.7,
        "bug": 0.6,
        "feature": 0.5,
        "improvement": 0.4,
        "ux": 0.3,
    },
    "profitability": {
        "performance": 0.7,
        "bug": 0.6,
        "improvement": 0.6,
        "integration": 0.5,
        "feature": 0.4,
        "security": 0.4,
        "ux": 0.3,
    },
}

# Affinity granted when the post text reads like the given signal.
CONTENT_AFFINITY = {
    "growth": {"growth": 0.8},
    "retention": {"bug": 1.0, "frustration": 0.8},
    "enterprise": {"enterprise": 0.9, "bug": 0.5},
    "profitability": {"bug": 0.5},
}


@dataclass(frozen=True)
class ScoringConfig:
    """Weights and lookup tables used by the priority scorer."""

    weights: Mapping[str, float] = field(default_factory=lambda: _frozen(DEFAULT_WEIGHTS))
    level_thresholds: tuple = DEFAULT_LEVEL_THRESHOLDS
    vote_reference: int = 100
    comment_reference: int = 50
    voter_reference: int = 100
    similar_posts_reference: int = 10
    engagement_mix: tuple = (0.5, 0.2, 0.3)  # votes, comments, unique voters
    tier_weights: Mapping[str, float] = field(default_factory=lambda: _frozen(TIER_WEIGHTS))
    champion_bonus: float = 0.2
    category_urgency: Mapping[str, float] = field(default_factory=lambda: _frozen(CATEGORY_URGENCY))
    neutral_urgency: float = 0.4
    strategy_affinity: Mapping[str, Mapping[str, float]] = field(
        default_factory=lambda: _frozen(STRATEGY_AFFINITY)
    )
    content_affinity: Mapping[str, Mapping[str, float]] = field(
        default_factory=lambda: _frozen(CONTENT_AFFINITY)
    )
    salience_threshold: float = 0.5
    max_cited_factors: int = 3

    def __post_init__(self):
        total = sum(self.weights.values())
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"Scoring weights must sum to 1.0, got {total:.6f}")
        if abs(sum(self.engagement_mix) - 1.0) > 1e-9:
            raise ValueError("Engagement mix must sum to 1.0")


@dataclass(frozen=True)
class ExperimentConfig:
    """Thresholds for significance testing and experiment recommendations."""

    default_strategy: str = "bayesian"
    min_sample_size: int = 100
    significance_threshold: float = 95.0
    z_transform_rate: float = 0.7
    confidence_cap: float = 99.9
    probability_threshold: float = 0.95
    expected_loss_tolerance: float = 0.001
    credibility: float = 0.95
    prior_alpha: float = 1.0
    prior_beta: float = 1.0
    mc_samples: int = 20000
    mc_seed: int = 42
    min_visitors_to_continue: int = 100
    loser_multiplier: float = 2.0


@lru_cache(maxsize=1)
def get_scoring_config() -> ScoringConfig:
    return ScoringConfig()


@lru_cache(maxsize=1)
def get_experiment_config() -> ExperimentConfig:
    """Experiment configuration with environment overrides applied."""
    return ExperimentConfig(
        default_strategy=os.getenv("FEEDBACK_STATS_STRATEGY", "bayesian").strip().lower(),
        min_sample_size=int(os.getenv("FEEDBACK_MIN_SAMPLE_SIZE", "100")),
        mc_samples=int(os.getenv("FEEDBACK_MC_SAMPLES", "20000")),
        mc_seed=int(os.getenv("FEEDBACK_MC_SEED", "42")),
    )
