"""A/B experiment statistics: frequentist and Bayesian strategies."""

from .engine import (
    analyze_experiment,
    compute_results,
    days_running_since,
    mark_winner,
    project_days_to_significance,
    recommend_action,
    recommended_sample_size,
)
from .strategies import BayesianStrategy, FrequentistStrategy, StatsStrategy, get_strategy

__all__ = [
    "analyze_experiment",
    "compute_results",
    "days_running_since",
    "mark_winner",
    "project_days_to_significance",
    "recommend_action",
    "recommended_sample_size",
    "BayesianStrategy",
    "FrequentistStrategy",
    "StatsStrategy",
    "get_strategy",
]
