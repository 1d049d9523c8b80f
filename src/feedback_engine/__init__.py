"""Feedback prioritization and experiment statistics."""

from .errors import FeedbackEngineError, InvalidInputError
from .experiments import analyze_experiment, compute_results
from .scoring import calculate_priority_score, rank_feedback, score_batch

__all__ = [
    "FeedbackEngineError",
    "InvalidInputError",
    "analyze_experiment",
    "compute_results",
    "calculate_priority_score",
    "rank_feedback",
    "score_batch",
]
