"""Weighted priority scoring for feedback posts.

Each signal dimension is reduced to a sub-score in [0, 1], the sub-scores are
combined with a fixed weight table and scaled to 0-10, and the result is
mapped to a priority level. Justifications are assembled from templates keyed
by which sub-scores crossed the salience threshold, so identical input always
produces identical output.
"""
import logging
import math
import re
from typing import Iterable, Mapping

from pydantic import ValidationError

from .config import ScoringConfig, get_scoring_config
from .errors import InvalidInputError
from .models import (
    PriorityContext,
    PriorityLevel,
    ScoreBreakdown,
    ScoreResult,
)
from .signals import detect_signals, looks_like_bug_report, normalize_category

logger = logging.getLogger(__name__)

URGENT_CATEGORIES = {"bug", "security"}

SUGGESTED_ACTIONS = {
    (PriorityLevel.CRITICAL, True): "Investigate immediately",
    (PriorityLevel.CRITICAL, False): "Schedule for the current sprint",
    (PriorityLevel.HIGH, True): "Fix in the current cycle",
    (PriorityLevel.HIGH, False): "Plan for this quarter",
    (PriorityLevel.MEDIUM, True): "Triage and reproduce before the next planning cycle",
    (PriorityLevel.MEDIUM, False): "Validate demand with more feedback before committing",
    (PriorityLevel.LOW, True): "Monitor for further reports",
    (PriorityLevel.LOW, False): "Add to backlog for review",
}

QUARTER_PATTERN = re.compile(r"Q([1-4])", re.IGNORECASE)


def _clamp(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


def _saturate(count: float, reference: int) -> float:
    """Log-compress a count so `reference` and above map to 1.0."""
    count = max(0.0, float(count))
    if reference <= 0:
        return 1.0 if count > 0 else 0.0
    return _clamp(math.log1p(count) / math.log1p(reference))


# ---------------------------------------------------------------------------
# Sub-scores
# ---------------------------------------------------------------------------

def engagement_score(
    vote_count: int,
    comment_count: int,
    unique_voters: int,
    config: ScoringConfig | None = None,
) -> float:
    config = config or get_scoring_config()
    w_votes, w_comments, w_voters = config.engagement_mix
    score = (
        w_votes * _saturate(vote_count, config.vote_reference)
        + w_comments * _saturate(comment_count, config.comment_reference)
        + w_voters * _saturate(unique_voters, config.voter_reference)
    )
    return _clamp(score)


def reach_score(percentage_of_active_users: float) -> float:
    return _clamp(float(percentage_of_active_users) / 100.0)


def duplication_score(similar_posts_count: int, config: ScoringConfig | None = None) -> float:
    config = config or get_scoring_config()
    return _saturate(similar_posts_count, config.similar_posts_reference)


def requester_value_score(tier: str, is_champion: bool, config: ScoringConfig | None = None) -> float:
    config = config or get_scoring_config()
    base = config.tier_weights.get(tier, config.tier_weights["free"])
    if is_champion:
        base += config.champion_bonus
    return _clamp(base)


def category_urgency_score(category: str | None, config: ScoringConfig | None = None) -> float:
    config = config or get_scoring_config()
    label = normalize_category(category)
    if label is None:
        return config.neutral_urgency
    return _clamp(config.category_urgency.get(label, config.neutral_urgency))


def strategic_alignment_score(
    category: str | None,
    strategy: str | None,
    text_signals: Iterable[str] = (),
    config: ScoringConfig | None = None,
) -> float:
    """Soft bonus for posts matching the company strategy; 0 without one."""
    if not strategy:
        return 0.0
    config = config or get_scoring_config()
    label = normalize_category(category)
    by_category = config.strategy_affinity.get(strategy, {}).get(label, 0.0) if label else 0.0
    content_table = config.content_affinity.get(strategy, {})
    by_content = max((content_table.get(s, 0.0) for s in text_signals), default=0.0)
    return _clamp(max(by_category, by_content))


# ---------------------------------------------------------------------------
# Levels, actions, quarters
# ---------------------------------------------------------------------------

def priority_level_for(score: float, config: ScoringConfig | None = None) -> PriorityLevel:
    config = config or get_scoring_config()
    for level, threshold in config.level_thresholds:
        if score >= threshold:
            return PriorityLevel(level)
    return PriorityLevel.LOW


def suggested_action_for(
    level: PriorityLevel,
    category: str | None,
    title: str = "",
    description: str = "",
) -> str:
    """Action text for a level; bug-like or security reports get the urgent variant."""
    urgent = (
        normalize_category(category) in URGENT_CATEGORIES
        or looks_like_bug_report(title, description, category)
    )
    return SUGGESTED_ACTIONS[(level, urgent)]


def quarter_recommendation_for(level: PriorityLevel, current_quarter: str | None) -> str:
    match = QUARTER_PATTERN.search(current_quarter or "")
    quarter = int(match.group(1)) if match else 1

    if level is PriorityLevel.CRITICAL:
        return "This Sprint"
    if level is PriorityLevel.HIGH:
        return f"Q{quarter}"
    if level is PriorityLevel.MEDIUM:
        return f"Q{quarter % 4 + 1}"
    return "Future"


# ---------------------------------------------------------------------------
# Justification
# ---------------------------------------------------------------------------

def _factor_phrase(factor: str, context: PriorityContext, category: str | None) -> str:
    metrics = context.metrics
    user = context.user
    if factor == "engagement":
        return (
            f"high engagement from {metrics.unique_voters} unique voters "
            f"({metrics.vote_count} votes, {metrics.comment_count} comments)"
        )
    if factor == "reach":
        return f"reach across {metrics.percentage_of_active_users:.1f}% of active users"
    if factor == "duplication":
        return f"{metrics.similar_posts_count} similar posts asking for the same thing"
    if factor == "requester_value":
        phrase = f"{user.tier.value} requester weight"
        return phrase + " from a champion user" if user.is_champion else phrase
    if factor == "category_urgency":
        return f"{category or 'uncategorized'} urgency"
    strategy = context.business_context.company_strategy.value
    return f"alignment with the {strategy} strategy"


def build_justification(
    context: PriorityContext,
    breakdown: ScoreBreakdown,
    config: ScoringConfig | None = None,
) -> str:
    """Cite the factors that crossed the salience threshold, strongest first."""
    config = config or get_scoring_config()
    category = normalize_category(context.post.category)
    sub_scores = breakdown.model_dump()

    salient = [
        (sub_scores[name] * weight, name)
        for name, weight in config.weights.items()
        if sub_scores[name] >= config.salience_threshold
    ]
    # Stable sort keeps weight-table order for equal contributions.
    salient.sort(key=lambda item: item[0], reverse=True)
    cited = [name for _, name in salient[: config.max_cited_factors]]

    if not cited:
        m = context.metrics
        return (
            f"Limited signal so far: {m.vote_count} votes, {m.comment_count} comments "
            f"and {m.similar_posts_count} similar posts from a {context.user.tier.value} requester."
        )

    phrases = [_factor_phrase(name, context, category) for name in cited]
    sentence = " plus ".join(phrases)
    return sentence[0].upper() + sentence[1:] + "."


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def _coerce_context(context) -> PriorityContext:
    if isinstance(context, PriorityContext):
        return context
    if not isinstance(context, Mapping):
        raise InvalidInputError(f"Expected a priority context, got {type(context).__name__}")
    try:
        return PriorityContext.model_validate(context)
    except ValidationError as e:
        raise InvalidInputError(f"Invalid priority context: {e}") from e


def score_breakdown(context: PriorityContext, config: ScoringConfig | None = None) -> ScoreBreakdown:
    config = config or get_scoring_config()
    post, metrics, user = context.post, context.metrics, context.user
    strategy = None
    if context.business_context and context.business_context.company_strategy:
        strategy = context.business_context.company_strategy.value

    signals = detect_signals(post.title, post.description) if strategy else frozenset()

    return ScoreBreakdown(
        engagement=engagement_score(
            metrics.vote_count, metrics.comment_count, metrics.unique_voters, config
        ),
        reach=reach_score(metrics.percentage_of_active_users),
        duplication=duplication_score(metrics.similar_posts_count, config),
        requester_value=requester_value_score(user.tier.value, user.is_champion, config),
        category_urgency=category_urgency_score(post.category, config),
        strategic_alignment=strategic_alignment_score(post.category, strategy, signals, config),
    )


def calculate_priority_score(context, config: ScoringConfig | None = None) -> ScoreResult:
    """Score one feedback item.

    Accepts a PriorityContext or the equivalent JSON mapping. Raises
    InvalidInputError only when the post id or title is missing.
    """
    config = config or get_scoring_config()
    context = _coerce_context(context)

    breakdown = score_breakdown(context, config)
    sub_scores = breakdown.model_dump()
    weighted = sum(sub_scores[name] * weight for name, weight in config.weights.items())
    score = round(max(0.0, min(10.0, weighted * 10.0)), 2)

    level = priority_level_for(score, config)
    quarter = context.business_context.current_quarter if context.business_context else None

    logger.debug("Scored %s: %.2f (%s) %s", context.post.id, score, level.value, sub_scores)

    return ScoreResult(
        score=score,
        priority_level=level,
        business_justification=build_justification(context, breakdown, config),
        suggested_action=suggested_action_for(
            level, context.post.category, context.post.title, context.post.description
        ),
        quarter_recommendation=quarter_recommendation_for(level, quarter),
        breakdown=breakdown,
    )


def score_batch(contexts, config: ScoringConfig | None = None) -> dict[str, ScoreResult]:
    """Score several items, keyed by post id."""
    results = {}
    for context in contexts:
        context = _coerce_context(context)
        results[context.post.id] = calculate_priority_score(context, config)
    return results


def rank_feedback(contexts, config: ScoringConfig | None = None) -> list[tuple[PriorityContext, ScoreResult]]:
    """Score and order items by descending score, ties broken by post id."""
    scored = []
    for context in contexts:
        context = _coerce_context(context)
        scored.append((context, calculate_priority_score(context, config)))
    scored.sort(key=lambda pair: (-pair[1].score, pair[0].post.id))
    return scored
