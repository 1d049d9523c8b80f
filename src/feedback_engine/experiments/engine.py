"""Experiment results: per-variant statistics, winner and recommendation."""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Iterable

from pydantic import ValidationError

from ..config import ExperimentConfig, get_experiment_config
from ..errors import InvalidInputError
from ..models import (
    ExperimentResults,
    ExperimentVariant,
    RecommendedAction,
    VariantResult,
)
from .strategies import StatsStrategy, get_strategy

logger = logging.getLogger(__name__)


def _coerce_variants(variants: Iterable) -> list[ExperimentVariant]:
    coerced = []
    for variant in variants:
        if isinstance(variant, ExperimentVariant):
            coerced.append(variant)
            continue
        try:
            coerced.append(ExperimentVariant.model_validate(variant))
        except ValidationError as e:
            raise InvalidInputError(f"Invalid experiment variant: {e}") from e
    if not coerced:
        raise InvalidInputError("An experiment needs at least one variant")
    return coerced


def _find_control(variants: list[ExperimentVariant]) -> ExperimentVariant | None:
    controls = [v for v in variants if v.is_control]
    if len(controls) > 1:
        logger.warning(
            "%d variants marked as control (%s); using %r",
            len(controls), ", ".join(v.key for v in controls), controls[0].key,
        )
    return controls[0] if controls else None


def _resolve_strategy(strategy, config: ExperimentConfig) -> StatsStrategy:
    if isinstance(strategy, StatsStrategy):
        return strategy
    return get_strategy(strategy, config)


def mark_winner(results: list[VariantResult]) -> VariantResult | None:
    """Flag the significant variant with the strictly greatest positive lift.

    A tie at the top leaves every variant unflagged.
    """
    for result in results:
        result.is_winner = False

    candidates = [
        r for r in results
        if r.is_significant and not r.is_control and r.lift is not None and r.lift > 0
    ]
    if not candidates:
        return None

    best = max(r.lift for r in candidates)
    leaders = [r for r in candidates if r.lift == best]
    if len(leaders) > 1:
        logger.info("No winner: %d variants tied at %.2f%% lift", len(leaders), best)
        return None

    leaders[0].is_winner = True
    return leaders[0]


def compute_results(
    variants: Iterable,
    strategy: str | StatsStrategy | None = None,
    config: ExperimentConfig | None = None,
) -> list[VariantResult]:
    """Per-variant rates, lift, confidence and winner flag, in input order."""
    config = config or get_experiment_config()
    variants = _coerce_variants(variants)
    stats_strategy = _resolve_strategy(strategy, config)
    control = _find_control(variants)
    if control is None:
        logger.debug("No control variant; only absolute rates are reported")

    results = []
    for variant in variants:
        # Secondary controls are scored as ordinary arms against the primary.
        is_primary = variant is control
        if variant.is_control and not is_primary:
            variant = variant.model_copy(update={"is_control": False})
        results.append(stats_strategy.evaluate(variant, control))

    mark_winner(results)
    return results


def recommend_action(
    total_visitors: int,
    has_winner: bool,
    target_sample_size: int,
    config: ExperimentConfig | None = None,
) -> RecommendedAction:
    config = config or get_experiment_config()
    if has_winner:
        return RecommendedAction.STOP_WINNER
    if target_sample_size > 0 and total_visitors >= config.loser_multiplier * target_sample_size:
        return RecommendedAction.STOP_LOSER
    if total_visitors >= config.min_visitors_to_continue:
        return RecommendedAction.CONTINUE
    return RecommendedAction.NEEDS_MORE_DATA


def project_days_to_significance(
    total_visitors: int,
    days_running: int,
    target_sample_size: int,
) -> int | None:
    """Days until the target sample is reached at the current traffic rate."""
    if days_running <= 0 or total_visitors <= 0:
        return None
    remaining = max(0, target_sample_size - total_visitors)
    return -(-remaining * days_running // total_visitors)


def days_running_since(started_at: datetime | None, now: datetime | None = None) -> int:
    """Whole days elapsed since an experiment started; 0 if it has not."""
    if started_at is None:
        return 0
    now = now or datetime.now(timezone.utc)
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return max(0, (now - started_at).days)


def analyze_experiment(
    variants: Iterable,
    target_sample_size: int,
    days_running: int = 0,
    strategy: str | StatsStrategy | None = None,
    config: ExperimentConfig | None = None,
) -> ExperimentResults:
    """Full results summary for one experiment."""
    config = config or get_experiment_config()
    stats_strategy = _resolve_strategy(strategy, config)
    results = compute_results(variants, stats_strategy, config)

    total_visitors = sum(r.visitors for r in results)
    total_conversions = sum(r.conversions for r in results)
    winner = next((r for r in results if r.is_winner), None)

    action = recommend_action(total_visitors, winner is not None, target_sample_size, config)
    logger.debug(
        "Experiment: %d visitors, winner=%s, action=%s",
        total_visitors, winner.key if winner else None, action.value,
    )

    return ExperimentResults(
        strategy=stats_strategy.name,
        variants=results,
        total_visitors=total_visitors,
        total_conversions=total_conversions,
        has_significant_winner=winner is not None,
        winner_key=winner.key if winner else None,
        recommended_action=action,
        days_running=max(0, days_running),
        projected_days_to_significance=project_days_to_significance(
            total_visitors, days_running, target_sample_size
        ),
    )


def recommended_sample_size(
    baseline_rate: float,
    minimum_detectable_effect: float,
    z_alpha: float = 1.96,
    z_beta: float = 1.64,
) -> int | None:
    """Visitors needed per variant to detect a relative lift.

    Returns None when the inputs cannot produce a finite estimate.
    """
    treatment_rate = baseline_rate * (1 + minimum_detectable_effect)
    if not (0 < baseline_rate < 1) or not (0 < treatment_rate < 1):
        return None
    pooled = (baseline_rate + treatment_rate) / 2
    effect_size = abs(treatment_rate - baseline_rate) / math.sqrt(pooled * (1 - pooled))
    if effect_size == 0:
        return None
    return math.ceil(2 * ((z_alpha + z_beta) / effect_size) ** 2)
