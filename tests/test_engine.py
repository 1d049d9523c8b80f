from datetime import datetime, timezone

import pytest

from feedback_engine.errors import InvalidInputError
from feedback_engine.experiments import (
    analyze_experiment,
    compute_results,
    days_running_since,
    project_days_to_significance,
    recommend_action,
    recommended_sample_size,
)
from feedback_engine.models import RecommendedAction

STRATEGIES = ["bayesian", "frequentist"]


def test_empty_variant_list_is_rejected():
    with pytest.raises(InvalidInputError):
        compute_results([])


def test_accepts_camel_case_mappings():
    results = compute_results([
        {"key": "control", "visitors": 1000, "conversions": 100, "isControl": True},
        {"key": "b", "visitors": 1000, "conversions": 150, "isControl": False},
    ])
    assert [r.key for r in results] == ["control", "b"]
    dumped = results[1].model_dump(by_alias=True)
    assert {"conversionRate", "isWinner", "isSignificant", "probabilityToBeatControl"} <= set(dumped)


def test_clear_lift_wins_under_default_strategy(variant):
    results = compute_results([
        variant("control", 1000, 100, True),
        variant("b", 1000, 150),
    ], strategy="bayesian")
    control, treatment = results

    assert treatment.lift == pytest.approx(50.0)
    assert treatment.is_significant
    assert treatment.is_winner
    assert not control.is_winner
    assert control.lift is None


@pytest.mark.parametrize("strategy", STRATEGIES)
def test_tiny_samples_are_never_significant(variant, strategy):
    summary = analyze_experiment(
        [variant("control", 10, 1, True), variant("b", 10, 2)],
        target_sample_size=1000,
        days_running=3,
        strategy=strategy,
    )
    assert not any(v.is_significant for v in summary.variants)
    assert not summary.has_significant_winner
    assert summary.recommended_action is RecommendedAction.NEEDS_MORE_DATA


@pytest.mark.parametrize("strategy", STRATEGIES)
def test_under_one_hundred_visitors_nothing_is_significant(variant, strategy):
    results = compute_results(
        [variant("control", 40, 0, True), variant("b", 40, 40), variant("c", 19, 19)],
        strategy=strategy,
    )
    assert not any(r.is_significant for r in results)
    assert not any(r.is_winner for r in results)


@pytest.mark.parametrize("strategy", STRATEGIES)
def test_without_control_no_lift_and_no_winner(variant, strategy):
    results = compute_results([variant("a", 5000, 100), variant("b", 5000, 900)], strategy=strategy)
    assert all(r.lift is None for r in results)
    assert all(r.confidence == 0.0 for r in results)
    assert not any(r.is_winner for r in results)
    assert results[1].conversion_rate == pytest.approx(0.18)


@pytest.mark.parametrize("strategy", STRATEGIES)
def test_zero_visitors_produce_neutral_values(variant, strategy):
    results = compute_results(
        [variant("control", 0, 0, True), variant("b", 0, 0), variant("c", 150, 0)],
        strategy=strategy,
    )
    for r in results:
        assert r.conversion_rate == 0.0
        assert r.lift is None
        assert not r.is_significant
    summary = analyze_experiment(
        [variant("control", 0, 0, True), variant("b", 0, 0)], target_sample_size=100,
        strategy=strategy,
    )
    assert summary.total_visitors == 0
    assert summary.projected_days_to_significance is None
    assert summary.recommended_action is RecommendedAction.NEEDS_MORE_DATA


@pytest.mark.parametrize("strategy", STRATEGIES)
def test_rates_always_within_unit_interval(variant, strategy):
    results = compute_results(
        [variant("control", 100, 150, True), variant("b", -5, 3), variant("c", 200, -4)],
        strategy=strategy,
    )
    for r in results:
        assert 0.0 <= r.conversion_rate <= 1.0


def test_winner_is_the_largest_significant_lift(variant):
    results = compute_results([
        variant("control", 2000, 200, True),
        variant("b", 2000, 300),
        variant("c", 2000, 340),
    ], strategy="frequentist")
    assert [r.key for r in results if r.is_winner] == ["c"]
    assert results[1].is_significant and not results[1].is_winner


def test_tied_leaders_produce_no_winner(variant):
    results = compute_results([
        variant("control", 2000, 200, True),
        variant("b", 2000, 300),
        variant("c", 2000, 300),
    ], strategy="frequentist")
    assert all(r.is_significant for r in results[1:])
    assert not any(r.is_winner for r in results)


def test_significant_loser_is_not_a_winner(variant):
    results = compute_results([
        variant("control", 2000, 200, True),
        variant("b", 2000, 100),
    ], strategy="frequentist")
    assert results[1].is_significant
    assert results[1].lift < 0
    assert not results[1].is_winner


def test_at_most_one_winner(variant):
    for strategy in STRATEGIES:
        results = compute_results([
            variant("control", 3000, 300, True),
            variant("b", 3000, 420),
            variant("c", 3000, 480),
            variant("d", 3000, 450),
        ], strategy=strategy)
        assert sum(r.is_winner for r in results) == 1


def test_second_control_is_scored_as_a_variant(variant):
    results = compute_results([
        variant("control", 2000, 200, True),
        variant("shadow", 2000, 300, True),
    ], strategy="frequentist")
    assert results[0].is_control
    assert not results[1].is_control
    assert results[1].lift == pytest.approx(50.0)


def test_results_are_reproducible(variant):
    variants = [variant("control", 800, 64, True), variant("b", 810, 81), variant("c", 790, 70)]
    assert [r.model_dump() for r in compute_results(variants)] == [
        r.model_dump() for r in compute_results(variants)
    ]


def test_analyze_experiment_summary(variant):
    summary = analyze_experiment(
        [variant("control", 1000, 100, True), variant("b", 1000, 150)],
        target_sample_size=4000,
        days_running=10,
        strategy="bayesian",
    )
    assert summary.strategy == "bayesian"
    assert summary.total_visitors == 2000
    assert summary.total_conversions == 250
    assert summary.has_significant_winner
    assert summary.winner_key == "b"
    assert summary.recommended_action is RecommendedAction.STOP_WINNER
    assert summary.projected_days_to_significance == 10


@pytest.mark.parametrize("total,winner,target,expected", [
    (50, True, 1000, RecommendedAction.STOP_WINNER),
    (2000, False, 1000, RecommendedAction.STOP_LOSER),
    (1999, False, 1000, RecommendedAction.CONTINUE),
    (100, False, 1000, RecommendedAction.CONTINUE),
    (99, False, 1000, RecommendedAction.NEEDS_MORE_DATA),
    (500, False, 0, RecommendedAction.CONTINUE),
])
def test_recommend_action(total, winner, target, expected):
    assert recommend_action(total, winner, target) is expected


def test_projected_days():
    assert project_days_to_significance(500, 5, 1000) == 5
    assert project_days_to_significance(300, 7, 1000) == 17
    assert project_days_to_significance(1500, 5, 1000) == 0
    assert project_days_to_significance(500, 0, 1000) is None
    assert project_days_to_significance(0, 4, 1000) is None
    assert project_days_to_significance(3, 11, 66) == 231
    assert project_days_to_significance(7, 3, 70) == 27


def test_days_running_since():
    now = datetime(2026, 10, 18, 12, tzinfo=timezone.utc)
    assert days_running_since(datetime(2026, 10, 1, 9, tzinfo=timezone.utc), now) == 17
    assert days_running_since(datetime(2026, 10, 1), now) == 17
    assert days_running_since(datetime(2026, 11, 1, tzinfo=timezone.utc), now) == 0
    assert days_running_since(None, now) == 0


def test_recommended_sample_size():
    n = recommended_sample_size(0.10, 0.10)
    assert 24000 <= n <= 24700
    assert recommended_sample_size(0.10, 0.50) < n
    assert recommended_sample_size(0.0, 0.10) is None
    assert recommended_sample_size(0.10, 0.0) is None
    assert recommended_sample_size(0.9, 0.5) is None
