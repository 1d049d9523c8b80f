"""Interchangeable significance strategies for conversion experiments."""
from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod

import numpy as np
from scipy import stats

from ..config import ExperimentConfig, get_experiment_config
from ..models import ExperimentVariant, VariantResult

logger = logging.getLogger(__name__)


def _counts(variant: ExperimentVariant) -> tuple[int, int]:
    """Visitors and conversions with negatives and overshoot removed."""
    visitors = max(0, int(variant.visitors))
    conversions = min(max(0, int(variant.conversions)), visitors)
    return visitors, conversions


def conversion_rate(visitors: int, conversions: int) -> float:
    if visitors <= 0:
        return 0.0
    return min(1.0, max(0.0, conversions / visitors))


def relative_lift(rate: float, control_rate: float) -> float | None:
    """Percentage lift over control; None when control converts nothing."""
    if control_rate <= 0:
        return None
    return (rate - control_rate) / control_rate * 100.0


class StatsStrategy(ABC):
    """Turns one variant and its control into a VariantResult.

    `control` is None when the experiment has no control arm; only the
    absolute rate is meaningful then. Winner marking is left to the engine.
    """

    name: str = ""

    def __init__(self, config: ExperimentConfig | None = None):
        self.config = config or get_experiment_config()

    def _base_result(self, variant: ExperimentVariant, control: ExperimentVariant | None) -> VariantResult:
        visitors, conversions = _counts(variant)
        rate = conversion_rate(visitors, conversions)
        lift = None
        if control is not None and not variant.is_control:
            c_visitors, c_conversions = _counts(control)
            lift = relative_lift(rate, conversion_rate(c_visitors, c_conversions))
        return VariantResult(
            key=variant.key,
            visitors=visitors,
            conversions=conversions,
            is_control=variant.is_control,
            conversion_rate=rate,
            lift=lift,
        )

    def _meets_floor(self, variant: ExperimentVariant, control: ExperimentVariant) -> bool:
        floor = self.config.min_sample_size
        return _counts(variant)[0] >= floor and _counts(control)[0] >= floor

    @abstractmethod
    def evaluate(self, variant: ExperimentVariant, control: ExperimentVariant | None) -> VariantResult:
        ...


class FrequentistStrategy(StatsStrategy):
    """Pooled two-proportion z statistic with a heuristic confidence transform.

    confidence = 1 - exp(-0.7 z), expressed in percent and capped at 99.9.
    This is not a normal-CDF p-value; it is kept as is for parity with the
    numbers users already see.
    """

    name = "frequentist"

    def z_score(self, variant: ExperimentVariant, control: ExperimentVariant) -> float:
        v_visitors, v_conversions = _counts(variant)
        c_visitors, c_conversions = _counts(control)
        if v_visitors == 0 or c_visitors == 0:
            return 0.0

        pooled = (v_conversions + c_conversions) / (v_visitors + c_visitors)
        standard_error = math.sqrt(pooled * (1 - pooled) * (1 / v_visitors + 1 / c_visitors))
        if standard_error == 0:
            return 0.0

        diff = conversion_rate(v_visitors, v_conversions) - conversion_rate(c_visitors, c_conversions)
        return abs(diff) / standard_error

    def confidence_from_z(self, z: float) -> float:
        confidence = (1 - math.exp(-self.config.z_transform_rate * max(0.0, z))) * 100.0
        return min(self.config.confidence_cap, confidence)

    def evaluate(self, variant, control):
        result = self._base_result(variant, control)
        if control is None or variant.is_control or not self._meets_floor(variant, control):
            return result

        result.confidence = self.confidence_from_z(self.z_score(variant, control))
        result.is_significant = result.confidence >= self.config.significance_threshold
        return result


class BayesianStrategy(StatsStrategy):
    """Beta-Binomial posteriors compared by seeded Monte-Carlo draws."""

    name = "bayesian"

    def posterior(self, variant: ExperimentVariant) -> tuple[float, float]:
        visitors, conversions = _counts(variant)
        return (
            self.config.prior_alpha + conversions,
            self.config.prior_beta + visitors - conversions,
        )

    def credible_interval(self, variant: ExperimentVariant) -> tuple[float, float]:
        alpha, beta = self.posterior(variant)
        tail = (1 - self.config.credibility) / 2
        low, high = stats.beta.ppf([tail, 1 - tail], alpha, beta)
        return float(low), float(high)

    def compare(self, variant: ExperimentVariant, control: ExperimentVariant) -> tuple[float, float]:
        """Probability variant beats control, and expected loss of picking it."""
        rng = np.random.default_rng(self.config.mc_seed)
        n = self.config.mc_samples
        c_alpha, c_beta = self.posterior(control)
        v_alpha, v_beta = self.posterior(variant)

        control_draws = rng.beta(c_alpha, c_beta, size=n)
        variant_draws = rng.beta(v_alpha, v_beta, size=n)

        probability = float(np.mean(variant_draws > control_draws))
        loss = float(np.mean(np.maximum(0.0, control_draws - variant_draws)))
        return probability, loss

    def evaluate(self, variant, control):
        result = self._base_result(variant, control)
        result.credible_interval_low, result.credible_interval_high = self.credible_interval(variant)
        if control is None or variant.is_control:
            return result

        probability, loss = self.compare(variant, control)
        result.probability_to_beat_control = probability
        result.expected_loss = loss
        result.confidence = min(self.config.confidence_cap, probability * 100.0)
        result.is_significant = (
            self._meets_floor(variant, control)
            and probability >= self.config.probability_threshold
            and loss < self.config.expected_loss_tolerance
        )
        return result


STRATEGIES = {
    FrequentistStrategy.name: FrequentistStrategy,
    BayesianStrategy.name: BayesianStrategy,
}


def get_strategy(name: str | None = None, config: ExperimentConfig | None = None) -> StatsStrategy:
    """Instantiate a strategy by name, defaulting to the configured one."""
    config = config or get_experiment_config()
    key = (name or config.default_strategy).strip().lower()
    if key not in STRATEGIES:
        raise ValueError(f"Unknown stats strategy {key!r}; expected one of {sorted(STRATEGIES)}")
    logger.debug("Using %s stats strategy", key)
    return STRATEGIES[key](config)
