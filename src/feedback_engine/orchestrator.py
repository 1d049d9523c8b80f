"""Batch coordination: deterministic scoring plus optional AI enrichment."""
import asyncio
import json
from pathlib import Path

from .cache import DateOrganizedCache, FileCache
from .client import APIClient, parse_json
from .config import ExperimentConfig, ScoringConfig
from .experiments import analyze_experiment, days_running_since
from .models import (
    ExperimentResults,
    ExperimentReview,
    ExperimentSpec,
    PriorityContext,
    ScoreResult,
    TriagedFeedback,
)
from .prompts import EXPERIMENT_REVIEW_PROMPT, JUSTIFY_PROMPT
from .scoring import rank_feedback


class Triager:
    """Scores feedback and, given an API client, rewrites the justifications.

    The model only ever touches the justification text; score, level and
    action always come from the deterministic scorer.
    """

    def __init__(self, cache_dir: Path | None = None, api_client: APIClient | None = None,
                 config: ScoringConfig | None = None):
        self.cache = DateOrganizedCache(cache_dir) if cache_dir and api_client else None
        self.api = api_client
        self.config = config

    async def enrich(
        self,
        context: PriorityContext,
        result: ScoreResult,
        semaphore: asyncio.Semaphore
    ) -> str:
        """Ask the model for a justification, cached per post and score."""
        post = context.post
        created = post.created_at.date() if post.created_at else None
        key = f"{post.id}_{result.score:.2f}"

        if self.cache and self.cache.exists_dated(key, created):
            cached = self.cache.get_dated(key, created, lambda text: parse_json(text)["justification"])
            if cached:
                return cached

        m = context.metrics
        strategy = None
        if context.business_context and context.business_context.company_strategy:
            strategy = context.business_context.company_strategy.value
        prompt = JUSTIFY_PROMPT.format(
            title=post.title,
            description=post.description or "(none)",
            category=post.category or "uncategorized",
            priority_level=result.priority_level.value,
            score=result.score,
            suggested_action=result.suggested_action,
            votes=m.vote_count,
            unique_voters=m.unique_voters,
            comments=m.comment_count,
            percent_active=m.percentage_of_active_users,
            similar_posts=m.similar_posts_count,
            tier=context.user.tier.value,
            strategy=strategy or "none",
            justification=result.business_justification,
        )
        content = await self.api.call(prompt, max_tokens=300, semaphore=semaphore)
        justification = str(parse_json(content)["justification"]).strip()

        if self.cache:
            self.cache.save_dated(
                key, created, {"justification": justification},
                lambda obj: json.dumps(obj, indent=2)
            )
        return justification

    async def triage_batch(
        self,
        contexts: list[PriorityContext],
        max_concurrent: int = 5
    ) -> list[TriagedFeedback]:
        """Score and rank every item; enrich them concurrently when possible."""
        ranked = rank_feedback(contexts, self.config)
        if self.api is None:
            return [TriagedFeedback(context=c, result=r) for c, r in ranked]

        semaphore = asyncio.Semaphore(max_concurrent)
        total = len(ranked)
        completed = 0

        async def enrich_with_progress(context: PriorityContext, result: ScoreResult) -> TriagedFeedback:
            nonlocal completed
            try:
                text = await self.enrich(context, result, semaphore)
            except Exception as e:
                print(f"\n  Warning: Failed to enrich {context.post.id}: {e}")
                text = None
            completed += 1
            print(f"  Progress: {completed}/{total} posts", end="\r")
            return TriagedFeedback(context=context, result=result, ai_justification=text)

        triaged = await asyncio.gather(*[enrich_with_progress(c, r) for c, r in ranked])
        print(f"  Progress: {completed}/{total} posts")
        return list(triaged)


class ExperimentReviewer:
    """Analyses experiments and optionally narrates the verdict."""

    def __init__(self, cache_dir: Path | None = None, api_client: APIClient | None = None,
                 strategy: str | None = None, config: ExperimentConfig | None = None):
        self.cache = FileCache(cache_dir) if cache_dir and api_client else None
        self.api = api_client
        self.strategy = strategy
        self.config = config

    def analyze(self, spec: ExperimentSpec, now=None) -> ExperimentResults:
        return analyze_experiment(
            spec.variants,
            target_sample_size=spec.target_sample_size,
            days_running=days_running_since(spec.started_at, now),
            strategy=self.strategy,
            config=self.config,
        )

    async def narrate(self, experiment_id: str, results: ExperimentResults) -> str:
        key = f"{experiment_id}_{results.strategy}_{results.total_visitors}"
        if self.cache and self.cache.exists(key):
            cached = self.cache.get(key, lambda text: ExperimentReview.model_validate_json(text))
            if cached and cached.narrative:
                return cached.narrative

        variants = "\n".join(
            f"- {v.key}{' (control)' if v.is_control else ''}: "
            f"{v.conversions}/{v.visitors} = {v.conversion_rate:.2%}, "
            f"lift {'n/a' if v.lift is None else f'{v.lift:+.1f}%'}, "
            f"confidence {v.confidence:.1f}%, significant={v.is_significant}"
            for v in results.variants
        )
        prompt = EXPERIMENT_REVIEW_PROMPT.format(
            experiment_id=experiment_id,
            strategy=results.strategy,
            days_running=results.days_running,
            total_visitors=results.total_visitors,
            recommended_action=results.recommended_action.value,
            winner=results.winner_key or "none",
            variants=variants,
        )
        content = await self.api.call(prompt, max_tokens=400)
        narrative = str(parse_json(content)["narrative"]).strip()

        if self.cache:
            review = ExperimentReview(experiment_id=experiment_id, results=results, narrative=narrative)
            self.cache.save(key, review, lambda obj: obj.model_dump_json(indent=2))
        return narrative

    async def review_all(self, experiments: dict[str, ExperimentSpec], now=None) -> list[ExperimentReview]:
        reviews = []
        for experiment_id, spec in experiments.items():
            results = self.analyze(spec, now)
            narrative = None
            if self.api is not None:
                try:
                    narrative = await self.narrate(experiment_id, results)
                except Exception as e:
                    print(f"  Warning: Failed to narrate {experiment_id}: {e}")
            reviews.append(ExperimentReview(experiment_id=experiment_id, results=results, narrative=narrative))
        return reviews
