"""CSV loading for batch scoring and experiment reports."""
import logging
from datetime import datetime
from pathlib import Path

import pandas as pd

from .models import (
    EngagementMetrics,
    ExperimentSpec,
    ExperimentVariant,
    FeedbackSnapshot,
    PriorityContext,
    RequesterContext,
)

logger = logging.getLogger(__name__)

TRUE_STRINGS = {"true", "1", "yes", "y", "t"}


def _value(row: pd.Series, column: str, default=None):
    if column not in row.index:
        return default
    value = row[column]
    if pd.isna(value):
        return default
    return value


def _int(row: pd.Series, column: str, default: int = 0) -> int:
    value = _value(row, column, default)
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _float(row: pd.Series, column: str, default: float = 0.0) -> float:
    value = _value(row, column, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _bool(row: pd.Series, column: str) -> bool:
    value = _value(row, column, False)
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return bool(value)


def _timestamp(value) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def load_feedback(csv_path: Path) -> list[PriorityContext]:
    """Load feedback posts and their engagement counts.

    Rows without a title are skipped. Rows without an id get `post_<row>`.
    Business context is not part of the file; callers attach it.
    """
    df = pd.read_csv(csv_path)

    contexts = []
    for idx, row in df.iterrows():
        title = str(_value(row, "title", "")).strip()
        if not title:
            logger.warning("Skipping row %s in %s: no title", idx, csv_path)
            continue

        post = FeedbackSnapshot(
            id=str(_value(row, "id", f"post_{idx}")),
            title=title,
            description=str(_value(row, "description", "")),
            category=_value(row, "category"),
            created_at=_timestamp(_value(row, "created_at")),
        )
        metrics = EngagementMetrics(
            vote_count=_int(row, "vote_count"),
            comment_count=_int(row, "comment_count"),
            unique_voters=_int(row, "unique_voters"),
            percentage_of_active_users=_float(row, "percentage_of_active_users"),
            similar_posts_count=_int(row, "similar_posts_count"),
        )
        user = RequesterContext(
            tier=_value(row, "tier", "free"),
            is_champion=_bool(row, "is_champion"),
        )
        contexts.append(PriorityContext(post=post, metrics=metrics, user=user))

    return contexts


def load_experiments(csv_path: Path, default_target: int = 1000) -> dict[str, ExperimentSpec]:
    """Load variant counts grouped by experiment id, in file order."""
    df = pd.read_csv(csv_path)

    experiments: dict[str, ExperimentSpec] = {}
    for _, row in df.iterrows():
        experiment_id = str(_value(row, "experiment_id", "experiment"))
        variant = ExperimentVariant(
            key=str(_value(row, "variant_key", "variant")),
            visitors=_int(row, "visitors"),
            conversions=_int(row, "conversions"),
            is_control=_bool(row, "is_control"),
        )

        spec = experiments.get(experiment_id)
        if spec is None:
            spec = ExperimentSpec(
                experiment_id=experiment_id,
                variants=[],
                target_sample_size=_int(row, "target_sample_size", default_target),
                started_at=_timestamp(_value(row, "started_at")),
            )
            experiments[experiment_id] = spec
        spec.variants.append(variant)

    return experiments
