"""Data models for the scorer, the experiment engine and the batch layers."""
import logging
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class _Model(BaseModel):
    """Accepts snake_case or the web layer's camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _FrozenModel(_Model):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Tier(str, Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class Strategy(str, Enum):
    GROWTH = "growth"
    RETENTION = "retention"
    ENTERPRISE = "enterprise"
    PROFITABILITY = "profitability"


class PriorityLevel(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecommendedAction(str, Enum):
    CONTINUE = "continue"
    STOP_WINNER = "stop_winner"
    STOP_LOSER = "stop_loser"
    NEEDS_MORE_DATA = "needs_more_data"


# ---------------------------------------------------------------------------
# Priority scorer
# ---------------------------------------------------------------------------

class FeedbackSnapshot(_FrozenModel):
    """A feedback post as seen at scoring time."""
    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: str = ""
    category: str | None = None
    created_at: datetime | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, value):
        return "" if value is None else value


class EngagementMetrics(_FrozenModel):
    """Raw engagement counts fetched by the caller."""
    vote_count: int = 0
    comment_count: int = 0
    unique_voters: int = 0
    percentage_of_active_users: float = 0.0
    similar_posts_count: int = 0


class RequesterContext(_FrozenModel):
    tier: Tier = Tier.FREE
    is_champion: bool = False

    @field_validator("tier", mode="before")
    @classmethod
    def _normalize_tier(cls, value):
        if value is None:
            return Tier.FREE
        if isinstance(value, str):
            value = value.strip().lower()
            if value not in {t.value for t in Tier}:
                logger.warning("Unknown requester tier %r, treating as free", value)
                return Tier.FREE
        return value


class BusinessContext(_FrozenModel):
    """Organisation-wide context that biases the alignment sub-score."""
    current_quarter: str | None = None
    company_strategy: Strategy | None = None

    @field_validator("company_strategy", mode="before")
    @classmethod
    def _normalize_strategy(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            if not value:
                return None
            if value not in {s.value for s in Strategy}:
                logger.warning("Unknown company strategy %r, no alignment bonus", value)
                return None
        return value


class PriorityContext(_FrozenModel):
    """Everything the scorer needs for one feedback item."""
    post: FeedbackSnapshot
    metrics: EngagementMetrics = Field(default_factory=EngagementMetrics)
    user: RequesterContext = Field(default_factory=RequesterContext)
    business_context: BusinessContext | None = None


class ScoreBreakdown(_Model):
    """Sub-scores in [0, 1] before weighting."""
    engagement: float
    reach: float
    duplication: float
    requester_value: float
    category_urgency: float
    strategic_alignment: float


class ScoreResult(_Model):
    score: float
    priority_level: PriorityLevel
    business_justification: str
    suggested_action: str
    quarter_recommendation: str
    breakdown: ScoreBreakdown


# ---------------------------------------------------------------------------
# Experiment statistics
# ---------------------------------------------------------------------------

class ExperimentVariant(_FrozenModel):
    key: str
    visitors: int = 0
    conversions: int = 0
    is_control: bool = False


class VariantResult(_Model):
    """Per-variant statistics; recomputed on every request."""
    key: str
    visitors: int
    conversions: int
    is_control: bool
    conversion_rate: float
    lift: float | None = None
    confidence: float = 0.0
    probability_to_beat_control: float | None = None
    expected_loss: float | None = None
    credible_interval_low: float | None = None
    credible_interval_high: float | None = None
    is_significant: bool = False
    is_winner: bool = False


class ExperimentResults(_Model):
    """Aggregate verdict for one experiment."""
    strategy: str
    variants: list[VariantResult]
    total_visitors: int
    total_conversions: int
    has_significant_winner: bool
    winner_key: str | None = None
    recommended_action: RecommendedAction
    days_running: int
    projected_days_to_significance: int | None = None


class ExperimentSpec(_Model):
    """An experiment as loaded from batch input."""
    experiment_id: str
    variants: list[ExperimentVariant]
    target_sample_size: int = 1000
    started_at: datetime | None = None


# ---------------------------------------------------------------------------
# Batch layers
# ---------------------------------------------------------------------------

class TriagedFeedback(_Model):
    """A scored feedback item, optionally with a model-written justification."""
    context: PriorityContext
    result: ScoreResult
    ai_justification: str | None = None

    @property
    def justification(self) -> str:
        return self.ai_justification or self.result.business_justification


class ExperimentReview(_Model):
    experiment_id: str
    results: ExperimentResults
    narrative: str | None = None
