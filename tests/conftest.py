import pytest

from feedback_engine.models import ExperimentVariant, PriorityContext


@pytest.fixture
def make_context():
    """Build a PriorityContext from flat keyword arguments."""

    def _make(
        id="post-1",
        title="Export to CSV",
        description="",
        category="general",
        votes=0,
        comments=0,
        voters=0,
        percent_active=0.0,
        similar=0,
        tier="free",
        champion=False,
        strategy=None,
        quarter=None,
    ):
        business = None
        if strategy is not None or quarter is not None:
            business = {"company_strategy": strategy, "current_quarter": quarter}
        return PriorityContext.model_validate({
            "post": {"id": id, "title": title, "description": description, "category": category},
            "metrics": {
                "vote_count": votes,
                "comment_count": comments,
                "unique_voters": voters,
                "percentage_of_active_users": percent_active,
                "similar_posts_count": similar,
            },
            "user": {"tier": tier, "is_champion": champion},
            "business_context": business,
        })

    return _make


@pytest.fixture
def variant():
    def _make(key, visitors, conversions, is_control=False):
        return ExperimentVariant(key=key, visitors=visitors, conversions=conversions, is_control=is_control)

    return _make
