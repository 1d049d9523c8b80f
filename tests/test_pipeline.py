from datetime import date
from pathlib import Path

import pytest

from feedback_engine.experiments import analyze_experiment
from feedback_engine.models import BusinessContext, ExperimentReview, TriagedFeedback
from feedback_engine.pipeline import _parse_args, _report_to_markdown, run_pipeline
from feedback_engine.scoring import rank_feedback

FEEDBACK_CSV = """id,title,category,vote_count,unique_voters,percentage_of_active_users,similar_posts_count,tier,is_champion
p1,Login crashes on Safari,bug,45,40,25,4,enterprise,true
p2,Nicer icons,ux,2,2,0.5,0,free,false
"""

EXPERIMENTS_CSV = """experiment_id,variant_key,visitors,conversions,is_control,target_sample_size
checkout,control,1000,100,true,4000
checkout,one-page,1000,150,false,4000
"""


def test_report_lists_feedback_and_experiments(make_context, variant):
    ranked = rank_feedback([
        make_context(id="p2", title="Nicer icons", category="ux"),
        make_context(id="p1", title="Login crashes", category="bug", votes=45, voters=40,
                     percent_active=25, similar=4, tier="enterprise"),
    ])
    triaged = [TriagedFeedback(context=c, result=r) for c, r in ranked]
    triaged[0].ai_justification = "Enterprise customers cannot log in."
    results = analyze_experiment(
        [variant("control", 1000, 100, True), variant("one-page", 1000, 150)],
        target_sample_size=4000, days_running=6, strategy="bayesian",
    )
    reviews = [ExperimentReview(experiment_id="checkout", results=results, narrative="Ship it.")]

    md = _report_to_markdown(triaged, reviews, date(2026, 10, 18))

    assert md.startswith("# Feedback Priority Report")
    assert "**Generated:** 2026-10-18" in md
    assert md.index("Login crashes") < md.index("Nicer icons")
    assert "- **Login crashes:** Enterprise customers cannot log in." in md
    assert "### checkout" in md
    assert "- **Winner:** one-page" in md
    assert "| **one-page** | 1000 | 150 | 15.00% | +50.0% |" in md
    assert "| control (control) | 1000 | 100 | 10.00% | n/a |" in md
    assert "> Ship it." in md


def test_report_skips_empty_sections():
    md = _report_to_markdown([], [], date(2026, 1, 2))
    assert "## Prioritized Feedback" not in md
    assert "## Experiments" not in md


@pytest.mark.asyncio
async def test_run_pipeline_writes_report(tmp_path):
    feedback = tmp_path / "feedback.csv"
    feedback.write_text(FEEDBACK_CSV)
    experiments = tmp_path / "experiments.csv"
    experiments.write_text(EXPERIMENTS_CSV)

    path = await run_pipeline(
        feedback_csv=feedback,
        experiments_csv=experiments,
        business_context=BusinessContext(company_strategy="retention", current_quarter="Q3"),
        stat_strategy="frequentist",
        out_dir=tmp_path / "reports",
    )

    assert path == tmp_path / "reports" / f"priority_report_{date.today().isoformat()}.md"
    md = path.read_text()
    assert md.index("Login crashes on Safari") < md.index("Nicer icons")
    assert "- **Method:** frequentist" in md
    assert "- **Winner:** none" in md


@pytest.mark.asyncio
async def test_run_pipeline_needs_input(tmp_path):
    assert await run_pipeline(out_dir=tmp_path) is None
    assert await run_pipeline(feedback_csv=tmp_path / "missing.csv", out_dir=tmp_path) is None
    assert list(tmp_path.iterdir()) == []


def test_parse_args():
    args = _parse_args([
        "--feedback", "posts.csv", "--strategy", "growth", "--quarter", "Q2",
        "--stat-strategy", "frequentist", "--ai",
    ])
    assert args.feedback == Path("posts.csv")
    assert args.experiments is None
    assert args.strategy == "growth"
    assert args.stat_strategy == "frequentist"
    assert args.ai

    with pytest.raises(SystemExit):
        _parse_args(["--stat-strategy", "vibes"])
