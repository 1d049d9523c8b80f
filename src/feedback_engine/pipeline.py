"""Batch report: score feedback, analyse experiments, write markdown."""
import argparse
import asyncio
from datetime import date
from pathlib import Path

from .client import APIClient
from .csv_loader import load_experiments, load_feedback
from .logging_config import configure_logging
from .models import BusinessContext, ExperimentReview, TriagedFeedback
from .orchestrator import ExperimentReviewer, Triager


DATA_DIR = Path("data")


def _format_rate(value: float | None, suffix: str = "%", signed: bool = False) -> str:
    if value is None:
        return "n/a"
    return f"{value:+.1f}{suffix}" if signed else f"{value:.1f}{suffix}"


def _report_to_markdown(
    triaged: list[TriagedFeedback],
    reviews: list[ExperimentReview],
    report_date: date,
) -> str:
    """Render triage and experiment results as markdown."""
    lines = [
        "# Feedback Priority Report",
        f"**Generated:** {report_date.isoformat()}\n",
    ]

    if triaged:
        lines.extend([
            "## Prioritized Feedback",
            "",
            "| # | Post | Score | Priority | Action | Quarter |",
            "|---|------|-------|----------|--------|---------|",
        ])
        for i, item in enumerate(triaged, 1):
            r = item.result
            lines.append(
                f"| {i} | {item.context.post.title} | {r.score:.1f} | {r.priority_level.value} "
                f"| {r.suggested_action} | {r.quarter_recommendation} |"
            )
        lines.append("")

        lines.append("### Justifications")
        for item in triaged:
            lines.append(f"- **{item.context.post.title}:** {item.justification}")
        lines.append("")

    if reviews:
        lines.append("## Experiments")
        for review in reviews:
            res = review.results
            lines.extend([
                f"### {review.experiment_id}",
                f"- **Method:** {res.strategy}",
                f"- **Recommended Action:** {res.recommended_action.value}",
                f"- **Winner:** {res.winner_key or 'none'}",
                f"- **Visitors / Conversions:** {res.total_visitors} / {res.total_conversions}",
                f"- **Days Running:** {res.days_running}",
            ])
            if res.projected_days_to_significance is not None and not res.has_significant_winner:
                lines.append(f"- **Projected Days to Target Sample:** {res.projected_days_to_significance}")
            lines.extend([
                "",
                "| Variant | Visitors | Conversions | Rate | Lift | Confidence | Significant |",
                "|---------|----------|-------------|------|------|------------|-------------|",
            ])
            for v in res.variants:
                name = f"{v.key} (control)" if v.is_control else v.key
                if v.is_winner:
                    name = f"**{name}**"
                lines.append(
                    f"| {name} | {v.visitors} | {v.conversions} | {v.conversion_rate:.2%} "
                    f"| {_format_rate(v.lift, signed=True)} | {_format_rate(v.confidence)} "
                    f"| {'yes' if v.is_significant else 'no'} |"
                )
            lines.append("")
            if review.narrative:
                lines.extend([f"> {review.narrative}", ""])

    return "\n".join(lines)


async def run_pipeline(
    feedback_csv: Path | None = None,
    experiments_csv: Path | None = None,
    business_context: BusinessContext | None = None,
    stat_strategy: str | None = None,
    use_ai: bool = False,
    out_dir: Path = DATA_DIR / "reports",
) -> Path | None:
    """Run triage and experiment analysis, returning the report path."""
    print("=== Feedback Priority Pipeline ===\n")

    if feedback_csv is None and experiments_csv is None:
        print("Error: nothing to do (pass a feedback and/or experiments CSV)")
        return None
    for path in (feedback_csv, experiments_csv):
        if path is not None and not path.exists():
            print(f"Error: {path} not found")
            return None

    api = APIClient() if use_ai else None
    triager = Triager(DATA_DIR / "justifications", api)
    reviewer = ExperimentReviewer(DATA_DIR / "experiments", api, strategy=stat_strategy)

    triaged: list[TriagedFeedback] = []
    if feedback_csv is not None:
        print(f"Loading feedback from {feedback_csv}...")
        contexts = load_feedback(feedback_csv)
        if business_context is not None:
            contexts = [c.model_copy(update={"business_context": business_context}) for c in contexts]
        print(f"Loaded {len(contexts)} posts\n")

        print("Scoring feedback...")
        triaged = await triager.triage_batch(contexts)
        print(f"✓ Scored {len(triaged)} posts\n")

    reviews: list[ExperimentReview] = []
    if experiments_csv is not None:
        print(f"Loading experiments from {experiments_csv}...")
        experiments = load_experiments(experiments_csv)
        print(f"Loaded {len(experiments)} experiments\n")

        print("Analysing experiments...")
        reviews = await reviewer.review_all(experiments)
        for review in reviews:
            print(f"✓ {review.experiment_id}: {review.results.recommended_action.value}")
        print()

    report_date = date.today()
    out_dir.mkdir(parents=True, exist_ok=True)
    md_file = out_dir / f"priority_report_{report_date.isoformat()}.md"
    md_file.write_text(_report_to_markdown(triaged, reviews, report_date))
    print(f"✓ Saved to {md_file}\n")

    if triaged:
        print("=" * 60)
        print("TOP PRIORITIES")
        print("=" * 60)
        for i, item in enumerate(triaged[:10], 1):
            r = item.result
            print(f"{i}. [{r.priority_level.value.upper()}] {r.score:.1f} {item.context.post.title}")
            print(f"   {r.suggested_action}")
    if reviews:
        print("=" * 60)
        print("EXPERIMENTS")
        print("=" * 60)
        for review in reviews:
            res = review.results
            print(f"  {review.experiment_id}: {res.recommended_action.value} (winner: {res.winner_key or 'none'})")
    print("=" * 60)
    print(f"Full report: {md_file}")
    print("=" * 60)
    return md_file


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Feedback prioritization and experiment report")
    parser.add_argument("--feedback", type=Path, default=None, help="CSV of feedback posts")
    parser.add_argument("--experiments", type=Path, default=None, help="CSV of experiment variant counts")
    parser.add_argument(
        "--strategy",
        default=None,
        help="Company strategy: growth, retention, enterprise or profitability",
    )
    parser.add_argument("--quarter", default=None, help="Current quarter label, e.g. Q3")
    parser.add_argument(
        "--stat-strategy",
        choices=["bayesian", "frequentist"],
        default=None,
        help="Significance method (default from FEEDBACK_STATS_STRATEGY)",
    )
    parser.add_argument("--ai", action="store_true", help="Rewrite justifications with the Anthropic API")
    parser.add_argument("--out", type=Path, default=DATA_DIR / "reports", help="Report output directory")
    return parser.parse_args(argv)


def main(argv=None):
    configure_logging()
    args = _parse_args(argv)
    business_context = None
    if args.strategy or args.quarter:
        business_context = BusinessContext(company_strategy=args.strategy, current_quarter=args.quarter)
    asyncio.run(run_pipeline(
        feedback_csv=args.feedback,
        experiments_csv=args.experiments,
        business_context=business_context,
        stat_strategy=args.stat_strategy,
        use_ai=args.ai,
        out_dir=args.out,
    ))


if __name__ == "__main__":
    main()
