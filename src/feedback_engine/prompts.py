"""Prompt templates for the AI-enhancement layer."""

JUSTIFY_PROMPT = """Rewrite the business justification for this product feedback item.

Title: {title}
Description: {description}
Category: {category}

Priority: {priority_level} (score {score:.1f}/10)
Suggested action: {suggested_action}
Signals: {votes} votes from {unique_voters} unique voters, {comments} comments,
{percent_active:.1f}% of active users, {similar_posts} similar posts, {tier} requester
Company strategy: {strategy}

Current justification: {justification}

Keep the priority and action as given; do not invent numbers.
Return JSON with one key: justification (1-2 sentences).

Return ONLY valid JSON."""


EXPERIMENT_REVIEW_PROMPT = """Summarize this A/B experiment for a product team.

Experiment: {experiment_id}
Method: {strategy}
Days running: {days_running}
Total visitors: {total_visitors}
Recommended action: {recommended_action}
Winner: {winner}

Variants:
{variants}

Explain what the numbers mean and why the recommended action follows.
Return JSON with one key: narrative (2-3 sentences).

Return ONLY valid JSON."""
