"""Text signals detected in feedback titles and descriptions."""

import re

from .config import CATEGORY_ALIASES

BUG_PATTERN = re.compile(
    r"(\bbug|\berror|broken|not\s+work|doesn['’]?t\s+(work|open|load)|won['’]?t\s+(open|load|work)"
    r"|fail(ed|s)?\s+to|unable\s+to|\bcannot\b|can['’]?t\b|\bstuck\b|\bcrash|glitch|freez"
    r"|unresponsive|loading\s+forever)",
    re.IGNORECASE,
)

FRUSTRATION_PATTERN = re.compile(
    r"(frustrat|annoy|difficult|\bpain|disrupt|block|\burgent|\basap\b|\bcritical|unusable"
    r"|cancel\s+(my|our)\s+(plan|subscription)|churn|switch(ing)?\s+to)",
    re.IGNORECASE,
)

GROWTH_PATTERN = re.compile(
    r"(onboard|invite|shar(e|ing)\b|sign[\s-]?up|referr|viral|trial|templates?\b|integrat)",
    re.IGNORECASE,
)

ENTERPRISE_PATTERN = re.compile(
    r"(\bsso\b|saml|audit\s+log|complian|gdpr|soc\s?2|permission|\broles?\b|\badmin\b|scim)",
    re.IGNORECASE,
)

SIGNAL_PATTERNS = {
    "bug": BUG_PATTERN,
    "frustration": FRUSTRATION_PATTERN,
    "growth": GROWTH_PATTERN,
    "enterprise": ENTERPRISE_PATTERN,
}


def normalize_category(category: str | None) -> str | None:
    """Lower-case a category label and fold common aliases."""
    if category is None:
        return None
    label = category.strip().lower()
    if not label:
        return None
    return CATEGORY_ALIASES.get(label, label)


def detect_signals(title: str, description: str = "") -> frozenset[str]:
    """Return the names of the text signals present in a post."""
    text = f"{title} {description or ''}"
    return frozenset(name for name, pattern in SIGNAL_PATTERNS.items() if pattern.search(text))


def looks_like_bug_report(title: str, description: str = "", category: str | None = None) -> bool:
    if normalize_category(category) == "bug":
        return True
    return "bug" in detect_signals(title, description)
