"""
Scored Fallback Matcher

Weighted keyword scoring across workflow categories, used only when neither
the rule table nor the semantic classifier produced a decision.

Scoring:
    Each category sums the weights of its signal groups that match the
    request. Generic action verbs weigh little; category-specific phrases
    (named exception classes, stack-trace tokens, user-story openers,
    technical-debt language) weigh a lot.

    The winner is the strictly highest score; ties go to the more urgent
    category (debug > refactor > feature). The winner is accepted only if its
    score reaches ``min_score``.

    TDD mode is scored separately from its own signal groups and attached to
    the result whichever category wins.

The weights and thresholds are empirical defaults; ``min_score`` and
``tdd_threshold`` are configurable.
"""

import re
from dataclasses import dataclass

from intentgate.models import ClassificationResult, ClassificationSource, IntentCategory

DEFAULT_MIN_SCORE = 4
DEFAULT_TDD_THRESHOLD = 3

# Scores at or above this map to confidence 1.0
CONFIDENCE_SCALE = 10


@dataclass(frozen=True)
class SignalGroup:
    """A regex whose match adds ``weight`` points to a category."""

    name: str
    pattern: str
    weight: int


CATEGORY_SIGNALS: dict[IntentCategory, tuple[SignalGroup, ...]] = {
    IntentCategory.FEATURE: (
        SignalGroup(
            "action_verbs",
            r"\b(add|implement|build|create|develop|make|generate|set up|introduce)\b",
            2,
        ),
        SignalGroup(
            "feature_phrases",
            r"new feature|feature request|users? can|users should|ability to",
            2,
        ),
        SignalGroup(
            "user_story",
            r"^\s*(as an? |i want|so that|user story|feature:|acceptance criteria)",
            5,
        ),
    ),
    IntentCategory.DEBUG: (
        SignalGroup(
            "fix_verbs",
            r"\b(fix|debug|troubleshoot|diagnose|investigate|resolve|repair)\b",
            2,
        ),
        SignalGroup(
            "symptoms",
            r"\b(error|bug|issue|problem|broken|not working|failing|fails|crash(es|ed)?)\b",
            2,
        ),
        SignalGroup(
            "error_classes",
            r"nomethoderror|argumenterror|typeerror|syntaxerror|nameerror|"
            r"activerecord\w*error|recordnotfound|validationerror|routingerror",
            5,
        ),
        SignalGroup(
            "stack_trace",
            r"line \d+|\.rb:\d+|\.py:\d+|backtrace|stack ?trace|traceback|exception",
            5,
        ),
    ),
    IntentCategory.REFACTOR: (
        SignalGroup(
            "refactor_verbs",
            r"\b(refactor|restructure|reorganize|clean ?up|improve|optimize|simplify)\b",
            2,
        ),
        SignalGroup(
            "quality_words",
            r"code smell|duplication|\bdry\b|\bextract\b|\binline\b|\brename\b|\bmove\b",
            2,
        ),
        SignalGroup(
            "debt_phrases",
            r"code smell|technical debt|tech debt|decouple|separation of concerns|god (class|object)",
            5,
        ),
    ),
}

TDD_SIGNALS: tuple[SignalGroup, ...] = (
    SignalGroup(
        "test_first",
        r"test.first|\btdd\b|test.driven|write tests? first|red.green.refactor",
        3,
    ),
    SignalGroup(
        "coverage",
        r"with tests?\b|ensure coverage|comprehensive tests?|full coverage",
        2,
    ),
)

# Tie-break order, most urgent first
CATEGORY_PRIORITY: tuple[IntentCategory, ...] = (
    IntentCategory.DEBUG,
    IntentCategory.REFACTOR,
    IntentCategory.FEATURE,
)


def _score_groups(text: str, groups: tuple[SignalGroup, ...]) -> tuple[int, list[str]]:
    score = 0
    matched = []
    for group in groups:
        if re.search(group.pattern, text, re.IGNORECASE):
            score += group.weight
            matched.append(group.name)
    return score, matched


def category_scores(text: str) -> dict[IntentCategory, int]:
    """Score every workflow category independently."""
    return {
        category: _score_groups(text, groups)[0]
        for category, groups in CATEGORY_SIGNALS.items()
    }


def tdd_score(text: str) -> int:
    return _score_groups(text, TDD_SIGNALS)[0]


def pick_winner(scores: dict[IntentCategory, int]) -> tuple[IntentCategory, int]:
    """Highest score wins; ties resolved by CATEGORY_PRIORITY."""
    best_category = CATEGORY_PRIORITY[0]
    best_score = scores.get(best_category, 0)
    for category in CATEGORY_PRIORITY[1:]:
        if scores.get(category, 0) > best_score:
            best_category = category
            best_score = scores[category]
    return best_category, best_score


def score(
    text: str,
    min_score: int = DEFAULT_MIN_SCORE,
    tdd_threshold: int = DEFAULT_TDD_THRESHOLD,
) -> ClassificationResult:
    """
    Classify a request by weighted keyword scoring.

    Args:
        text: Request text
        min_score: Minimum winning score for an accepted result
        tdd_threshold: Minimum TDD score for tdd_mode

    Returns:
        Accepted result (source=scored), or the "none" result
    """
    scores = category_scores(text)
    winner, winning_score = pick_winner(scores)
    tdd_mode = tdd_score(text) >= tdd_threshold

    flags = {
        "tdd_mode": tdd_mode,
        "scores": {category.value: value for category, value in scores.items()},
    }

    if winning_score < min_score:
        return ClassificationResult.none(source=ClassificationSource.SCORED, **flags)

    return ClassificationResult(
        source=ClassificationSource.SCORED,
        intent_category=winner,
        confidence=min(1.0, winning_score / CONFIDENCE_SCALE),
        extra_flags=flags,
    )
