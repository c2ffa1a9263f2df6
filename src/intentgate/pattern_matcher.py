"""
Pattern Matcher - deterministic fast path of intent detection.

Evaluates the rule table against a request. Rules run by ascending
priority; inside one priority tier the exclusion rules run first, so an
exclusion always beats a positive rule of the same tier. The first matching
rule decides:

    positive rule  -> accepted result (source=pattern, confidence=1.0)
    exclusion rule -> "none" result, which ends detection for the request
    no match       -> None, the caller falls through to the next stage
"""

import re
from typing import Iterable, Optional

from intentgate.models import (
    ClassificationResult,
    ClassificationSource,
    Predicate,
    Request,
    Rule,
)


def evaluation_order(rules: Iterable[Rule]) -> list[Rule]:
    """Sort rules by (priority, exclusions first); stable within a tier."""
    return sorted(rules, key=lambda r: (r.priority, not r.is_exclusion))


def predicate_matches(predicate: Predicate, text: str) -> bool:
    """Test one predicate against request text (case-insensitive)."""
    if predicate.kind == "max_words":
        return len(text.split()) < predicate.value

    if predicate.kind == "regex" and predicate.pattern:
        if not re.search(predicate.pattern, text, re.IGNORECASE):
            return False
        if predicate.unless and re.search(predicate.unless, text, re.IGNORECASE):
            return False
        return True

    return False


def match(request: Request, rules: Iterable[Rule]) -> Optional[ClassificationResult]:
    """
    Evaluate the rule table against a request.

    Args:
        request: The user request
        rules: Rule table (any order)

    Returns:
        ClassificationResult for the first matching rule, or None
    """
    text = request.text.strip()

    for rule in evaluation_order(rules):
        if not predicate_matches(rule.predicate, text):
            continue

        if rule.is_exclusion:
            return ClassificationResult.none(
                source=ClassificationSource.PATTERN, rule_id=rule.id
            )

        return ClassificationResult(
            source=ClassificationSource.PATTERN,
            intent_category=rule.target_category,
            confidence=1.0,
            recommended_target=rule.target,
            extra_flags={"rule_id": rule.id},
        )

    return None
