"""Unit tests for the pattern matcher."""

import pytest

from intentgate.models import (
    ClassificationSource,
    IntentCategory,
    Predicate,
    Request,
    Rule,
)
from intentgate.pattern_matcher import evaluation_order, match, predicate_matches


def _rule(rule_id, pattern, priority=10, exclusion=False, target="file-finder", unless=None):
    return Rule(
        id=rule_id,
        predicate=Predicate(kind="regex", pattern=pattern, unless=unless),
        target_category=IntentCategory.NONE if exclusion else IntentCategory.UTILITY,
        priority=priority,
        is_exclusion=exclusion,
        target=None if exclusion else target,
    )


class TestPredicateMatches:
    """Tests for predicate evaluation."""

    def test_regex_is_case_insensitive(self):
        """Regex predicates ignore case."""
        assert predicate_matches(Predicate(kind="regex", pattern="git diff"), "Show me GIT DIFF")

    def test_unless_vetoes_match(self):
        """A matching veto pattern cancels the match."""
        predicate = Predicate(kind="regex", pattern=r"^how\b", unless=r"\bimplement\b")
        assert predicate_matches(predicate, "how does routing work")
        assert not predicate_matches(predicate, "how do I implement routing")

    def test_max_words_is_strict(self):
        """max_words matches strictly fewer words than the bound."""
        predicate = Predicate(kind="max_words", value=5)
        assert predicate_matches(predicate, "one two three four")
        assert not predicate_matches(predicate, "one two three four five")


class TestEvaluationOrder:
    """Tests for rule precedence."""

    def test_lower_priority_first(self):
        """Rules run by ascending priority."""
        late = _rule("late", "x", priority=20)
        early = _rule("early", "x", priority=10)
        assert [r.id for r in evaluation_order([late, early])] == ["early", "late"]

    def test_exclusion_wins_within_tier(self):
        """Within a tier exclusions run before positive rules."""
        positive = _rule("positive", "files", priority=10)
        exclusion = _rule("exclusion", "files", priority=10, exclusion=True)

        result = match(Request("list the files"), [positive, exclusion])

        assert result is not None
        assert result.is_none
        assert result.extra_flags["rule_id"] == "exclusion"


class TestMatch:
    """Tests for match against the packaged rule table."""

    def test_file_search_scenario(self, rules):
        """'find all files matching *.rb' is an accepted file-search result."""
        result = match(Request("find all files matching *.rb"), rules)

        assert result is not None
        assert result.source == ClassificationSource.PATTERN
        assert result.intent_category == IntentCategory.UTILITY
        assert result.recommended_target == "file-finder"
        assert result.confidence == 1.0

    def test_simple_question_excluded(self, rules):
        """'what is a migration?' hits an exclusion and yields none."""
        result = match(Request("what is a migration?"), rules)

        assert result is not None
        assert result.is_none
        assert result.source == ClassificationSource.PATTERN

    @pytest.mark.parametrize(
        "text,target",
        [
            ("where is the authenticate method defined in the codebase", "code-line-finder"),
            ("show me the diff between this branch and main", "git-diff-analyzer"),
            ("check the development.log for the latest exceptions", "log-analyzer"),
            ("find all the service objects under app/services", "file-finder"),
            ("please find the PaymentProcessor class in this app", "code-line-finder"),
            ("find the Billing module used by the invoices", "code-line-finder"),
            ("show me the recent errors from the payment worker", "log-analyzer"),
        ],
    )
    def test_utility_lookups(self, rules, text, target):
        """Utility lookups route to their specialist agent."""
        result = match(Request(text), rules)
        assert result is not None
        assert result.recommended_target == target

    def test_conceptual_question_excluded(self, rules):
        """Long conceptual questions without action verbs are excluded."""
        result = match(Request("why does rails prefer convention over configuration so strongly"), rules)
        assert result is not None and result.is_none

    def test_conceptual_question_with_action_verb_falls_through(self, rules):
        """Questions with an implementation verb are left to later stages."""
        assert match(Request("how should we implement billing webhooks for the shop"), rules) is None

    @pytest.mark.parametrize(
        "text",
        [
            "how is fixing the cart total going to work",
            "what happens to orders added after the cutoff time",
            "why do the nightly updates take so long to finish",
        ],
    )
    def test_inflected_action_verb_falls_through(self, rules, text):
        """Inflected action verbs (fixing, added, updates) also veto the question exclusion."""
        assert match(Request(text), rules) is None

    def test_no_match_returns_none(self, rules):
        """Requests no rule covers fall through."""
        assert match(Request("Add a recurring billing plan for premium customers"), rules) is None

    def test_deterministic(self, rules):
        """Same request and rules always give the same result."""
        request = Request("find all files matching *.rb")
        assert match(request, rules) == match(request, rules)
