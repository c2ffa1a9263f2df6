"""
Intent Router

Maps an accepted ClassificationResult to a RoutingDecision.

The annoyance threshold is applied here, after classification, so the
classifiers never see policy:

    low     only high-urgency categories (debug, utility lookups)
    medium  debug, utility, feature and refactor results
    high    every accepted result with a known target

Short and conceptual questions are already excluded by the rule table, so
medium and high admit the same categories here.

route() is total and does no I/O.
"""

import logging

from intentgate.config import Configuration
from intentgate.models import (
    ClassificationResult,
    DecisionType,
    IntentCategory,
    RoutingDecision,
)

logger = logging.getLogger(__name__)

# Specialist agents for quick, specific lookups (invoked with the Task tool)
UTILITY_AGENTS: dict[str, str] = {
    "file-finder": "Fast file discovery by glob pattern, name, or content",
    "code-line-finder": "Symbol lookup: definitions with line numbers, usages and references",
    "git-diff-analyzer": "Staged/unstaged diffs, branch and commit comparison, blame and history",
    "log-analyzer": "Application log parsing: errors, stack traces, slow queries",
}

# Multi-phase workflows (invoked with the Skill tool)
WORKFLOWS: dict[str, str] = {
    "dev-workflow": "Full multi-phase development workflow with parallel execution",
    "feature-workflow": "Test-first feature development driven by user stories",
    "debug-workflow": "Systematic debugging with root cause analysis and regression tests",
    "refactor-workflow": "Safe refactoring with test preservation and reference tracking",
}

CATEGORY_WORKFLOWS: dict[IntentCategory, str] = {
    IntentCategory.FEATURE: "dev-workflow",
    IntentCategory.DEBUG: "debug-workflow",
    IntentCategory.REFACTOR: "refactor-workflow",
}

TDD_WORKFLOW = "feature-workflow"

URGENCY: dict[IntentCategory, str] = {
    IntentCategory.DEBUG: "high",
    IntentCategory.UTILITY: "high",
    IntentCategory.REFACTOR: "medium",
    IntentCategory.FEATURE: "medium",
}


def passes_annoyance_filter(result: ClassificationResult, threshold: str) -> bool:
    """Decide whether an accepted result is worth interrupting the user for."""
    urgency = URGENCY.get(result.intent_category)
    if urgency is None:
        return False

    if threshold == "low":
        return urgency == "high"
    return True


def resolve_target(result: ClassificationResult) -> tuple[DecisionType, str | None]:
    """Look up the concrete target for a result in the static tables."""
    category = result.intent_category
    recommended = result.recommended_target

    if category == IntentCategory.UTILITY:
        if recommended in UTILITY_AGENTS:
            return DecisionType.UTILITY_AGENT, recommended
        return DecisionType.NONE, None

    if category not in CATEGORY_WORKFLOWS:
        return DecisionType.NONE, None

    if recommended in WORKFLOWS:
        return DecisionType.WORKFLOW, recommended
    if category == IntentCategory.FEATURE and result.tdd_mode:
        return DecisionType.WORKFLOW, TDD_WORKFLOW
    return DecisionType.WORKFLOW, CATEGORY_WORKFLOWS[category]


def route(result: ClassificationResult | None, config: Configuration) -> RoutingDecision:
    """
    Map a classification to a routing decision.

    Args:
        result: Accepted classification (None or "none" means no decision)
        config: Active configuration (annoyance threshold, namespace)

    Returns:
        RoutingDecision; decision_type NONE when nothing should be suggested
    """
    try:
        if result is None or result.is_none:
            return RoutingDecision.none("no classification")

        if not passes_annoyance_filter(result, config.annoyance_threshold):
            logger.debug(
                f"Filtered {result.intent_category.value} result at "
                f"annoyance threshold {config.annoyance_threshold}"
            )
            return RoutingDecision.none(f"filtered at {config.annoyance_threshold}")

        decision_type, target = resolve_target(result)
        if decision_type == DecisionType.NONE or target is None:
            return RoutingDecision.none("no known target")

        is_agent = decision_type == DecisionType.UTILITY_AGENT
        description = UTILITY_AGENTS[target] if is_agent else WORKFLOWS[target]

        return RoutingDecision(
            decision_type=decision_type,
            target_id=target,
            payload={
                "category": result.intent_category.value,
                "source": result.source.value,
                "confidence": result.confidence,
                "tdd_mode": result.tdd_mode,
                "qualified_target": f"{config.namespace}:{target}",
                "invocation_tool": "Task" if is_agent else "Skill",
                "description": description,
            },
        )
    except Exception as e:
        logger.error(f"Error routing classification: {e}", exc_info=True)
        return RoutingDecision.none("routing error")
