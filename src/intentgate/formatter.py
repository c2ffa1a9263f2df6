"""
Routing Directive Formatter

Renders a RoutingDecision as the hook output consumed by the orchestrating
agent:

    {"systemMessage": "...", "suppressOutput": false}

Modes:
    inject   imperative directive: invoke the target now, no text answer
    suggest  recommendation the agent may act on
"""

from typing import Any, Optional

from intentgate.config import Configuration
from intentgate.models import DecisionType, RoutingDecision

AGENT_HEADLINES = {
    "file-finder": "File Search Intent Detected",
    "code-line-finder": "Code Location Intent Detected",
    "git-diff-analyzer": "Git Analysis Intent Detected",
    "log-analyzer": "Log Analysis Intent Detected",
}

WORKFLOW_HEADLINES = {
    "dev-workflow": "Feature Development Intent Detected",
    "feature-workflow": "TDD Feature Development Intent Detected",
    "debug-workflow": "Debugging Task Intent Detected",
    "refactor-workflow": "Refactoring Task Intent Detected",
}


def _invocation_block(decision: RoutingDecision) -> str:
    tool = decision.payload.get("invocation_tool", "Task")
    target = decision.payload.get("qualified_target", decision.target_id)
    if decision.decision_type == DecisionType.UTILITY_AGENT:
        return (
            f"```\n{tool} tool with:\n"
            f"  subagent_type: {target}\n"
            f"  prompt: [user's original request]\n```"
        )
    return f"```\n{tool} tool with:\n  skill: {target}\n```"


def build_system_message(decision: RoutingDecision, mode: str) -> str:
    """Compose the systemMessage text for a decision."""
    is_agent = decision.decision_type == DecisionType.UTILITY_AGENT
    headlines = AGENT_HEADLINES if is_agent else WORKFLOW_HEADLINES
    headline = headlines.get(decision.target_id, "Intent Detected")
    kind = "Specialist" if is_agent else "Workflow"
    tool = decision.payload.get("invocation_tool", "Task")
    target = decision.payload.get("qualified_target", decision.target_id)
    description = decision.payload.get("description", "")

    lines = [f"**{headline} - Routing to {kind}**", ""]

    if mode == "inject":
        lines.append(
            f"**ACTION REQUIRED**: Invoke `{target}` immediately using the {tool} tool."
        )
    else:
        lines.append(
            f"**Suggestion**: This request fits `{target}`. "
            f"Consider invoking it with the {tool} tool."
        )

    if description:
        lines.extend(["", f"- Capabilities: {description}"])
    if decision.payload.get("tdd_mode"):
        lines.append("- Test-first mode requested: write failing tests before implementation")

    lines.extend(["", "**Invocation Pattern:**", _invocation_block(decision)])

    if mode == "inject":
        lines.extend(
            ["", "Do NOT respond with a text explanation - invoke the target to handle this request."]
        )

    return "\n".join(lines)


def format_directive(decision: RoutingDecision, config: Configuration) -> Optional[dict[str, Any]]:
    """
    Render the hook output for a decision.

    Returns:
        Hook output dict, or None when there is nothing to say
    """
    if decision.is_none or not decision.target_id or not config.detection_active:
        return None

    return {
        "systemMessage": build_system_message(decision, config.detection_mode),
        "suppressOutput": False,
    }
