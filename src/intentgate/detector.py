"""
Intent Detection Pipeline

Runs one request through the classifier stages and the router:

    1. detection disabled / empty request      -> no decision
    2. explicit command prefix                 -> no decision (already routed)
    3. Pattern Matcher                         -> accepted or excluded
    4. Semantic Classifier Adapter             -> if enabled and installed
    5. project context check                   -> workflows only inside a project
    6. Scored Fallback Matcher
    7. Router

The first stage producing a decision short-circuits the rest. Stages run
strictly in order; only the semantic stage blocks on external I/O.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from intentgate import pattern_matcher, scoring
from intentgate.config import Configuration
from intentgate.models import ClassificationResult, Request, RoutingDecision, Rule
from intentgate.router import route
from intentgate.rules import load_rules
from intentgate.semantic import AdapterError, SemanticClassifier

logger = logging.getLogger(__name__)

# Signals that the request is about the project's own code
PROJECT_CONTEXT_PATTERN = re.compile(
    r"\b(model|controller|view|migration|activerecord|activejob|actioncable|turbo|"
    r"stimulus|hotwire|sidekiq|rspec|rails|ruby|gem|bundle|rake)s?\b|"
    r"app/models|app/controllers|app/services|app/components|app/views|"
    r"config/routes|db/migrate|spec/",
    re.IGNORECASE,
)

PROJECT_MARKER_FILE = "Gemfile"
PROJECT_MARKER_PATTERN = re.compile(r"\brails\b")


@dataclass
class Detection:
    """Outcome of one detection pass, with the stages that ran."""

    request: Request
    result: ClassificationResult
    decision: RoutingDecision
    stages: list[str] = field(default_factory=list)


def is_explicit_command(text: str, prefixes: Iterable[str]) -> bool:
    """True when the request starts with a reserved routing command."""
    stripped = text.lstrip().lower()
    for prefix in prefixes:
        prefix = prefix.lower()
        if stripped.startswith(prefix):
            rest = stripped[len(prefix):]
            if not rest or not (rest[0].isalnum() or rest[0] in "_-"):
                return True
    return False


def has_project_context(text: str, project_root: Optional[Path] = None) -> bool:
    """True when the request or the working tree looks like project work."""
    if PROJECT_CONTEXT_PATTERN.search(text):
        return True

    if project_root is not None:
        marker = project_root / PROJECT_MARKER_FILE
        try:
            if marker.is_file() and PROJECT_MARKER_PATTERN.search(marker.read_text(errors="ignore")):
                return True
        except OSError as e:
            logger.debug(f"Cannot read {marker}: {e}")

    return False


class IntentDetector:
    """
    Hybrid intent detector.

    Attributes:
        config: Active configuration
        rules: Rule table for the pattern matcher
        semantic: Semantic classifier adapter (None disables the stage)
    """

    def __init__(
        self,
        config: Configuration,
        rules: Optional[list[Rule]] = None,
        semantic: Optional[SemanticClassifier] = None,
    ):
        self.config = config
        self.rules = rules if rules is not None else load_rules(config.rules_path)
        if semantic is None and config.use_semantic_classifier:
            semantic = SemanticClassifier.from_config(config)
        self.semantic = semantic if config.use_semantic_classifier else None

    def classify(self, request: Request, stages: Optional[list[str]] = None) -> ClassificationResult:
        """Run the classifier stages; returns the first decision."""
        stages = stages if stages is not None else []
        text = request.text

        stages.append("pattern")
        result = pattern_matcher.match(request, self.rules)
        if result is not None:
            return result

        if self.semantic is not None:
            if self.semantic.is_available():
                stages.append("semantic")
                try:
                    accepted = self.semantic.classify_gated(request)
                except AdapterError as e:
                    logger.info(f"Semantic classifier unavailable for this request: {e}")
                    accepted = None
                if accepted is not None:
                    return accepted
            else:
                logger.debug(f"Semantic classifier '{self.semantic.command}' not installed")

        if self.config.require_project_context and not has_project_context(
            text, self.config.project_root
        ):
            stages.append("context")
            return ClassificationResult.none(reason="no project context")

        stages.append("scored")
        return scoring.score(
            text,
            min_score=self.config.min_score,
            tdd_threshold=self.config.tdd_threshold,
        )

    def detect(self, text: str) -> Detection:
        """
        Classify and route one request.

        Args:
            text: Raw request text

        Returns:
            Detection with the result, the routing decision and stage trail
        """
        request = Request(text=text)
        stages: list[str] = []

        if not self.config.detection_active or not text.strip():
            return Detection(request, ClassificationResult.none(), RoutingDecision.none("inactive"), stages)

        if is_explicit_command(text, self.config.command_prefixes):
            stages.append("command")
            return Detection(
                request,
                ClassificationResult.none(reason="explicit command"),
                RoutingDecision.none("explicit command"),
                stages,
            )

        result = self.classify(request, stages)
        decision = route(result, self.config)
        logger.debug(
            f"Detection: {result.source.value}/{result.intent_category.value} -> "
            f"{decision.decision_type.value}:{decision.target_id} via {stages}"
        )
        return Detection(request, result, decision, stages)
