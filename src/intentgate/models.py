"""
Intentgate Models - Value types shared by the classifier and the quality gate.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ClassificationSource(str, Enum):
    """Which classifier stage produced a result."""

    PATTERN = "pattern"  # Deterministic rule table
    SEMANTIC = "semantic"  # External classifier
    SCORED = "scored"  # Weighted keyword fallback
    NONE = "none"  # No stage produced a decision


class IntentCategory(str, Enum):
    """Inferred purpose of a request."""

    UTILITY = "utility"  # Quick lookup handled by a specialist agent
    FEATURE = "feature"
    DEBUG = "debug"
    REFACTOR = "refactor"
    QUESTION = "question"  # Conceptual question, never routed
    GENERAL = "general"  # Unclassifiable, never routed
    NONE = "none"


class DecisionType(str, Enum):
    """Kind of routing directive."""

    UTILITY_AGENT = "utility_agent"
    WORKFLOW = "workflow"
    NONE = "none"


class CheckerStatus(str, Enum):
    """Outcome of a single checker."""

    PASS = "pass"
    FAIL = "fail"
    SKIPPED = "skipped"  # Tool not installed or nothing to check


@dataclass(frozen=True)
class Request:
    """A single user turn. Never mutated."""

    text: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class Predicate:
    """Rule predicate.

    Tagged variant:
        kind="regex": case-insensitive search for ``pattern``; a match is
            vetoed when ``unless`` also matches
        kind="max_words": matches texts with fewer than ``value`` words
    """

    kind: str
    pattern: str | None = None
    unless: str | None = None
    value: int = 0


@dataclass(frozen=True)
class Rule:
    """One entry of the rule table."""

    id: str
    predicate: Predicate
    target_category: IntentCategory
    priority: int
    is_exclusion: bool = False
    target: str | None = None
    description: str = ""


@dataclass(frozen=True)
class ClassificationResult:
    """Result of exactly one classifier stage."""

    source: ClassificationSource
    intent_category: IntentCategory
    confidence: float = 1.0
    recommended_target: str | None = None
    extra_flags: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def none(
        cls,
        source: ClassificationSource = ClassificationSource.NONE,
        **flags: Any,
    ) -> "ClassificationResult":
        """Build the "no decision" result."""
        return cls(
            source=source,
            intent_category=IntentCategory.NONE,
            confidence=1.0,
            extra_flags=dict(flags),
        )

    @property
    def is_none(self) -> bool:
        return self.intent_category == IntentCategory.NONE

    @property
    def tdd_mode(self) -> bool:
        return bool(self.extra_flags.get("tdd_mode", False))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging and CLI output."""
        return {
            "source": self.source.value,
            "intent_category": self.intent_category.value,
            "confidence": self.confidence,
            "recommended_target": self.recommended_target,
            "extra_flags": dict(self.extra_flags),
        }


@dataclass(frozen=True)
class RoutingDecision:
    """Directive derived from a ClassificationResult."""

    decision_type: DecisionType
    target_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def none(cls, reason: str = "") -> "RoutingDecision":
        payload = {"reason": reason} if reason else {}
        return cls(decision_type=DecisionType.NONE, payload=payload)

    @property
    def is_none(self) -> bool:
        return self.decision_type == DecisionType.NONE

    def to_dict(self) -> dict[str, Any]:
        return {
            "decision_type": self.decision_type.value,
            "target_id": self.target_id,
            "payload": dict(self.payload),
        }


@dataclass(frozen=True)
class CheckerResult:
    """Result of one checker over the file set."""

    name: str
    status: CheckerStatus
    diagnostics: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"status": self.status.value, "diagnostics": self.diagnostics}


@dataclass
class ValidationRun:
    """One pass of the validation pipeline.

    Replaced on every guardian iteration; only ``iteration`` carries over.
    """

    files: list[str]
    checker_results: dict[str, CheckerResult] = field(default_factory=dict)
    iteration: int = 1

    @property
    def overall_status(self) -> CheckerStatus:
        if any(r.status == CheckerStatus.FAIL for r in self.checker_results.values()):
            return CheckerStatus.FAIL
        return CheckerStatus.PASS

    @property
    def passed(self) -> bool:
        return self.overall_status == CheckerStatus.PASS

    @property
    def ran_checkers(self) -> list[str]:
        return [
            name
            for name, r in self.checker_results.items()
            if r.status != CheckerStatus.SKIPPED
        ]

    @property
    def failed_checkers(self) -> list[str]:
        return [
            name
            for name, r in self.checker_results.items()
            if r.status == CheckerStatus.FAIL
        ]

    @property
    def skipped_checkers(self) -> list[str]:
        return [
            name
            for name, r in self.checker_results.items()
            if r.status == CheckerStatus.SKIPPED
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "files": list(self.files),
            "iteration": self.iteration,
            "overall_status": self.overall_status.value,
            "checkers": {
                name: result.to_dict() for name, result in self.checker_results.items()
            },
        }
