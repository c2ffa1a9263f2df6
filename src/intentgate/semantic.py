"""
Semantic Classifier Adapter

Wraps an external natural-language classifier (a CLI invoked in
non-interactive mode with JSON output) behind a strict boundary: the rest of
the system only ever sees a well-formed ClassificationResult or an
AdapterError.

Invocation:
    <command> -p <analysis prompt> --output-format json --model <model>

    bounded by a hard wall-clock timeout. A timeout, a non-zero exit, a
    missing executable or an unparseable reply all raise AdapterError; the
    adapter never guesses.

Confidence gate:
    primary_intent "question" or "general"  -> rejected
    confidence < confidence_floor           -> rejected
    confidence == confidence_floor          -> accepted
"""

import json
import logging
import shutil
import subprocess
from typing import Any, Optional

from intentgate.config import Configuration
from intentgate.models import (
    ClassificationResult,
    ClassificationSource,
    IntentCategory,
    Request,
)
from intentgate.router import UTILITY_AGENTS, WORKFLOWS

logger = logging.getLogger(__name__)

KNOWN_INTENTS = {
    IntentCategory.UTILITY,
    IntentCategory.FEATURE,
    IntentCategory.DEBUG,
    IntentCategory.REFACTOR,
    IntentCategory.QUESTION,
    IntentCategory.GENERAL,
}

REJECTED_INTENTS = {IntentCategory.QUESTION, IntentCategory.GENERAL}

ANALYSIS_PROMPT = """\
You are an intent classifier for a software development assistant. Analyze the \
user's request and recommend the best agent or workflow to handle it.

CLASSIFICATION RULES:
1. Utility intents (quick, specific lookups) -> a utility agent
2. Feature development (new functionality) -> a feature workflow
3. Debugging (errors, bugs, failures) -> the debug workflow
4. Refactoring (code improvement) -> the refactor workflow
5. Simple or conceptual questions -> no recommendation

UTILITY AGENTS:
{agents}

WORKFLOWS:
{workflows}

USER REQUEST:
{request}

Respond with ONLY valid JSON in this exact format:
{{
  "primary_intent": "utility|feature|debug|refactor|question|general",
  "confidence": 0.0-1.0,
  "recommended_agents": [{{"name": "agent-name", "reason": "brief reason", "priority": 1}}],
  "recommended_skills": ["workflow-name"],
  "tdd_mode": false
}}
"""


class AdapterError(Exception):
    """Raised when the external classifier is unavailable or misbehaves."""
    pass


def build_prompt(text: str) -> str:
    """Render the analysis prompt with the known agents and workflows."""
    agents = "\n".join(f"- {name}: {desc}" for name, desc in UTILITY_AGENTS.items())
    workflows = "\n".join(f"- {name}: {desc}" for name, desc in WORKFLOWS.items())
    return ANALYSIS_PROMPT.format(
        agents=agents,
        workflows=workflows,
        request=json.dumps(text),
    )


def extract_payload(raw: str) -> dict[str, Any]:
    """
    Find the classifier's JSON object in raw CLI output.

    The CLI may print the object directly or wrap the model's text in an
    envelope such as {"result": "...json..."}.

    Raises:
        AdapterError: If no object with a primary_intent field is found
    """
    try:
        outer = json.loads(raw)
    except json.JSONDecodeError:
        outer = None

    if isinstance(outer, dict):
        if "primary_intent" in outer:
            return outer
        inner = outer.get("result")
        if isinstance(inner, str):
            return extract_payload(inner)
        if isinstance(inner, dict) and "primary_intent" in inner:
            return inner

    decoder = json.JSONDecoder()
    position = raw.find("{")
    while position != -1:
        try:
            candidate, _ = decoder.raw_decode(raw, position)
        except json.JSONDecodeError:
            candidate = None
        if isinstance(candidate, dict) and "primary_intent" in candidate:
            return candidate
        position = raw.find("{", position + 1)

    raise AdapterError(f"invalid response: {raw[:200]!r}")


def parse_payload(payload: dict[str, Any]) -> ClassificationResult:
    """
    Validate the classifier's fields and build a ClassificationResult.

    Raises:
        AdapterError: If primary_intent or confidence is missing or invalid
    """
    try:
        intent = IntentCategory(str(payload.get("primary_intent", "")).strip().lower())
    except ValueError:
        raise AdapterError(f"unknown primary_intent: {payload.get('primary_intent')!r}")
    if intent not in KNOWN_INTENTS:
        raise AdapterError(f"unknown primary_intent: {intent.value!r}")

    confidence = payload.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise AdapterError(f"confidence is not a number: {confidence!r}")
    if not 0.0 <= confidence <= 1.0:
        raise AdapterError(f"confidence out of range: {confidence}")

    recommended = None
    agents = payload.get("recommended_agents") or []
    if isinstance(agents, list):
        named = [a for a in agents if isinstance(a, dict) and isinstance(a.get("name"), str)]
        if named:
            named.sort(key=lambda a: a.get("priority") if isinstance(a.get("priority"), int) else 99)
            recommended = named[0]["name"]

    if recommended is None:
        skills = payload.get("recommended_skills") or []
        if isinstance(skills, list):
            recommended = next((s for s in skills if isinstance(s, str)), None)

    tdd_mode = payload.get("tdd_mode", False)

    return ClassificationResult(
        source=ClassificationSource.SEMANTIC,
        intent_category=intent,
        confidence=float(confidence),
        recommended_target=recommended,
        extra_flags={"tdd_mode": tdd_mode is True},
    )


def gate(result: ClassificationResult, confidence_floor: float) -> Optional[ClassificationResult]:
    """Apply the confidence gate; None means "no decision"."""
    if result.intent_category in REJECTED_INTENTS:
        return None
    if result.confidence < confidence_floor:
        return None
    return result


class SemanticClassifier:
    """
    Adapter around the external classifier CLI.

    Attributes:
        command: Executable name or path
        model: Model identifier passed to the CLI
        timeout: Wall-clock budget in seconds
        confidence_floor: Minimum accepted confidence
    """

    def __init__(
        self,
        command: str = "claude",
        model: str = "haiku",
        timeout: float = 10.0,
        confidence_floor: float = 0.60,
    ):
        self.command = command
        self.model = model
        self.timeout = timeout
        self.confidence_floor = confidence_floor

    @classmethod
    def from_config(cls, config: Configuration) -> "SemanticClassifier":
        return cls(
            command=config.semantic_command,
            model=config.semantic_model,
            timeout=config.semantic_timeout,
            confidence_floor=config.confidence_floor,
        )

    def is_available(self) -> bool:
        """Cheap, side-effect-free check that the CLI is installed."""
        return shutil.which(self.command) is not None

    def classify(self, request: Request) -> ClassificationResult:
        """
        Run the external classifier on a request.

        Raises:
            AdapterError: On timeout, non-zero exit, or malformed output
        """
        argv = [
            self.command,
            "-p",
            build_prompt(request.text),
            "--output-format",
            "json",
            "--model",
            self.model,
        ]
        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise AdapterError(f"timed out after {self.timeout}s")
        except OSError as e:
            raise AdapterError(f"cannot run {self.command}: {e}")

        if completed.returncode != 0:
            raise AdapterError(f"exit code {completed.returncode}")

        return parse_payload(extract_payload(completed.stdout))

    def classify_gated(self, request: Request) -> Optional[ClassificationResult]:
        """
        Classify and apply the confidence gate.

        Returns None for rejected results; AdapterError still propagates so
        the caller can tell "unavailable" from "declined".
        """
        result = self.classify(request)
        accepted = gate(result, self.confidence_floor)
        if accepted is None:
            logger.debug(
                f"Semantic result rejected: {result.intent_category.value} "
                f"@ {result.confidence:.2f} (floor {self.confidence_floor:.2f})"
            )
        return accepted
