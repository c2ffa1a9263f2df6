"""Rule Table Loader

Loads the ordered intent rule table from its declarative YAML source.
The table is read once at startup and never mutated during a run.

Rule Format:
    - id: file-finder.search
      priority: 10
      category: utility
      target: file-finder
      kind: regex
      pattern: 'find .* files?'
      unless: 'optional veto regex'
    - id: exclude.short-request
      priority: 20
      exclusion: true
      kind: max_words
      value: 5
"""

import logging
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from intentgate.config import ConfigurationError
from intentgate.models import IntentCategory, Predicate, Rule

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).parent / "data" / "rules.yaml"

PREDICATE_KINDS = {"regex", "max_words"}


def _compile_check(pattern: str, rule_id: str) -> None:
    try:
        re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise ConfigurationError(f"Rule '{rule_id}': invalid regex {pattern!r}: {e}")


def parse_rule(entry: dict[str, Any]) -> Rule:
    """
    Build a Rule from one rule-table entry.

    Raises:
        ConfigurationError: If the entry is incomplete or malformed
    """
    rule_id = entry.get("id")
    if not rule_id:
        raise ConfigurationError(f"Rule without id: {entry!r}")

    kind = entry.get("kind", "regex")
    if kind not in PREDICATE_KINDS:
        raise ConfigurationError(
            f"Rule '{rule_id}': unknown predicate kind '{kind}'. "
            f"Available kinds: {sorted(PREDICATE_KINDS)}"
        )

    is_exclusion = bool(entry.get("exclusion", False))

    if kind == "regex":
        pattern = entry.get("pattern")
        if not pattern:
            raise ConfigurationError(f"Rule '{rule_id}': regex predicate needs a pattern")
        _compile_check(pattern, rule_id)
        unless = entry.get("unless")
        if unless:
            _compile_check(unless, rule_id)
        predicate = Predicate(kind="regex", pattern=pattern, unless=unless)
    else:
        value = entry.get("value")
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ConfigurationError(f"Rule '{rule_id}': max_words needs a positive integer value")
        predicate = Predicate(kind="max_words", value=value)

    if is_exclusion:
        category = IntentCategory.NONE
    else:
        try:
            category = IntentCategory(entry.get("category", ""))
        except ValueError:
            raise ConfigurationError(
                f"Rule '{rule_id}': unknown category {entry.get('category')!r}"
            )

    priority = entry.get("priority", 100)
    if not isinstance(priority, int) or isinstance(priority, bool):
        raise ConfigurationError(f"Rule '{rule_id}': priority must be an integer")

    return Rule(
        id=str(rule_id),
        predicate=predicate,
        target_category=category,
        priority=priority,
        is_exclusion=is_exclusion,
        target=entry.get("target"),
        description=entry.get("description", ""),
    )


def load_rules(path: Optional[Path] = None) -> list[Rule]:
    """
    Load the rule table.

    Args:
        path: Rule table file (default: packaged data/rules.yaml)

    Returns:
        Rules in file order (the matcher applies priority ordering)

    Raises:
        ConfigurationError: If the file is missing, unreadable or malformed
    """
    rules_path = path or DEFAULT_RULES_PATH
    try:
        with open(rules_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in rule table {rules_path}: {e}")
    except OSError as e:
        raise ConfigurationError(f"Cannot read rule table {rules_path}: {e}")

    entries = data.get("rules") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ConfigurationError(f"Rule table {rules_path} has no 'rules' list")

    rules = [parse_rule(entry) for entry in entries if isinstance(entry, dict)]

    seen: set[str] = set()
    for rule in rules:
        if rule.id in seen:
            raise ConfigurationError(f"Duplicate rule id '{rule.id}' in {rules_path}")
        seen.add(rule.id)

    logger.debug(f"Loaded {len(rules)} rules from {rules_path}")
    return rules
