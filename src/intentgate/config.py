"""Intentgate Configuration

Configuration loading with environment variable support and sensible defaults.
The loaded settings are frozen into a ``Configuration`` value once per hook
invocation and passed to every component; nothing else reads the store.

Environment Variables:
    INTENTGATE_CONFIG_PATH: Path to config file (must exist and parse if set)
    INTENTGATE_PROJECT_ROOT: Project root (default: current directory)
    INTENTGATE_DETECTION_MODE: Override detection.mode
    INTENTGATE_VALIDATION_LEVEL: Override validation.level
    INTENTGATE_MAX_ITERATIONS: Override guardian.max_iterations

Config file lookup (first found wins):
    1. INTENTGATE_CONFIG_PATH
    2. <project>/.intentgate/config.yaml
    3. <project>/.claude/intentgate.local.md (YAML frontmatter)

Configuration Schema:
    detection:
        enabled: bool - Master switch (default: true)
        mode: suggest | inject | disabled (default: suggest)
        annoyance_threshold: low | medium | high (default: medium)
        command_prefixes: list - Requests starting with these are already routed
        min_score: int - Scored fallback acceptance threshold (default: 4)
        tdd_threshold: int - TDD signal threshold (default: 3)
        require_project_context: bool - Only suggest workflows inside a project
        rules_path: str - Alternative rule table (YAML)
        namespace: str - Prefix for agent/skill identifiers
    semantic:
        enabled: bool - Use the external classifier (default: false)
        command: str - Classifier executable (default: claude)
        model: str - Model passed to the classifier (default: haiku)
        timeout: float - Wall-clock budget in seconds (default: 10)
        confidence_floor: float - Minimum accepted confidence (default: 0.60)
    validation:
        level: blocking | warning | advisory (default: blocking)
        extensions: list - File extensions the gate applies to
        checkers: list - Ordered checker definitions (see checkers.py)
    guardian:
        max_iterations: int - Validation attempts (default: 3)
        repair_command: str | list - Repair step; none means no repair
        audit_log: str - Append-only audit log path
    logging:
        level: str - Logging level (default: WARNING)

Flat keys named after the configuration options (``detection_enabled``,
``detection_mode``, ``annoyance_threshold``, ``use_semantic_classifier``,
``confidence_floor``, ``validation_level``, ``max_iterations``) are accepted
at the top level as aliases.
"""

import copy
import logging
import os
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional

import yaml

logger = logging.getLogger(__name__)

DetectionMode = Literal["suggest", "inject", "disabled"]
AnnoyanceThreshold = Literal["low", "medium", "high"]
ValidationLevel = Literal["blocking", "warning", "advisory"]

DETECTION_MODES = ("suggest", "inject", "disabled")
ANNOYANCE_THRESHOLDS = ("low", "medium", "high")
VALIDATION_LEVELS = ("blocking", "warning", "advisory")

CONFIG_DIR = ".intentgate"
CONFIG_FILE = "config.yaml"
LOCAL_SETTINGS_FILE = Path(".claude") / "intentgate.local.md"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""
    pass


# Default configuration values
DEFAULT_CONFIG: dict[str, Any] = {
    "detection": {
        "enabled": True,
        "mode": "suggest",
        "annoyance_threshold": "medium",
        "command_prefixes": [
            "/dev",
            "/feature",
            "/debug",
            "/refactor",
            "/intentgate",
        ],
        "min_score": 4,
        "tdd_threshold": 3,
        "require_project_context": True,
        "rules_path": None,  # Use packaged rule table
        "namespace": "rails-dev",
    },
    "semantic": {
        "enabled": False,
        "command": "claude",
        "model": "haiku",
        "timeout": 10.0,
        "confidence_floor": 0.60,
    },
    "validation": {
        "level": "blocking",
        "extensions": [".rb"],
        "checkers": [
            {
                "name": "typecheck",
                "kind": "command",
                "command": ["bundle", "exec", "srb", "tc", "{files}"],
                "probe": ["bundle", "exec", "srb", "--version"],
                "require_marker": "# typed:",
            },
            {
                "name": "lint",
                "kind": "command",
                "command": [
                    "rubocop", "--fail-level", "{fail_level}",
                    "--format", "simple", "{files}",
                ],
            },
            {
                "name": "static_analysis",
                "kind": "command",
                "command": ["solargraph", "check", "{file}"],
                "per_file": True,
                "fail_pattern": "(?i)error",
            },
            {
                "name": "security",
                "kind": "json_findings",
                "command": ["brakeman", "-f", "json", "-q", "--no-pager"],
                "findings_key": "warnings",
                "severity_field": "confidence",
                "fail_severities": ["High"],
            },
        ],
    },
    "guardian": {
        "max_iterations": 3,
        "repair_command": None,  # No repair capability
        "audit_log": ".intentgate/guardian-audit.log",
    },
    "logging": {
        "level": "WARNING",
    },
}

# Flat option name -> (section, key)
FLAT_ALIASES: dict[str, tuple[str, str]] = {
    "detection_enabled": ("detection", "enabled"),
    "detection_mode": ("detection", "mode"),
    "annoyance_threshold": ("detection", "annoyance_threshold"),
    "use_semantic_classifier": ("semantic", "enabled"),
    "confidence_floor": ("semantic", "confidence_floor"),
    "validation_level": ("validation", "level"),
    "max_iterations": ("guardian", "max_iterations"),
}

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "INTENTGATE_DETECTION_MODE": ("detection", "mode"),
    "INTENTGATE_VALIDATION_LEVEL": ("validation", "level"),
    "INTENTGATE_MAX_ITERATIONS": ("guardian", "max_iterations"),
}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge override dict into base dict.

    Args:
        base: Base dictionary (defaults)
        override: Override dictionary (user config)

    Returns:
        Merged dictionary with override values taking precedence
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _resolve_path(path: Optional[str], base_dir: Path) -> Optional[Path]:
    """Resolve a path, making relative paths absolute from base_dir."""
    if path is None:
        return None

    path_obj = Path(path)
    if path_obj.is_absolute():
        return path_obj
    return (base_dir / path_obj).resolve()


def _apply_flat_aliases(file_config: dict[str, Any]) -> dict[str, Any]:
    """Move flat option names into their nested sections."""
    nested = {k: v for k, v in file_config.items() if k not in FLAT_ALIASES}
    for flat_key, (section, key) in FLAT_ALIASES.items():
        if flat_key in file_config:
            section_dict = nested.get(section)
            if not isinstance(section_dict, dict):
                section_dict = {}
            nested[section] = {**section_dict, key: file_config[flat_key]}
    return nested


def parse_frontmatter(content: str) -> dict[str, Any]:
    """
    Extract the YAML frontmatter block from a Markdown settings file.

    Returns:
        Parsed frontmatter, empty dict when the file has none

    Raises:
        yaml.YAMLError: If the frontmatter is not valid YAML
    """
    match = re.match(r"^---\s*\n(.*?)\n---\s*(?:\n|$)", content, re.DOTALL)
    if not match:
        return {}
    data = yaml.safe_load(match.group(1)) or {}
    return data if isinstance(data, dict) else {}


def _read_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML or Markdown-frontmatter config file."""
    with open(path, "r", encoding="utf-8") as f:
        content = f.read()

    if path.suffix == ".md":
        data = parse_frontmatter(content)
    else:
        data = yaml.safe_load(content) or {}

    if not isinstance(data, dict):
        raise yaml.YAMLError(f"top-level value must be a mapping, got {type(data).__name__}")
    return _apply_flat_aliases(data)


def get_project_root() -> Path:
    """Get project root from INTENTGATE_PROJECT_ROOT or the current directory."""
    override = os.environ.get("INTENTGATE_PROJECT_ROOT")
    if override:
        return Path(override)
    return Path.cwd()


def find_config_file(project_root: Path) -> Optional[Path]:
    """Return the first default config file present under project_root."""
    for candidate in (project_root / CONFIG_DIR / CONFIG_FILE, project_root / LOCAL_SETTINGS_FILE):
        if candidate.exists():
            return candidate
    return None


def load_config(
    config_path: Optional[str] = None,
    project_root: Optional[Path] = None,
) -> dict[str, Any]:
    """
    Load configuration from file with environment variable overrides.

    Configuration Loading Order (later overrides earlier):
    1. Default values (DEFAULT_CONFIG)
    2. Config file (explicit path, INTENTGATE_CONFIG_PATH, or default location)
    3. Environment variable overrides

    Args:
        config_path: Explicit config file path (overrides INTENTGATE_CONFIG_PATH)
        project_root: Project directory for relative path resolution

    Returns:
        Merged configuration dictionary

    Raises:
        ConfigurationError: If an explicitly requested config file is unreadable
            or invalid YAML
    """
    if project_root is None:
        project_root = get_project_root()

    config = copy.deepcopy(DEFAULT_CONFIG)

    file_path = config_path or os.environ.get("INTENTGATE_CONFIG_PATH")

    if file_path:
        # Explicit config path - must be valid if it exists
        resolved_path = _resolve_path(file_path, project_root)
        if resolved_path and resolved_path.exists():
            try:
                config = _deep_merge(config, _read_config_file(resolved_path))
                logger.info(f"Loaded configuration from: {resolved_path}")
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in config file {resolved_path}: {e}")
            except OSError as e:
                raise ConfigurationError(f"Cannot read config file {resolved_path}: {e}")
        else:
            logger.warning(f"Config file not found (using defaults): {file_path}")
    else:
        default_path = find_config_file(project_root)
        if default_path is not None:
            try:
                config = _deep_merge(config, _read_config_file(default_path))
                logger.info(f"Loaded configuration from: {default_path}")
            except yaml.YAMLError as e:
                logger.warning(f"Invalid YAML in {default_path} (ignoring): {e}")
            except OSError as e:
                logger.warning(f"Cannot read {default_path} (ignoring): {e}")
        else:
            logger.debug("No config file found, using defaults")

    for env_var, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            config.setdefault(section, {})[key] = value
            logger.info(f"{section}.{key} override from env: {value}")

    return config


def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
    section = config.get(name)
    if isinstance(section, dict):
        return {**DEFAULT_CONFIG[name], **section}
    if section is not None:
        logger.warning(f"Config section '{name}' is not a mapping (using defaults)")
    return dict(DEFAULT_CONFIG[name])


def _as_bool(value: Any, default: bool, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "on", "1"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "off", "0"):
        return False
    logger.warning(f"Invalid boolean for {key}: {value!r} (using {default})")
    return default


def _as_choice(value: Any, choices: tuple[str, ...], default: str, key: str) -> str:
    normalized = str(value).strip().lower() if value is not None else ""
    if normalized in choices:
        return normalized
    logger.warning(f"Invalid value for {key}: {value!r} (using {default})")
    return default


def _as_number(
    value: Any,
    default: float,
    key: str,
    minimum: float,
    maximum: Optional[float] = None,
) -> float:
    try:
        if isinstance(value, bool):
            raise TypeError("boolean is not a number")
        number = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid number for {key}: {value!r} (using {default})")
        return default
    if number < minimum or (maximum is not None and number > maximum):
        logger.warning(f"Out of range value for {key}: {number} (using {default})")
        return default
    return number


def _as_argv(value: Any, key: str) -> Optional[tuple[str, ...]]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return tuple(shlex.split(value))
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return tuple(value)
    logger.warning(f"Invalid command for {key}: {value!r} (ignoring)")
    return None


def _as_str_tuple(value: Any, default: list[str], key: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return tuple(value)
    logger.warning(f"Invalid list for {key}: {value!r} (using defaults)")
    return tuple(default)


@dataclass(frozen=True)
class Configuration:
    """Read-only settings for one detection or validation cycle."""

    detection_enabled: bool = True
    detection_mode: DetectionMode = "suggest"
    annoyance_threshold: AnnoyanceThreshold = "medium"
    use_semantic_classifier: bool = False
    confidence_floor: float = 0.60
    validation_level: ValidationLevel = "blocking"
    max_iterations: int = 3

    command_prefixes: tuple[str, ...] = tuple(DEFAULT_CONFIG["detection"]["command_prefixes"])
    min_score: int = 4
    tdd_threshold: int = 3
    require_project_context: bool = True
    rules_path: Optional[Path] = None
    namespace: str = "rails-dev"

    semantic_command: str = "claude"
    semantic_model: str = "haiku"
    semantic_timeout: float = 10.0

    file_extensions: tuple[str, ...] = (".rb",)
    checkers: tuple[dict[str, Any], ...] = tuple(DEFAULT_CONFIG["validation"]["checkers"])
    repair_command: Optional[tuple[str, ...]] = None
    audit_log_path: Path = Path(DEFAULT_CONFIG["guardian"]["audit_log"])

    project_root: Path = field(default_factory=Path.cwd)
    log_level: str = "WARNING"

    @property
    def detection_active(self) -> bool:
        return self.detection_enabled and self.detection_mode != "disabled"

    @classmethod
    def from_dict(
        cls,
        config: dict[str, Any],
        project_root: Optional[Path] = None,
    ) -> "Configuration":
        """
        Build a Configuration from a merged config dictionary.

        Invalid values fall back to their defaults with a logged warning;
        this never raises.
        """
        if project_root is None:
            project_root = get_project_root()

        detection = _section(config, "detection")
        semantic = _section(config, "semantic")
        validation = _section(config, "validation")
        guardian = _section(config, "guardian")
        logging_cfg = _section(config, "logging")

        checkers = validation.get("checkers")
        if not isinstance(checkers, list) or not all(isinstance(c, dict) for c in checkers):
            logger.warning("validation.checkers must be a list of mappings (using defaults)")
            checkers = DEFAULT_CONFIG["validation"]["checkers"]

        rules_path = detection.get("rules_path")
        audit_log = guardian.get("audit_log") or DEFAULT_CONFIG["guardian"]["audit_log"]

        return cls(
            detection_enabled=_as_bool(detection.get("enabled"), True, "detection.enabled"),
            detection_mode=_as_choice(
                detection.get("mode"), DETECTION_MODES, "suggest", "detection.mode"
            ),
            annoyance_threshold=_as_choice(
                detection.get("annoyance_threshold"),
                ANNOYANCE_THRESHOLDS,
                "medium",
                "detection.annoyance_threshold",
            ),
            use_semantic_classifier=_as_bool(semantic.get("enabled"), False, "semantic.enabled"),
            confidence_floor=_as_number(
                semantic.get("confidence_floor"), 0.60, "semantic.confidence_floor", 0.0, 1.0
            ),
            validation_level=_as_choice(
                validation.get("level"), VALIDATION_LEVELS, "blocking", "validation.level"
            ),
            max_iterations=int(
                _as_number(guardian.get("max_iterations"), 3, "guardian.max_iterations", 1)
            ),
            command_prefixes=_as_str_tuple(
                detection.get("command_prefixes"),
                DEFAULT_CONFIG["detection"]["command_prefixes"],
                "detection.command_prefixes",
            ),
            min_score=int(_as_number(detection.get("min_score"), 4, "detection.min_score", 0)),
            tdd_threshold=int(
                _as_number(detection.get("tdd_threshold"), 3, "detection.tdd_threshold", 0)
            ),
            require_project_context=_as_bool(
                detection.get("require_project_context"),
                True,
                "detection.require_project_context",
            ),
            rules_path=_resolve_path(rules_path, project_root) if rules_path else None,
            namespace=str(detection.get("namespace") or "rails-dev"),
            semantic_command=str(semantic.get("command") or "claude"),
            semantic_model=str(semantic.get("model") or "haiku"),
            semantic_timeout=_as_number(semantic.get("timeout"), 10.0, "semantic.timeout", 0.1),
            file_extensions=_as_str_tuple(
                validation.get("extensions"),
                DEFAULT_CONFIG["validation"]["extensions"],
                "validation.extensions",
            ),
            checkers=tuple(checkers),
            repair_command=_as_argv(guardian.get("repair_command"), "guardian.repair_command"),
            audit_log_path=_resolve_path(audit_log, project_root),
            project_root=project_root,
            log_level=str(logging_cfg.get("level") or "WARNING").upper(),
        )


def load_configuration(
    config_path: Optional[str] = None,
    project_root: Optional[Path] = None,
) -> Configuration:
    """Load the config store and freeze it into a Configuration value."""
    if project_root is None:
        project_root = get_project_root()
    return Configuration.from_dict(load_config(config_path, project_root), project_root)


def configure_logging(level: str = "WARNING") -> None:
    """Send log records to stderr; stdout is reserved for hook output."""
    numeric_level = getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    logging.getLogger().setLevel(numeric_level)
