"""Shared pytest fixtures for intentgate tests.

Unit tests never call real external tools: checkers, the semantic classifier
CLI and git are replaced with fakes or patched subprocess calls.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from intentgate.config import ENV_OVERRIDES, Configuration
from intentgate.rules import load_rules

# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove intentgate environment variables set outside the test."""
    for name in (*ENV_OVERRIDES, "INTENTGATE_CONFIG_PATH", "INTENTGATE_PROJECT_ROOT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def temp_project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Empty project directory used as working directory and project root."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("INTENTGATE_PROJECT_ROOT", str(tmp_path))
    return tmp_path


@pytest.fixture
def rails_project(temp_project: Path) -> Path:
    """Project directory that looks like a Rails application."""
    (temp_project / "Gemfile").write_text(
        'source "https://rubygems.org"\ngem "rails", "~> 7.1"\n'
    )
    return temp_project


@pytest.fixture
def write_file(temp_project: Path) -> Callable[..., Path]:
    """Factory writing a file below the project root."""

    def _write(relative: str, content: str = "") -> Path:
        path = temp_project / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    return _write


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., Configuration]:
    """Factory for Configuration values rooted at tmp_path."""

    def _make(**overrides: Any) -> Configuration:
        overrides.setdefault("project_root", tmp_path)
        overrides.setdefault("audit_log_path", tmp_path / ".intentgate" / "guardian-audit.log")
        return Configuration(**overrides)

    return _make


@pytest.fixture
def config(make_config: Callable[..., Configuration]) -> Configuration:
    """Default configuration."""
    return make_config()


@pytest.fixture(scope="session")
def rules():
    """Packaged rule table."""
    return load_rules()
