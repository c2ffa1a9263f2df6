"""Test helpers for intentgate.

This package provides utilities for testing the classifier and quality gate:
- Fakes: scripted checkers, validators and repairers
- Assertions: Common assertion helpers for routing directives
"""

from .assertions import (
    assert_directive_targets,
    assert_no_directive,
    iteration_records,
)
from .fakes import FakeChecker, FakeRepairer, ScriptedValidator, make_run

__all__ = [
    # Fakes
    "FakeChecker",
    "FakeRepairer",
    "ScriptedValidator",
    "make_run",
    # Assertions
    "assert_directive_targets",
    "assert_no_directive",
    "iteration_records",
]
