"""
Guardian Loop

Bounded validate -> repair -> validate controller.

State machine:

    VALIDATING --pass--------------------------------------> PASSED
    VALIDATING --fail, repairer, iteration < max_iterations-> REPAIRING
    VALIDATING --fail, otherwise---------------------------> EXHAUSTED
    REPAIRING  --repaired (iteration += 1)-----------------> VALIDATING
    REPAIRING  --repair error------------------------------> ABORTED
    any        --cancelled / interrupted-------------------> ABORTED

Validating is visited at most ``max_iterations`` times. Every exit from
Validating appends an ``iteration`` audit record and every exit from
Repairing appends a ``repair`` record, before the transition happens.
"""

import logging
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Protocol, Sequence

from intentgate.audit import AuditLog, truncate
from intentgate.config import Configuration
from intentgate.models import ValidationRun
from intentgate.validation import validate

logger = logging.getLogger(__name__)

DEFAULT_REPAIR_TIMEOUT = 300.0


class GuardianState(str, Enum):
    VALIDATING = "validating"
    REPAIRING = "repairing"
    PASSED = "passed"
    EXHAUSTED = "exhausted"
    ABORTED = "aborted"


class RepairError(Exception):
    """Raised when the repair step cannot run."""
    pass


class GuardianExhausted(Exception):
    """Raised by GuardianReport.raise_for_status() for unresolved failures."""

    def __init__(self, report: "GuardianReport"):
        super().__init__(
            f"Guardian {report.state.value} after {report.iterations} iteration(s): "
            f"failed checkers {report.failed_checkers}"
        )
        self.report = report


class Repairer(Protocol):
    """Something that attempts to fix the findings of a failed run."""

    def repair(self, run: ValidationRun) -> None:
        ...


# (files, iteration) -> ValidationRun
Validator = Callable[[list[str], int], ValidationRun]


class CommandRepairer:
    """
    Runs a configured repair command, e.g. ``rubocop -a {files}``.

    A non-zero exit is not an error: the next validation decides whether
    the repair worked. A missing executable or a timeout is.
    """

    def __init__(self, command: Sequence[str], timeout: float = DEFAULT_REPAIR_TIMEOUT):
        self.command = list(command)
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Configuration) -> Optional["CommandRepairer"]:
        if not config.repair_command:
            return None
        return cls(config.repair_command)

    def expand(self, files: list[str]) -> list[str]:
        argv = []
        for token in self.command:
            if token == "{files}":
                argv.extend(files)
            else:
                argv.append(token)
        return argv

    def repair(self, run: ValidationRun) -> None:
        argv = self.expand(run.files)
        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise RepairError(f"repair timed out after {self.timeout:g}s")
        except OSError as e:
            raise RepairError(f"cannot run {argv[0]}: {e}")

        if completed.returncode != 0:
            logger.info(f"Repair command exited {completed.returncode}")


@dataclass
class GuardianReport:
    """Outcome of one guardian cycle."""

    state: GuardianState
    runs: list[ValidationRun] = field(default_factory=list)
    feature_id: Optional[str] = None
    reason: str = ""

    @property
    def iterations(self) -> int:
        return len(self.runs)

    @property
    def final_run(self) -> Optional[ValidationRun]:
        return self.runs[-1] if self.runs else None

    @property
    def passed(self) -> bool:
        return self.state == GuardianState.PASSED

    @property
    def failed_checkers(self) -> list[str]:
        return self.final_run.failed_checkers if self.final_run else []

    def raise_for_status(self) -> None:
        """Raise GuardianExhausted unless the cycle passed."""
        if not self.passed:
            raise GuardianExhausted(self)

    def manual_intervention_report(self) -> str:
        """Summary of the final iteration for a human to pick up."""
        lines = [
            f"Guardian {self.state.value} after {self.iterations} iteration(s)"
            + (f": {self.reason}" if self.reason else ""),
        ]
        if self.feature_id:
            lines.append(f"Feature: {self.feature_id}")

        run = self.final_run
        if run is None:
            lines.append("No validation run completed.")
            return "\n".join(lines)

        lines.append(f"Checkers run: {', '.join(run.ran_checkers) or 'none'}")
        lines.append(f"Checkers failed: {', '.join(run.failed_checkers) or 'none'}")
        if run.skipped_checkers:
            lines.append(f"Checkers skipped: {', '.join(run.skipped_checkers)}")

        for name in run.failed_checkers:
            lines.extend(["", f"--- {name} ---", run.checker_results[name].diagnostics or "(no output)"])

        if not self.passed:
            lines.extend(["", "Manual intervention required."])
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "iterations": self.iterations,
            "feature_id": self.feature_id,
            "reason": self.reason,
            "final_run": self.final_run.to_dict() if self.final_run else None,
        }


class GuardianLoop:
    """
    Validate/repair controller.

    Attributes:
        config: Active configuration (max_iterations, validation level)
        validator: Runs one validation pass
        repairer: Repair capability; None means failures are final
        audit_log: Audit trail (None disables auditing)
        should_cancel: Polled before each stage; True aborts the cycle
    """

    def __init__(
        self,
        config: Configuration,
        validator: Optional[Validator] = None,
        repairer: Optional[Repairer] = None,
        audit_log: Optional[AuditLog] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
        feature_id: Optional[str] = None,
    ):
        self.config = config
        self.validator = validator or (
            lambda files, iteration: validate(files, config, iteration=iteration)
        )
        self.repairer = repairer
        self.audit_log = audit_log
        self.should_cancel = should_cancel or (lambda: False)
        self.feature_id = feature_id

    @classmethod
    def from_config(cls, config: Configuration, **kwargs: Any) -> "GuardianLoop":
        """Loop with the configured repair command and audit log."""
        kwargs.setdefault("repairer", CommandRepairer.from_config(config))
        kwargs.setdefault("audit_log", AuditLog(config.audit_log_path))
        return cls(config, **kwargs)

    def _record(self, record: dict[str, Any]) -> None:
        if self.audit_log is None:
            return
        if self.feature_id:
            record["feature_id"] = self.feature_id
        try:
            self.audit_log.append(record)
        except OSError as e:
            logger.error(f"Cannot write audit record to {self.audit_log.path}: {e}")

    def _iteration_record(self, run: ValidationRun, next_state: GuardianState, action: str) -> dict[str, Any]:
        return {
            "type": "iteration",
            "iteration": run.iteration,
            "state": GuardianState.VALIDATING.value,
            "next_state": next_state.value,
            "action": action,
            "overall_status": run.overall_status.value,
            "checkers": {
                name: {"status": r.status.value, "diagnostics": truncate(r.diagnostics)}
                for name, r in run.checker_results.items()
            },
        }

    def _abort(self, runs: list[ValidationRun], state: GuardianState, iteration: int, reason: str) -> GuardianReport:
        logger.warning(f"Guardian aborted in {state.value} at iteration {iteration}: {reason}")
        self._record({
            "type": "abort",
            "iteration": iteration,
            "state": state.value,
            "next_state": GuardianState.ABORTED.value,
            "action": reason,
        })
        return GuardianReport(GuardianState.ABORTED, runs, self.feature_id, reason)

    def _next_state(self, run: ValidationRun) -> tuple[GuardianState, str]:
        if run.passed:
            return GuardianState.PASSED, "all checkers passed"
        if self.repairer is None:
            return GuardianState.EXHAUSTED, "no repair capability"
        if run.iteration >= self.config.max_iterations:
            return GuardianState.EXHAUSTED, "max iterations reached"
        return GuardianState.REPAIRING, "attempting repair"

    def run(self, files: list[str]) -> GuardianReport:
        """
        Drive the state machine to a terminal state.

        Args:
            files: Files to validate on every iteration

        Returns:
            GuardianReport in state passed, exhausted or aborted
        """
        runs: list[ValidationRun] = []
        state = GuardianState.VALIDATING
        iteration = 1

        try:
            while True:
                state = GuardianState.VALIDATING
                if self.should_cancel():
                    return self._abort(runs, state, iteration, "cancelled")

                run = self.validator(list(files), iteration)
                run.iteration = iteration
                runs.append(run)

                next_state, action = self._next_state(run)
                self._record(self._iteration_record(run, next_state, action))
                logger.info(f"Guardian iteration {iteration}: {run.overall_status.value} -> {next_state.value}")

                if next_state != GuardianState.REPAIRING:
                    reason = "" if next_state == GuardianState.PASSED else action
                    return GuardianReport(next_state, runs, self.feature_id, reason)

                state = GuardianState.REPAIRING
                if self.should_cancel():
                    return self._abort(runs, state, iteration, "cancelled")

                try:
                    self.repairer.repair(run)
                except RepairError as e:
                    self._record({
                        "type": "repair",
                        "iteration": iteration,
                        "state": state.value,
                        "next_state": GuardianState.ABORTED.value,
                        "action": f"repair failed: {e}",
                    })
                    return GuardianReport(GuardianState.ABORTED, runs, self.feature_id, f"repair failed: {e}")

                self._record({
                    "type": "repair",
                    "iteration": iteration,
                    "state": state.value,
                    "next_state": GuardianState.VALIDATING.value,
                    "action": "repair applied",
                    "failed_checkers": run.failed_checkers,
                })
                iteration += 1
        except KeyboardInterrupt:
            return self._abort(runs, state, iteration, "interrupted")
