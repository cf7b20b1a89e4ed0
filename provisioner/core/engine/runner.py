"""
Pipeline runner — the sequential, fail-fast step loop.

The runner takes the ordered step table and the host facts, executes
one step at a time, and classifies every step it looks at:

    guard false            → skipped            (action never called)
    guard raises           → failed per the step's fatal/non-fatal policy
    action succeeds        → success
    action fails, fatal    → failed_fatal       (halt, exit 1)
    action fails, non-fatal→ failed_non_fatal   (warn, continue)

Gate steps (preflight, consent) run before any mutation. A gate that
raises ends the run before the pipeline begins: OperatorDeclined is a
clean cancellation, any other GateError is a failed run. Nothing raised
by a step escapes this module.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from provisioner.core.errors import GateError, OperatorDeclined, StepActionFailed
from provisioner.core.models.action import Receipt
from provisioner.core.models.facts import HostFacts
from provisioner.core.models.step import Step, StepOutcome, StepRecord

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything the runner recorded during one run."""

    executed: list[StepRecord] = field(default_factory=list)
    cancelled: bool = False
    error: str | None = None

    @property
    def total(self) -> int:
        return len(self.executed)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.executed if r.outcome == StepOutcome.SUCCESS)

    @property
    def warnings(self) -> int:
        return sum(1 for r in self.executed if r.outcome == StepOutcome.FAILED_NON_FATAL)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.executed if r.outcome == StepOutcome.SKIPPED)

    @property
    def fatal_record(self) -> StepRecord | None:
        for record in self.executed:
            if record.outcome == StepOutcome.FAILED_FATAL:
                return record
        return None

    @property
    def halted(self) -> bool:
        """Stopped by a failed gate or a fatal step."""
        return self.error is not None

    @property
    def completed(self) -> bool:
        """Reached the end of the step list."""
        return not self.halted and not self.cancelled

    @property
    def outcomes(self) -> list[StepOutcome]:
        return [r.outcome for r in self.executed]

    @property
    def status(self) -> str:
        if self.cancelled:
            return "cancelled"
        if self.halted:
            return "failed"
        if self.warnings:
            return "partial"
        return "ok"

    @property
    def exit_code(self) -> int:
        return 1 if self.halted else 0

    def get(self, name: str) -> StepRecord | None:
        for record in self.executed:
            if record.name == name:
                return record
        return None

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "exit_code": self.exit_code,
            "cancelled": self.cancelled,
            "error": self.error,
            "total": self.total,
            "succeeded": self.succeeded,
            "warnings": self.warnings,
            "skipped": self.skipped,
            "steps": [r.model_dump(mode="json") for r in self.executed],
        }


class PipelineObserver:
    """Receives step events as they happen. Default: ignore them."""

    def step_started(self, step: Step) -> None:
        pass

    def step_finished(self, step: Step, record: StepRecord) -> None:
        pass


def validate_step_order(steps: list[Step]) -> None:
    """Reject tables with duplicate names or a gate after a mutating step."""
    seen: set[str] = set()
    mutating_seen = False
    for step in steps:
        if step.name in seen:
            raise ValueError(f"Duplicate step name: {step.name}")
        seen.add(step.name)
        if step.gate and mutating_seen:
            raise ValueError(f"Gate step '{step.name}' must run before every mutating step")
        if not step.gate:
            mutating_seen = True


def _invoke(step: Step) -> Receipt:
    """Call the step's action, folding exceptions into a failure receipt.

    GateErrors from gate steps are re-raised for the caller to end the run.
    """
    try:
        receipt = step.action()
    except GateError:
        if step.gate:
            raise
        return Receipt.failure(adapter="pipeline", action_id=step.name,
                               error="gate error raised outside a gate step")
    except StepActionFailed as e:
        return Receipt.failure(adapter="pipeline", action_id=step.name,
                               error=e.diagnostic or str(e))
    except Exception as e:
        logger.debug("Step %s raised", step.name, exc_info=True)
        return Receipt.failure(adapter="pipeline", action_id=step.name,
                               error=f"{type(e).__name__}: {e}")

    if not isinstance(receipt, Receipt):
        return Receipt.failure(
            adapter="pipeline",
            action_id=step.name,
            error=f"action returned {type(receipt).__name__}, expected Receipt",
        )
    return receipt


def _check_guard(step: Step, facts: HostFacts) -> tuple[bool, str | None]:
    """Evaluate the guard. A guard that raises counts as applying and
    yields a diagnostic, so the step fails under its own policy.
    """
    try:
        return step.applies_to(facts), None
    except Exception as e:
        logger.debug("Guard of %s raised", step.name, exc_info=True)
        return True, f"guard raised {type(e).__name__}: {e}"


def run_pipeline(
    steps: list[Step],
    facts: HostFacts,
    observer: PipelineObserver | None = None,
) -> PipelineResult:
    """Execute ``steps`` in order against ``facts``.

    Args:
        steps: The ordered step table.
        facts: Host snapshot consulted by guards.
        observer: Optional listener for step events.

    Returns:
        PipelineResult with one record per step looked at.
    """
    validate_step_order(steps)
    observer = observer or PipelineObserver()
    result = PipelineResult()

    for step in steps:
        applies, guard_error = _check_guard(step, facts)
        if not applies:
            record = StepRecord(name=step.name, title=step.title, outcome=StepOutcome.SKIPPED)
            result.executed.append(record)
            logger.info("⊘ %s → skipped (guard not met)", step.name)
            observer.step_finished(step, record)
            continue

        logger.info("→ %s", step.name)
        observer.step_started(step)
        start = time.monotonic()

        if guard_error is not None:
            receipt = Receipt.failure(adapter="pipeline", action_id=step.name, error=guard_error)
        else:
            try:
                receipt = _invoke(step)
            except OperatorDeclined as e:
                logger.info("Operator declined at %s: %s", step.name, e)
                result.cancelled = True
                return result
            except GateError as e:
                logger.info("Gate %s stopped the run: %s", step.name, e.describe())
                result.error = e.describe()
                return result

        elapsed_ms = int((time.monotonic() - start) * 1000)

        if receipt.ok:
            record = StepRecord(
                name=step.name,
                title=step.title,
                outcome=StepOutcome.SUCCESS,
                duration_ms=elapsed_ms,
                follow_ups=list(step.follow_ups),
            )
            result.executed.append(record)
            logger.info("✓ %s → success", step.name)
            observer.step_finished(step, record)
            continue

        failure = StepActionFailed(step.name, receipt.error or "action reported failure")

        if step.fatal:
            record = StepRecord(
                name=step.name,
                title=step.title,
                outcome=StepOutcome.FAILED_FATAL,
                error=failure.diagnostic,
                duration_ms=elapsed_ms,
            )
            result.executed.append(record)
            result.error = failure.describe()
            logger.info("✗ %s", result.error)
            observer.step_finished(step, record)
            return result

        record = StepRecord(
            name=step.name,
            title=step.title,
            outcome=StepOutcome.FAILED_NON_FATAL,
            error=failure.diagnostic,
            duration_ms=elapsed_ms,
            follow_ups=list(step.failure_hints),
        )
        result.executed.append(record)
        logger.info("⚠ %s (continuing)", failure.describe())
        observer.step_finished(step, record)

    return result
