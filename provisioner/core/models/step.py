"""
Step models — one unit of the provisioning pipeline and its outcome.

A Step is configuration: a name, a zero-argument action, and the
failure policy the runner applies to it. A StepRecord is what the
runner writes down after looking at a step.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable

from pydantic import BaseModel, Field

from provisioner.core.models.action import Receipt

if TYPE_CHECKING:
    from provisioner.core.models.facts import HostFacts


class StepOutcome(str, Enum):
    """How a step ended."""

    SUCCESS = "success"
    FAILED_FATAL = "failed_fatal"
    FAILED_NON_FATAL = "failed_non_fatal"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Step:
    """A named pipeline step.

    Attributes:
        name: Stable identifier (e.g. ``update-system``).
        title: Text announced when the step starts.
        action: Zero-argument callable returning a Receipt.
        fatal: Abort the pipeline when the action fails.
        guard: Predicate over HostFacts; False records the step as skipped.
        gate: Runs before any mutation (preflight, consent).
        description: Line shown to the operator by the consent gate.
        follow_ups: Manual actions reported when the step succeeds.
        failure_hints: Manual actions reported when a non-fatal step fails.
    """

    name: str
    title: str
    action: Callable[[], Receipt]
    fatal: bool = True
    guard: Callable[[HostFacts], bool] | None = None
    gate: bool = False
    description: str = ""
    follow_ups: tuple[str, ...] = ()
    failure_hints: tuple[str, ...] = ()

    @property
    def guarded(self) -> bool:
        return self.guard is not None

    def applies_to(self, facts: HostFacts) -> bool:
        """Evaluate the guard (unguarded steps always apply)."""
        if self.guard is None:
            return True
        return bool(self.guard(facts))


class StepRecord(BaseModel):
    """The runner's entry for one step it looked at."""

    name: str
    title: str = ""
    outcome: StepOutcome
    error: str | None = None
    duration_ms: int = 0
    follow_ups: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.outcome == StepOutcome.SUCCESS

    @property
    def failed(self) -> bool:
        return self.outcome in (StepOutcome.FAILED_FATAL, StepOutcome.FAILED_NON_FATAL)
