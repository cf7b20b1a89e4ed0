"""
Summary reporter — the final report of a completed run.

Pure: built from a PipelineResult and HostFacts, no side effects. The
CLI decides how to print it (styled text or JSON).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from provisioner.core.engine.runner import PipelineResult
from provisioner.core.models.facts import HostFacts
from provisioner.core.models.step import StepOutcome

REBOOT_ACTION = "Reboot your system: sudo reboot"

OUTCOME_MARKERS: dict[StepOutcome, str] = {
    StepOutcome.SUCCESS: "✓",
    StepOutcome.FAILED_NON_FATAL: "⚠",
    StepOutcome.FAILED_FATAL: "✗",
    StepOutcome.SKIPPED: "⊘",
}

OUTCOME_LABELS: dict[StepOutcome, str] = {
    StepOutcome.SUCCESS: "done",
    StepOutcome.FAILED_NON_FATAL: "failed (non-fatal)",
    StepOutcome.FAILED_FATAL: "failed",
    StepOutcome.SKIPPED: "skipped",
}


@dataclass
class SummaryLine:
    name: str
    title: str
    outcome: StepOutcome
    error: str | None = None

    @property
    def marker(self) -> str:
        return OUTCOME_MARKERS[self.outcome]

    @property
    def label(self) -> str:
        return OUTCOME_LABELS[self.outcome]


@dataclass
class Summary:
    """What the operator sees at the end of a run."""

    host: str = ""
    status: str = "ok"
    lines: list[SummaryLine] = field(default_factory=list)
    succeeded: int = 0
    warnings: int = 0
    skipped: int = 0
    manual_actions: list[str] = field(default_factory=list)

    @property
    def headline(self) -> str:
        if self.status == "ok":
            return "Setup complete!"
        if self.status == "partial":
            return "Setup complete with warnings"
        return "Setup did not complete"

    def to_dict(self) -> dict:
        return {
            "host": self.host,
            "status": self.status,
            "headline": self.headline,
            "succeeded": self.succeeded,
            "warnings": self.warnings,
            "skipped": self.skipped,
            "steps": [
                {"name": ln.name, "outcome": ln.outcome.value, "error": ln.error}
                for ln in self.lines
            ],
            "manual_actions": list(self.manual_actions),
        }


def _host_label(facts: HostFacts) -> str:
    label = facts.os_name or f"{facts.os_id} {facts.os_version}".strip()
    if facts.has_nvidia_gpu:
        gpu = facts.gpu_model or "NVIDIA GPU"
        label = f"{label} · {gpu}" if label else gpu
    return label


def build_summary(result: PipelineResult, facts: HostFacts) -> Summary:
    """Assemble the summary for ``result``.

    Manual actions: the reboot reminder first, then the follow-ups the
    runner attached to succeeded steps and failed non-fatal steps, in
    step order, without duplicates.
    """
    summary = Summary(
        host=_host_label(facts),
        status=result.status,
        succeeded=result.succeeded,
        warnings=result.warnings,
        skipped=result.skipped,
    )

    for record in result.executed:
        summary.lines.append(
            SummaryLine(
                name=record.name,
                title=record.title or record.name,
                outcome=record.outcome,
                error=record.error,
            )
        )

    actions = [REBOOT_ACTION]
    for record in result.executed:
        for follow_up in record.follow_ups:
            if follow_up not in actions:
                actions.append(follow_up)
    summary.manual_actions = actions

    return summary


def format_summary(summary: Summary) -> str:
    """Render a summary as plain text."""
    out: list[str] = [summary.headline]
    if summary.host:
        out.append(f"  Host: {summary.host}")
    out.append("")

    width = max((len(ln.name) for ln in summary.lines), default=0)
    for ln in summary.lines:
        row = f"  {ln.marker} {ln.name.ljust(width)}  {ln.label}"
        if ln.error and ln.outcome == StepOutcome.FAILED_NON_FATAL:
            row += f" — {ln.error}"
        out.append(row)

    out.append("")
    out.append(
        f"  {summary.succeeded} done, {summary.warnings} warnings, "
        f"{summary.skipped} skipped"
    )

    if summary.manual_actions:
        out.append("")
        out.append("Next steps:")
        for i, action in enumerate(summary.manual_actions, start=1):
            out.append(f"  {i}. {action}")

    return "\n".join(out)
