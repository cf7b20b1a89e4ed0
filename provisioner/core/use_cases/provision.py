"""
Provision use case — one full run, from config to summary.

This is the top-level orchestrator: it loads config, probes the host,
builds the step table, runs it inside a scoped sudo session, and
builds the summary. The full vertical slice from ``provision`` to the
final report.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from provisioner.adapters.registry import AdapterRegistry
from provisioner.adapters.shell.command import ShellCommandAdapter
from provisioner.core.config.loader import ConfigError, load_config
from provisioner.core.data.step_table import build_step_table, plan_rows
from provisioner.core.engine.runner import PipelineObserver, PipelineResult, run_pipeline
from provisioner.core.models.config import ProvisionConfig
from provisioner.core.models.facts import HostFacts
from provisioner.core.services.host_facts import probe_host_facts
from provisioner.core.services.preflight import PrivilegeSession
from provisioner.core.services.summary import Summary, build_summary

logger = logging.getLogger(__name__)


def _no_sleep(_seconds: float) -> None:
    return None


@dataclass
class ProvisionResult:
    """Result of a provisioning run."""

    config: ProvisionConfig | None = None
    facts: HostFacts | None = None
    pipeline: PipelineResult | None = None
    summary: Summary | None = None
    error: str | None = None

    @property
    def exit_code(self) -> int:
        if self.error:
            return 1
        if self.pipeline is None:
            return 1
        return self.pipeline.exit_code

    @property
    def cancelled(self) -> bool:
        return bool(self.pipeline and self.pipeline.cancelled)

    def to_dict(self) -> dict:
        result: dict = {"exit_code": self.exit_code}
        if self.error:
            result["error"] = self.error
            return result

        if self.facts:
            result["facts"] = self.facts.to_dict()
        if self.pipeline:
            result["pipeline"] = self.pipeline.to_dict()
        if self.summary:
            result["summary"] = self.summary.to_dict()
        return result


@dataclass
class PlanResult:
    """The step table as it would run on this host."""

    config: ProvisionConfig | None = None
    facts: HostFacts | None = None
    rows: list[dict] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "name": self.config.name if self.config else "",
            "facts": self.facts.to_dict() if self.facts else {},
            "steps": self.rows,
        }


def build_registry(
    mock_mode: bool = False,
    is_root: bool = False,
    echo: Callable[[str], None] | None = None,
) -> AdapterRegistry:
    """Registry with the shell adapter (or mock dispatch).

    ``echo`` receives the live output of streaming commands.
    """
    registry = AdapterRegistry(mock_mode=mock_mode, is_root=is_root)
    registry.register(ShellCommandAdapter(echo=echo))
    return registry


def run_provision(
    read_line: Callable[[], str],
    write: Callable[[str], None],
    config_path: Path | None = None,
    observer: PipelineObserver | None = None,
    mock_mode: bool = False,
    registry: AdapterRegistry | None = None,
    facts: HostFacts | None = None,
    sleep: Callable[[float], None] = time.sleep,
    echo: Callable[[str], None] | None = None,
) -> ProvisionResult:
    """Run the full provisioning pipeline.

    Args:
        read_line: Reads the operator's consent answer.
        write: Sink for the consent gate's change list and prompt.
        config_path: Optional explicit path to provision.yml.
        observer: Receives step events (the CLI prints them).
        mock_mode: Dispatch every command to the mock adapter.
        registry: Pre-built registry (tests).
        facts: Pre-probed host facts (tests).
        sleep: Settle pause implementation.
        echo: Sink for the live output of long commands (apt, snap).

    Returns:
        ProvisionResult; ``summary`` is set only when the pipeline
        reached the end of the step list.
    """
    try:
        config = load_config(config_path)
    except ConfigError as e:
        return ProvisionResult(error=str(e))

    if facts is None:
        facts = probe_host_facts(framework_dir=config.shell.framework_dir)

    if registry is None:
        registry = build_registry(mock_mode=mock_mode, is_root=facts.is_root, echo=echo)
    if mock_mode:
        sleep = _no_sleep

    with PrivilegeSession(registry, is_root=facts.is_root) as session:
        steps = build_step_table(
            config, facts, registry, session,
            read_line=read_line, write=write, sleep=sleep,
        )
        logger.info("Running %d steps for '%s'", len(steps), config.name)
        pipeline = run_pipeline(steps, facts, observer)

    summary = build_summary(pipeline, facts) if pipeline.completed else None
    return ProvisionResult(
        config=config,
        facts=facts,
        pipeline=pipeline,
        summary=summary,
    )


def plan_provision(
    config_path: Path | None = None,
    facts: HostFacts | None = None,
) -> PlanResult:
    """Build the step table without running it."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        return PlanResult(error=str(e))

    if facts is None:
        facts = probe_host_facts(framework_dir=config.shell.framework_dir)

    # Nothing executes: the table is only inspected.
    registry = build_registry(mock_mode=True, is_root=facts.is_root)
    session = PrivilegeSession(registry, is_root=facts.is_root)
    steps = build_step_table(
        config, facts, registry, session,
        read_line=lambda: "", write=lambda _line: None,
    )
    return PlanResult(config=config, facts=facts, rows=plan_rows(steps, facts))
