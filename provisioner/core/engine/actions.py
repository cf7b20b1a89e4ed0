"""
Command actions — turn a list of host commands into a step action.

A step's action is a zero-argument callable returning a Receipt. Most
steps are "run these commands in order through the adapter registry,
stop at the first failure", which is what ``command_action`` builds.
"""

from __future__ import annotations

import logging
import shlex
import time
from dataclasses import dataclass, field
from typing import Callable

from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)

PIPELINE_ADAPTER = "pipeline"


@dataclass(frozen=True)
class Command:
    """One host command issued by a step."""

    argv: tuple[str, ...] | str
    sudo: bool = True
    env: dict[str, str] = field(default_factory=dict)
    capture: bool = True
    stream: bool = False

    @property
    def display(self) -> str:
        if isinstance(self.argv, str):
            return self.argv
        return shlex.join(self.argv)

    def to_action(self, step_name: str, index: int) -> Action:
        command = self.argv if isinstance(self.argv, str) else list(self.argv)
        return Action(
            id=f"{step_name}:{index}",
            name=self.display,
            adapter="shell",
            step=step_name,
            params={
                "command": command,
                "sudo": self.sudo,
                "env": dict(self.env),
                "capture": self.capture,
                "stream": self.stream,
            },
        )


def run_commands(
    registry: AdapterRegistry,
    step_name: str,
    commands: list[Command],
) -> Receipt:
    """Run commands in order; the first failure aborts the rest.

    Returns:
        A step-level receipt. On failure its error names the command.
    """
    outputs: list[str] = []
    for index, command in enumerate(commands):
        receipt = registry.execute_action(command.to_action(step_name, index))
        if receipt.failed:
            logger.debug("%s: '%s' failed: %s", step_name, command.display, receipt.error)
            return Receipt.failure(
                adapter=PIPELINE_ADAPTER,
                action_id=step_name,
                error=f"'{command.display}' failed: {receipt.error}",
                metadata={"command": command.display, "index": index},
            )
        if receipt.output:
            outputs.append(receipt.output)

    return Receipt.success(
        adapter=PIPELINE_ADAPTER,
        action_id=step_name,
        output="\n".join(outputs),
        metadata={"commands": len(commands)},
    )


def command_action(
    registry: AdapterRegistry,
    step_name: str,
    commands: list[Command],
    settle_seconds: float = 0,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable[[], Receipt]:
    """Build a step action running ``commands`` through ``registry``.

    Args:
        registry: Dispatch for every command.
        step_name: Owning step (used for action IDs).
        commands: Commands to run in order.
        settle_seconds: Blocking pause after all commands succeed,
            for daemons that need a moment before they accept work.
        sleep: Injected for tests.
    """

    def action() -> Receipt:
        receipt = run_commands(registry, step_name, commands)
        if receipt.ok and settle_seconds > 0:
            logger.debug("%s: waiting %.1fs for the service to settle", step_name, settle_seconds)
            sleep(settle_seconds)
        return receipt

    return action
