"""
Adapter protocol — how a host command actually gets run.

The registry hands an adapter an ExecutionContext and gets a Receipt
back. Adapters report failure through the Receipt; raising is a bug
the registry still contains.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from provisioner.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """One Action plus the run-wide facts an adapter needs."""

    action: Action
    is_root: bool = False

    @property
    def step(self) -> str | None:
        return self.action.step


class Adapter(ABC):
    """Base class for command adapters (shell, mock)."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Name Actions use in their ``adapter`` field."""

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Check the Action's params before running it.

        Returns:
            (valid, reason); ``reason`` is empty when valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Run the Action. Failures go in the Receipt, not an exception."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
