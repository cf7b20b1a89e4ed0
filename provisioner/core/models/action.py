"""
Action and Receipt — what a step asks the host to do, and what happened.

A step action turns its commands into Actions and hands them to the
adapter registry one at a time. Every Action comes back as a Receipt:
a failing command is a ``failed`` receipt carrying a one-line
diagnostic, never an exception.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

ReceiptStatus = Literal["ok", "failed"]


class Action(BaseModel):
    """One host command, addressed to an adapter.

    ``id`` is ``"<step>:<index>"`` for step commands and
    ``"preflight:<command>"`` for the privilege checks, so a mock can
    target a single command or a whole step by prefix.

    Params read by the shell adapter:
        command (list[str] | str): argv, or a string run through ``sh``.
        sudo (bool): elevate unless the run is already root.
        env (dict[str, str]): extra variables for the command.
        capture (bool): False leaves the tty to the command (sudo prompt).
        timeout (float | None): seconds before the command is killed.
    """

    id: str
    name: str = ""
    adapter: str = "shell"
    step: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)


class Receipt(BaseModel):
    """Outcome of one Action, or of a whole step action."""

    adapter: str
    action_id: str
    status: ReceiptStatus = "ok"
    output: str = ""
    error: str | None = None
    duration_ms: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(cls, adapter: str, action_id: str, output: str = "", **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, output=output, **kwargs)

    @classmethod
    def failure(cls, adapter: str, action_id: str, error: str, **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="failed", error=error, **kwargs)

