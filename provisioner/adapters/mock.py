"""
Mock adapter — stands in for the shell during ``--mock`` runs and tests.

Every Action succeeds unless told otherwise. Failures can be scripted
for one command (``set_failure("snap-vlc:0")``) or for every command of
a step (``fail_prefix("update-system:")``), and every call is logged so
tests can check exactly what a step would have run.
"""

from __future__ import annotations

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt


class MockAdapter(Adapter):
    """Scriptable adapter that records instead of executing."""

    def __init__(
        self,
        adapter_name: str = "mock",
        default_output: str = "[mock] executed",
    ):
        self._name = adapter_name
        self._default_output = default_output
        self._scripted: dict[str, Receipt] = {}
        self._failing_prefixes: dict[str, str] = {}
        self.call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_count(self) -> int:
        return len(self.call_log)

    def calls_for_step(self, step: str) -> list[ExecutionContext]:
        return [ctx for ctx in self.call_log if ctx.step == step]

    def set_response(self, action_id: str, receipt: Receipt) -> None:
        self._scripted[action_id] = receipt

    def set_failure(self, action_id: str, error: str = "Mock failure") -> None:
        self.set_response(
            action_id,
            Receipt.failure(adapter=self._name, action_id=action_id, error=error),
        )

    def fail_prefix(self, prefix: str, error: str = "Mock failure") -> None:
        """Fail every action whose ID starts with ``prefix``."""
        self._failing_prefixes[prefix] = error

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self.call_log.append(context)
        action_id = context.action.id

        scripted = self._scripted.get(action_id)
        if scripted is not None:
            return scripted.model_copy()

        for prefix, error in self._failing_prefixes.items():
            if action_id.startswith(prefix):
                return Receipt.failure(adapter=self._name, action_id=action_id, error=error)

        return Receipt.success(
            adapter=self._name,
            action_id=action_id,
            output=self._default_output,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        self.call_log.clear()
        self._scripted.clear()
        self._failing_prefixes.clear()
