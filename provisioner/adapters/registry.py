"""
Adapter registry — the one door every host command goes through.

Step actions and the privilege session build Actions and call
``execute_action``; the registry picks the adapter (or the mock),
validates, runs and times the command, and always answers with a
Receipt.
"""

from __future__ import annotations

import logging
import time

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Adapters by name, plus the mock switch used by ``--mock`` and tests.

    Args:
        mock_mode: Route every action to the mock instead of real adapters.
        is_root: The run already has root; adapters skip ``sudo``.
    """

    def __init__(self, mock_mode: bool = False, is_root: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self._mock_mode = mock_mode
        self._mock_adapter: Adapter | None = None
        self._is_root = is_root

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    @property
    def is_root(self) -> bool:
        return self._is_root

    @property
    def names(self) -> list[str]:
        return list(self._adapters)

    def set_mock_mode(self, enabled: bool, mock_adapter: Adapter | None = None) -> None:
        """Switch mock routing on or off.

        Without ``mock_adapter`` every action succeeds with a ``[mock]``
        receipt and nothing is recorded.
        """
        self._mock_mode = enabled
        self._mock_adapter = mock_adapter

    def register(self, adapter: Adapter) -> None:
        if adapter.name in self._adapters:
            logger.warning("Replacing adapter '%s'", adapter.name)
        self._adapters[adapter.name] = adapter

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def _resolve(self, action: Action) -> Adapter | Receipt:
        if self._mock_mode:
            if self._mock_adapter is not None:
                return self._mock_adapter
            return Receipt.success(
                adapter=action.adapter,
                action_id=action.id,
                output=f"[mock] {action.name or action.id}",
                metadata={"mock": True},
            )

        adapter = self._adapters.get(action.adapter)
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )
        return adapter

    def execute_action(self, action: Action) -> Receipt:
        """Run ``action`` and return its Receipt. Never raises."""
        resolved = self._resolve(action)
        if isinstance(resolved, Receipt):
            return resolved
        adapter = resolved

        context = ExecutionContext(action=action, is_root=self._is_root)

        try:
            valid, reason = adapter.validate(context)
        except Exception as e:
            valid, reason = False, str(e)
        if not valid:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation failed: {reason}",
            )

        logger.debug("[%s] %s", action.step or "-", action.name or action.id)
        start = time.monotonic()
        try:
            receipt = adapter.execute(context)
        except Exception as e:
            # Adapters should never raise
            logger.error("Adapter '%s' raised on %s: %s", adapter.name, action.id, e)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )
        receipt.duration_ms = int((time.monotonic() - start) * 1000)

        if receipt.failed:
            logger.debug("[%s] %s failed: %s", action.step or "-", action.id, receipt.error)
        return receipt
