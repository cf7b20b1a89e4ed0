"""
Consent gate — the operator confirms the change list, once.

Exactly one line is read. Only ``y`` / ``yes`` (any case, surrounding
whitespace ignored) proceeds; everything else, including an empty line
or EOF, is a decline and ends the run cleanly with nothing changed.
"""

from __future__ import annotations

import logging
from typing import Callable

from provisioner.core.errors import OperatorDeclined
from provisioner.core.models.action import Receipt

logger = logging.getLogger(__name__)

_AFFIRMATIVE = frozenset({"y", "yes"})

PROMPT = "Do you want to continue? (y/N):"


def is_affirmative(text: str | None) -> bool:
    """True only for an explicit yes."""
    if not text:
        return False
    return text.strip().lower() in _AFFIRMATIVE


class ConsentGate:
    """Show the intended changes and ask for confirmation.

    Args:
        changes: One line per intended change.
        read_line: Blocking read of one line of operator input.
        write: Output sink for the change list and prompt.
    """

    def __init__(
        self,
        changes: list[str],
        read_line: Callable[[], str],
        write: Callable[[str], None],
    ):
        self._changes = list(changes)
        self._read_line = read_line
        self._write = write

    @property
    def changes(self) -> list[str]:
        return list(self._changes)

    def confirm(self) -> None:
        """Ask once.

        Raises:
            OperatorDeclined: on anything but an explicit yes.
        """
        self._write("")
        self._write("This setup will install and configure:")
        for change in self._changes:
            self._write(f"  • {change}")
        self._write("")
        self._write(PROMPT)

        answer = self._read_line()
        if not is_affirmative(answer):
            logger.debug("Consent declined (answer=%r)", answer)
            raise OperatorDeclined("Setup cancelled by user - no changes made")

    def action(self) -> Receipt:
        """Step action wrapping ``confirm()``."""
        self.confirm()
        return Receipt.success(
            adapter="pipeline",
            action_id="consent",
            output="Operator confirmed",
        )
