"""
Shell command adapter — execute host commands.

This is the adapter every provisioning step goes through: it applies
the sudo prefix, extra environment, and captures output. Long
commands can stream their output live instead. It is the
single place where mutating commands are spawned.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from typing import Any, Callable

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt

logger = logging.getLogger(__name__)

_OUTPUT_TAIL = 2000
_STREAM_TAIL_LINES = 30


def _last_line(text: str) -> str:
    """Last non-empty line of ``text`` (the one-line diagnostic)."""
    for line in reversed(text.splitlines()):
        if line.strip():
            return line.strip()
    return ""


def build_argv(
    command: list[str] | str,
    *,
    sudo: bool = False,
    is_root: bool = False,
    env: dict[str, str] | None = None,
) -> tuple[list[str] | str, bool]:
    """Resolve the final command and whether it needs a shell.

    sudo resets the environment, so extra variables are passed through
    ``env KEY=VALUE`` after the sudo prefix instead of via the process
    environment.

    Returns:
        (command, use_shell)
    """
    use_shell = isinstance(command, str)
    elevate = sudo and not is_root

    if not elevate:
        return command, use_shell

    prefix = ["sudo"]
    if env:
        prefix += ["env"] + [f"{k}={v}" for k, v in env.items()]

    if use_shell:
        return prefix + ["sh", "-c", command], False
    return prefix + list(command), False


class ShellCommandAdapter(Adapter):
    """Execute host commands and capture output.

    Action params:
        command (list[str] | str): argv list, or a string run through sh.
        sudo (bool): Prefix with sudo unless already root (default: False).
        env (dict): Extra environment variables.
        capture (bool): Capture stdout/stderr (default: True).
        stream (bool): Relay merged output line by line to ``echo`` while
            keeping the tail for the receipt (default: False).
        timeout (int | None): Timeout in seconds (default: none).
    """

    def __init__(self, echo: Callable[[str], None] | None = None):
        self._echo = echo

    @property
    def name(self) -> str:
        return "shell"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        command = context.action.params.get("command")
        if not command:
            return False, "Missing required param: 'command'"
        if not isinstance(command, (str, list)):
            return False, f"'command' must be a list or string, got {type(command).__name__}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.action.params
        command = params["command"]
        env_extra: dict[str, str] = params.get("env") or {}
        capture = params.get("capture", True)
        stream = capture and params.get("stream", False)
        timeout = params.get("timeout")

        argv, use_shell = build_argv(
            command,
            sudo=params.get("sudo", False),
            is_root=context.is_root,
            env=env_extra,
        )
        display = argv if isinstance(argv, str) else shlex.join(argv)

        env = os.environ.copy()
        env.update(env_extra)

        logger.debug("Executing: %s", display)
        start = time.monotonic()

        run_kwargs: dict[str, Any] = {
            "shell": use_shell,
            "env": env,
            "timeout": timeout,
        }
        if capture:
            run_kwargs.update(capture_output=True, text=True)

        try:
            if stream:
                returncode, output = self._stream(argv, run_kwargs)
                stderr = ""
            else:
                result = subprocess.run(argv, **run_kwargs)
                returncode = result.returncode
                output = (result.stdout or "").strip()[-_OUTPUT_TAIL:] if capture else ""
                stderr = (result.stderr or "").strip()[-_OUTPUT_TAIL:] if capture else ""
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command timed out after {timeout}s: {display}",
                metadata={"command": display, "timeout": timeout},
            )
        except FileNotFoundError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command not found: {e.filename or display}",
                metadata={"command": display},
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command execution error: {e}",
                metadata={"command": display},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)

        if returncode == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=output,
                duration_ms=elapsed_ms,
                metadata={
                    "command": display,
                    "return_code": returncode,
                    "stderr": stderr,
                },
            )

        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=(
                _last_line(output if stream else stderr)
                or f"Command exited with code {returncode}"
            ),
            duration_ms=elapsed_ms,
            metadata={
                "command": display,
                "return_code": returncode,
                "stdout": output,
                "stderr": stderr,
            },
        )

    def _stream(self, argv: list[str] | str, run_kwargs: dict[str, Any]) -> tuple[int, str]:
        """Run with stderr merged into stdout, relaying each line as it arrives.

        Returns:
            (return code, last lines of output)
        """
        proc = subprocess.Popen(
            argv,
            shell=run_kwargs["shell"],
            env=run_kwargs["env"],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,
        )
        output_tail: list[str] = []
        if proc.stdout:
            for line in proc.stdout:
                stripped = line.rstrip()
                output_tail.append(stripped)
                if len(output_tail) > _STREAM_TAIL_LINES:
                    output_tail.pop(0)
                if self._echo is not None:
                    self._echo(stripped)
        try:
            proc.wait(timeout=run_kwargs["timeout"])
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
            raise
        return proc.returncode, "\n".join(output_tail).strip()
