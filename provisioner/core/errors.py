"""
Error taxonomy — everything that can stop or bend the pipeline.

    ProvisionError
    ├── GateError               raised by gate steps, before any mutation
    │   ├── UnsupportedEnvironment
    │   ├── PrivilegeUnavailable
    │   └── OperatorDeclined    clean cancellation, exit 0
    └── StepActionFailed        a step's action failed; the runner
                                classifies it as fatal or non-fatal

The runner catches all of these at its boundary. User-facing messages
are rendered as ``"<ClassName>: <message>"``.
"""

from __future__ import annotations


class ProvisionError(Exception):
    """Base class for provisioning errors."""

    def describe(self) -> str:
        return f"{type(self).__name__}: {self}"


class GateError(ProvisionError):
    """A pre-mutation gate refused to let the pipeline begin."""


class UnsupportedEnvironment(GateError):
    """The host OS or version is outside the supported set."""


class PrivilegeUnavailable(GateError):
    """Elevated privileges could not be obtained."""


class OperatorDeclined(GateError):
    """The operator did not confirm at the consent gate."""


class StepActionFailed(ProvisionError):
    """A step's action failed."""

    def __init__(self, step_name: str, diagnostic: str = ""):
        self.step_name = step_name
        self.diagnostic = diagnostic
        message = f"step '{step_name}' failed"
        if diagnostic:
            message = f"{message}: {diagnostic}"
        super().__init__(message)
