"""Adapters — bindings for the host tools steps invoke.

Public re-exports for convenient access.
"""

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.adapters.mock import MockAdapter
from provisioner.adapters.registry import AdapterRegistry
from provisioner.adapters.shell.command import ShellCommandAdapter

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
    "ShellCommandAdapter",
]
