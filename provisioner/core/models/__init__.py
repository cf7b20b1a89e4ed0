"""
Domain models — types for the provisioning pipeline.

All models are re-exported here for convenient access:

    from provisioner.core.models import Step, StepRecord, HostFacts, Receipt
"""

from provisioner.core.models.action import Action, Receipt
from provisioner.core.models.config import (
    FirewallConfig,
    FlatpakRemote,
    IntrusionConfig,
    ProvisionConfig,
    ShellConfig,
    SnapApp,
)
from provisioner.core.models.facts import HostFacts
from provisioner.core.models.step import Step, StepOutcome, StepRecord

__all__ = [
    # action.py
    "Action",
    # config.py
    "FirewallConfig",
    "FlatpakRemote",
    # facts.py
    "HostFacts",
    "IntrusionConfig",
    "ProvisionConfig",
    "Receipt",
    "ShellConfig",
    "SnapApp",
    # step.py
    "Step",
    "StepOutcome",
    "StepRecord",
]
