"""
Preflight — verify the host before anything is changed.

Two checks, both must pass before the consent gate:
    1. OS identity and version are in the supported set (pure).
    2. The invoking user can obtain sudo. The credential sudo caches is
       scoped to this process: PrivilegeSession drops it on exit.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable

from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.errors import PrivilegeUnavailable, UnsupportedEnvironment
from provisioner.core.models.action import Action, Receipt
from provisioner.core.models.config import ProvisionConfig
from provisioner.core.models.facts import HostFacts

logger = logging.getLogger(__name__)

# UBUNTU_CODENAME -> release, for derivatives
UBUNTU_RELEASES = {
    "bionic": "18.04",
    "focal": "20.04",
    "jammy": "22.04",
    "kinetic": "22.10",
    "lunar": "23.04",
    "mantic": "23.10",
    "noble": "24.04",
    "oracular": "24.10",
    "plucky": "25.04",
    "questing": "25.10",
}


@dataclass(frozen=True)
class PreflightVerdict:
    ok: bool
    reason: str


def parse_version(version: str) -> tuple[int, ...] | None:
    """Parse ``"22.04"`` into ``(22, 4)``; None when not a dotted number."""
    if not re.fullmatch(r"\d+(\.\d+)*", version.strip()):
        return None
    return tuple(int(part) for part in version.strip().split("."))


def base_ubuntu_version(facts: HostFacts) -> str | None:
    """Ubuntu release a derivative is built on, from its ``UBUNTU_CODENAME``."""
    return UBUNTU_RELEASES.get(facts.ubuntu_codename)


def check_environment(facts: HostFacts, config: ProvisionConfig) -> PreflightVerdict:
    """Decide whether this OS and version are supported.

    A supported ``ID`` is checked against its own ``VERSION_ID``. A
    derivative admitted through ``ID_LIKE`` numbers its releases its own
    way (Mint 21, elementary 7), so its Ubuntu base release is checked
    instead.
    """
    supported = [name.lower() for name in config.supported_os]
    label = facts.os_name or facts.os_id or "unknown OS"

    if facts.os_id and facts.os_id in supported:
        version = facts.os_version
        if parse_version(version) is None:
            return PreflightVerdict(False, f"Cannot determine OS version of {label}")
    elif any(ident in supported for ident in facts.os_id_like):
        version = base_ubuntu_version(facts)
        if version is None:
            return PreflightVerdict(
                False,
                f"Cannot determine the Ubuntu release {label} is based on",
            )
    else:
        return PreflightVerdict(
            False,
            f"This setup is designed for {', '.join(config.supported_os)}. Detected: {label}",
        )

    current = parse_version(version)
    minimum = parse_version(config.min_version)
    if minimum is not None and current < minimum:
        return PreflightVerdict(
            False,
            f"Version {config.min_version} or newer required. Detected: {version}",
        )

    if version != facts.os_version:
        return PreflightVerdict(True, f"{label} (Ubuntu {version} base) detected - compatible")
    return PreflightVerdict(True, f"{label} ({facts.os_version}) detected - compatible")


class PrivilegeSession:
    """Scoped sudo credential.

    ``acquire()`` validates (and, if needed, interactively caches) a sudo
    credential. Leaving the ``with`` block invalidates it again with
    ``sudo -k`` so it never outlives the process.
    """

    def __init__(self, registry: AdapterRegistry, is_root: bool = False):
        self._registry = registry
        self._is_root = is_root
        self._acquired = False

    @property
    def acquired(self) -> bool:
        return self._acquired

    def _sudo(self, *args: str, capture: bool = True) -> Receipt:
        action = Action(
            id=f"preflight:sudo {' '.join(args)}",
            name=f"sudo {' '.join(args)}",
            step="preflight",
            params={"command": ["sudo", *args], "capture": capture},
        )
        return self._registry.execute_action(action)

    def acquire(self) -> None:
        """Make sure sudo works for the rest of the run.

        Raises:
            PrivilegeUnavailable: sudo could not be obtained.
        """
        if self._is_root:
            logger.debug("Running as root, sudo not needed")
            return

        if self._sudo("-n", "true").ok:
            self._acquired = True
            return

        # Prompt on the terminal: output must not be captured
        receipt = self._sudo("-v", capture=False)
        if not receipt.ok:
            raise PrivilegeUnavailable(
                f"Failed to obtain sudo privileges ({receipt.error or 'sudo -v failed'})"
            )
        self._acquired = True

    def release(self) -> None:
        if not self._acquired:
            return
        receipt = self._sudo("-k")
        if not receipt.ok:
            logger.warning("Could not invalidate sudo credential: %s", receipt.error)
        self._acquired = False

    def __enter__(self) -> PrivilegeSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


def preflight_action(
    facts: HostFacts,
    config: ProvisionConfig,
    session: PrivilegeSession,
) -> Callable[[], Receipt]:
    """Build the preflight step action.

    Raises (from the action):
        UnsupportedEnvironment: the verdict failed.
        PrivilegeUnavailable: sudo could not be obtained.
    """

    def action() -> Receipt:
        verdict = check_environment(facts, config)
        if not verdict.ok:
            raise UnsupportedEnvironment(verdict.reason)
        session.acquire()
        return Receipt.success(
            adapter="pipeline",
            action_id="preflight",
            output=f"{verdict.reason}; sudo privileges confirmed",
        )

    return action
