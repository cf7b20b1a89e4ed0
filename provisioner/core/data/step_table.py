"""
Step table — the fixed, ordered provisioning pipeline.

Order and failure policy live here; package names, apps and URLs come
from ProvisionConfig. Every command must be safe to re-run:

    apt-get install/upgrade     no-op when already current
    ufw default/allow/enable    re-applying a rule is a no-op
    systemctl enable/start      no-op when already enabled/running
    flatpak remote-add          --if-not-exists
    snap install                exits 0 when already installed
    Oh My Zsh                   guarded on ~/.oh-my-zsh being absent
"""

from __future__ import annotations

import shlex
import time
from typing import Any, Callable

from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.engine.actions import Command, command_action
from provisioner.core.models.config import ProvisionConfig
from provisioner.core.models.facts import HostFacts
from provisioner.core.models.step import Step
from provisioner.core.services.consent import ConsentGate
from provisioner.core.services.preflight import PrivilegeSession, preflight_action

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def _apt(*args: str) -> Command:
    return Command(("apt-get", *args), env=APT_ENV, stream=True)


def _cmd(*argv: str, stream: bool = False) -> Command:
    return Command(tuple(argv), stream=stream)


def _preview(items: list[str], limit: int = 4) -> str:
    shown = ", ".join(items[:limit])
    return f"{shown}, ..." if len(items) > limit else shown


def _has_nvidia_gpu(facts: HostFacts) -> bool:
    return facts.has_nvidia_gpu


def _lacks_shell_framework(facts: HostFacts) -> bool:
    return not facts.has_oh_my_zsh


def build_mutating_steps(
    config: ProvisionConfig,
    facts: HostFacts,
    registry: AdapterRegistry,
    sleep: Callable[[float], None] = time.sleep,
) -> list[Step]:
    """Every step after the consent gate, in execution order."""

    def step(name: str, title: str, commands: list[Command], **kwargs: Any) -> Step:
        settle = kwargs.pop("settle_seconds", 0)
        return Step(
            name=name,
            title=title,
            action=command_action(registry, name, commands, settle_seconds=settle, sleep=sleep),
            **kwargs,
        )

    fw = config.firewall
    ids = config.intrusion
    sh = config.shell
    remote = config.flatpak_remote

    shell_follow_ups: tuple[str, ...] = ()
    if not facts.uses_zsh:
        shell_follow_ups = (f"Set Zsh as default shell: chsh -s $(which {sh.package})",)

    steps = [
        step(
            "update-system",
            "Updating system packages",
            [_apt("update"), _apt("upgrade", "-y")],
            description="System updates",
        ),
        step(
            "install-essentials",
            "Installing essential development tools",
            [_apt("install", "-y", *config.essentials)],
            description=f"Essential tools ({_preview(config.essentials)})",
        ),
        step(
            "configure-firewall",
            "Configuring UFW firewall",
            [
                _apt("install", "-y", "ufw"),
                _cmd("ufw", "--force", "default", fw.incoming, "incoming"),
                _cmd("ufw", "--force", "default", fw.outgoing, "outgoing"),
                *[_cmd("ufw", "allow", service) for service in fw.allow],
                _cmd("ufw", "--force", "enable"),
            ],
            description=f"UFW firewall (default {fw.incoming} incoming, allow {', '.join(fw.allow) or 'nothing'})",
        ),
        step(
            "install-fail2ban",
            "Installing intrusion prevention",
            [
                _apt("install", "-y", ids.package),
                _cmd("systemctl", "enable", ids.service),
                _cmd("systemctl", "start", ids.service),
            ],
            description=f"Intrusion prevention ({ids.package})",
        ),
        step(
            "install-timeshift",
            "Installing backup solution",
            [_apt("install", "-y", config.backup_package)],
            description=f"Backup solution ({config.backup_package})",
            follow_ups=(f"Configure {config.backup_package.capitalize()} for automated backups",),
        ),
        step(
            "setup-flatpak",
            "Setting up Flatpak",
            [_cmd("flatpak", "remote-add", "--if-not-exists", remote.name, remote.url)],
            description=f"Flatpak support with {remote.name.capitalize()}",
        ),
        step(
            "install-zsh",
            "Installing Zsh",
            [_apt("install", "-y", sh.package)],
            description=f"{sh.package.capitalize()} with {sh.framework_name}",
            follow_ups=shell_follow_ups,
        ),
        step(
            "install-oh-my-zsh",
            f"Installing {sh.framework_name}",
            [
                Command(
                    f'sh -c "$(curl -fsSL {shlex.quote(sh.framework_url)})"',
                    sudo=False,
                    env={"RUNZSH": "no", "CHSH": "no"},
                ),
            ],
            fatal=False,
            guard=_lacks_shell_framework,
            follow_ups=(f"Customize your {sh.framework_name} theme and plugins in ~/.zshrc",),
            failure_hints=(f"{sh.framework_name} installation had issues - re-run the installer from {sh.framework_url}",),
        ),
    ]

    if config.snap_apps:
        labels = ", ".join(app.display_name for app in config.snap_apps)
        steps.append(
            step(
                "start-snapd",
                "Starting snapd",
                [_cmd("systemctl", "start", "snapd")],
                settle_seconds=config.snapd_settle_seconds,
                description=f"Applications via snap ({labels})",
            )
        )
        for app in config.snap_apps:
            argv = ["snap", "install", app.name]
            if app.classic:
                argv.append("--classic")
            steps.append(
                step(
                    f"snap-{app.name}",
                    f"Installing {app.display_name} (snap)",
                    [_cmd(*argv, stream=True)],
                    fatal=False,
                    failure_hints=(f"Install {app.display_name} manually: sudo {shlex.join(argv)}",),
                )
            )

    if config.gpu_drivers:
        steps.append(
            step(
                "install-nvidia-drivers",
                "Installing NVIDIA drivers",
                [_cmd("ubuntu-drivers", "autoinstall", stream=True)],
                fatal=False,
                guard=_has_nvidia_gpu,
                description="NVIDIA drivers (if an NVIDIA GPU is detected)",
                follow_ups=("NVIDIA drivers installed - reboot required for full functionality",),
                failure_hints=("NVIDIA driver installation had issues - run 'sudo ubuntu-drivers autoinstall' manually",),
            )
        )

    steps.append(
        step(
            "cleanup",
            "Cleaning up",
            [_apt("autoremove", "-y"), _apt("autoclean")],
        )
    )
    return steps


def describe_changes(steps: list[Step]) -> list[str]:
    """The consent gate's change list: one line per described step."""
    return [s.description for s in steps if s.description]


def build_step_table(
    config: ProvisionConfig,
    facts: HostFacts,
    registry: AdapterRegistry,
    session: PrivilegeSession,
    read_line: Callable[[], str],
    write: Callable[[str], None],
    sleep: Callable[[float], None] = time.sleep,
) -> list[Step]:
    """The complete pipeline: preflight, consent, then mutating steps."""
    mutating = build_mutating_steps(config, facts, registry, sleep=sleep)
    gate = ConsentGate(describe_changes(mutating), read_line=read_line, write=write)

    gates = [
        Step(
            name="preflight",
            title="Running preflight checks",
            action=preflight_action(facts, config, session),
            gate=True,
        ),
        Step(
            name="consent",
            title="Waiting for confirmation",
            action=gate.action,
            gate=True,
        ),
    ]
    return gates + mutating


def plan_rows(steps: list[Step], facts: HostFacts) -> list[dict]:
    """Describe the table for display without running anything."""
    rows = []
    for index, s in enumerate(steps, start=1):
        rows.append({
            "index": index,
            "name": s.name,
            "title": s.title,
            "gate": s.gate,
            "fatal": s.fatal,
            "guarded": s.guarded,
            "applies": s.applies_to(facts),
        })
    return rows
