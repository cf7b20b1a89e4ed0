"""
ProvisionConfig — the data behind the step table.

Loaded from provision.yml when one exists; otherwise the defaults
below describe the stock desktop setup. Only data lives here (package
names, apps, URLs). Step order and failure policy are fixed in
core/data/step_table.py.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

OH_MY_ZSH_INSTALLER = "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh"
FLATHUB_REPO = "https://flathub.org/repo/flathub.flatpakrepo"


class FirewallConfig(BaseModel):
    """UFW default policies and allowed services."""

    incoming: str = "deny"
    outgoing: str = "allow"
    allow: list[str] = Field(default_factory=lambda: ["ssh"])


class IntrusionConfig(BaseModel):
    """Intrusion-prevention daemon (installed, enabled, started)."""

    package: str = "fail2ban"
    service: str = "fail2ban"


class FlatpakRemote(BaseModel):
    name: str = "flathub"
    url: str = FLATHUB_REPO


class ShellConfig(BaseModel):
    """Alternate shell and the framework installed on top of it."""

    package: str = "zsh"
    framework_name: str = "Oh My Zsh"
    framework_url: str = OH_MY_ZSH_INSTALLER
    framework_dir: str = ".oh-my-zsh"


class SnapApp(BaseModel):
    """An application installed from the snap store."""

    name: str
    label: str = ""
    classic: bool = False

    @property
    def display_name(self) -> str:
        return self.label or self.name


def _default_essentials() -> list[str]:
    return [
        "build-essential",
        "git",
        "curl",
        "wget",
        "unzip",
        "snapd",
        "flatpak",
        "gnome-software-plugin-flatpak",
        "apt-transport-https",
        "ca-certificates",
        "software-properties-common",
    ]


def _default_snap_apps() -> list[SnapApp]:
    return [
        SnapApp(name="code", label="VS Code", classic=True),
        SnapApp(name="vlc", label="VLC"),
        SnapApp(name="obs-studio", label="OBS Studio"),
        SnapApp(name="brave", label="Brave Browser"),
    ]


class ProvisionConfig(BaseModel):
    """Root configuration — loaded from provision.yml or defaulted."""

    name: str = "Phoenix32 Ubuntu Setup"

    supported_os: list[str] = Field(default_factory=lambda: ["ubuntu"])
    min_version: str = "20.04"

    essentials: list[str] = Field(default_factory=_default_essentials)
    firewall: FirewallConfig = Field(default_factory=FirewallConfig)
    intrusion: IntrusionConfig = Field(default_factory=IntrusionConfig)
    backup_package: str = "timeshift"
    flatpak_remote: FlatpakRemote = Field(default_factory=FlatpakRemote)
    shell: ShellConfig = Field(default_factory=ShellConfig)

    snapd_settle_seconds: float = Field(default=5.0, ge=0)
    snap_apps: list[SnapApp] = Field(default_factory=_default_snap_apps)

    gpu_drivers: bool = True
