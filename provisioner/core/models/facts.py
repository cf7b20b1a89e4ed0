"""
HostFacts — read-only snapshot of the machine being provisioned.

Probed once before the pipeline starts (see services/host_facts.py)
and handed to every guard. Frozen: assigning a field raises.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class HostFacts(BaseModel):
    """Environment probe results consulted by preflight and guards."""

    model_config = ConfigDict(frozen=True)

    # /etc/os-release
    os_id: str = ""                 # "ubuntu"
    os_id_like: tuple[str, ...] = ()
    os_name: str = ""               # PRETTY_NAME, e.g. "Ubuntu 22.04.4 LTS"
    os_version: str = ""            # VERSION_ID, e.g. "22.04"
    os_codename: str = ""
    ubuntu_codename: str = ""       # UBUNTU_CODENAME, set by derivatives too

    # Hardware
    has_nvidia_gpu: bool = False
    gpu_model: str | None = None

    # Invoking user
    is_root: bool = False
    user: str = ""
    home: str = ""
    login_shell: str = ""
    has_oh_my_zsh: bool = False

    @property
    def is_ubuntu_like(self) -> bool:
        return self.os_id == "ubuntu" or "ubuntu" in self.os_id_like

    @property
    def uses_zsh(self) -> bool:
        return self.login_shell.rsplit("/", 1)[-1] == "zsh"

    def to_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data["os_id_like"] = list(self.os_id_like)
        return data
