"""
Host facts — read-only probes of the machine being provisioned.

Sources: /etc/os-release, lspci, the invoking user's passwd entry and
home directory. Nothing here mutates the host, so probing is safe
before preflight and consent.
"""

from __future__ import annotations

import logging
import os
import pwd
import re
import shlex
import subprocess
from pathlib import Path

from provisioner.core.models.facts import HostFacts

logger = logging.getLogger(__name__)

OS_RELEASE_PATH = Path("/etc/os-release")

_GPU_CLASSES = ("VGA", "3D controller", "Display controller")


# ── os-release ─────────────────────────────────────────────

def parse_os_release(text: str) -> dict[str, str]:
    """Parse os-release ``KEY=value`` lines (values may be shell-quoted)."""
    data: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, raw = line.partition("=")
        try:
            parts = shlex.split(raw)
        except ValueError:
            parts = [raw.strip("\"'")]
        data[key.strip()] = parts[0] if parts else ""
    return data


def read_os_release(path: Path = OS_RELEASE_PATH) -> dict[str, str]:
    """Read and parse os-release; empty dict when unreadable."""
    try:
        return parse_os_release(path.read_text(encoding="utf-8"))
    except OSError as e:
        logger.debug("Cannot read %s: %s", path, e)
        return {}


# ── GPU ────────────────────────────────────────────────────

def _extract_gpu_model(line: str) -> str:
    """Extract GPU model from an lspci line."""
    # e.g. "01:00.0 VGA compatible controller: NVIDIA Corporation GA104 [GeForce RTX 3070]"
    parts = line.split(":", 2)
    if len(parts) >= 3:
        # Remove PCI ID brackets at end (lspci -nn)
        return re.sub(r"\s*\[[0-9a-f:]+\]\s*$", "", parts[2].strip())
    return line.strip()


def find_nvidia_gpu(lspci_output: str) -> str | None:
    """Return the NVIDIA GPU model from lspci output, or None."""
    for line in lspci_output.splitlines():
        if not any(cls in line for cls in _GPU_CLASSES):
            continue
        upper = line.upper()
        if "NVIDIA" in upper or "10DE:" in upper:
            return _extract_gpu_model(line)
    return None


def detect_nvidia_gpu() -> tuple[bool, str | None]:
    """Probe lspci for an NVIDIA GPU.

    Returns:
        (present, model). A missing or failing lspci counts as absent.
    """
    try:
        r = subprocess.run(
            ["lspci"],
            capture_output=True, text=True, timeout=10,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.debug("lspci unavailable: %s", e)
        return False, None

    model = find_nvidia_gpu(r.stdout)
    return model is not None, model


# ── User ───────────────────────────────────────────────────

def _login_shell(user: str) -> str:
    try:
        return pwd.getpwnam(user).pw_shell
    except KeyError:
        return os.environ.get("SHELL", "")


def probe_host_facts(
    os_release_path: Path = OS_RELEASE_PATH,
    home: Path | None = None,
    framework_dir: str = ".oh-my-zsh",
) -> HostFacts:
    """Collect the HostFacts snapshot for this run.

    Args:
        os_release_path: Override for tests.
        home: Home directory of the invoking user (default: ``Path.home()``).
        framework_dir: Shell framework directory, relative to home.
    """
    release = read_os_release(os_release_path)
    has_gpu, gpu_model = detect_nvidia_gpu()

    home = home or Path.home()
    user = os.environ.get("USER") or pwd.getpwuid(os.getuid()).pw_name

    facts = HostFacts(
        os_id=release.get("ID", "").lower(),
        os_id_like=tuple(release.get("ID_LIKE", "").lower().split()),
        os_name=release.get("PRETTY_NAME") or release.get("NAME", ""),
        os_version=release.get("VERSION_ID", ""),
        os_codename=release.get("VERSION_CODENAME") or release.get("UBUNTU_CODENAME", ""),
        ubuntu_codename=release.get("UBUNTU_CODENAME", "").lower(),
        has_nvidia_gpu=has_gpu,
        gpu_model=gpu_model,
        is_root=os.geteuid() == 0,
        user=user,
        home=str(home),
        login_shell=_login_shell(user),
        has_oh_my_zsh=(home / framework_dir).is_dir(),
    )
    logger.debug("Host facts: %s", facts.to_dict())
    return facts
