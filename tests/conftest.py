"""
Shared test fixtures and configuration.
"""

import logging
from pathlib import Path

import pytest

from provisioner.adapters.mock import MockAdapter
from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.models.config import ProvisionConfig
from provisioner.core.models.facts import HostFacts


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch):
    """Keep every test away from real provision.yml files and log env vars."""
    monkeypatch.chdir(tmp_path)
    for var in ("PROVISION_LOG_LEVEL", "PROVISION_LOG_FILE", "PROVISION_LOG_FILE_LEVEL"):
        monkeypatch.delenv(var, raising=False)

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config() -> ProvisionConfig:
    return ProvisionConfig()


@pytest.fixture
def ubuntu_facts() -> HostFacts:
    """A fresh Ubuntu 22.04 desktop without an NVIDIA GPU."""
    return HostFacts(
        os_id="ubuntu",
        os_id_like=("debian",),
        os_name="Ubuntu 22.04.4 LTS",
        os_version="22.04",
        os_codename="jammy",
        user="phoenix",
        home="/home/phoenix",
        login_shell="/bin/bash",
    )


@pytest.fixture
def gpu_facts(ubuntu_facts: HostFacts) -> HostFacts:
    """The same desktop with an NVIDIA card."""
    return ubuntu_facts.model_copy(
        update={"has_nvidia_gpu": True, "gpu_model": "NVIDIA Corporation GA104 [GeForce RTX 3070]"}
    )


@pytest.fixture
def debian_facts() -> HostFacts:
    return HostFacts(
        os_id="debian",
        os_name="Debian GNU/Linux 12 (bookworm)",
        os_version="12",
        user="phoenix",
        home="/home/phoenix",
        login_shell="/bin/bash",
    )


@pytest.fixture
def mock_adapter() -> MockAdapter:
    return MockAdapter(adapter_name="shell")


@pytest.fixture
def registry(mock_adapter: MockAdapter) -> AdapterRegistry:
    """Registry routing every action to ``mock_adapter``."""
    reg = AdapterRegistry()
    reg.set_mock_mode(True, mock_adapter)
    return reg


class Answers:
    """Scripted operator input; records how many lines were read."""

    def __init__(self, *lines: str):
        self._lines = list(lines)
        self.reads = 0

    def __call__(self) -> str:
        self.reads += 1
        if not self._lines:
            return ""
        return self._lines.pop(0)


class Transcript:
    """Collects everything written to the operator."""

    def __init__(self):
        self.lines: list[str] = []

    def __call__(self, line: str) -> None:
        self.lines.append(line)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


@pytest.fixture
def transcript() -> Transcript:
    return Transcript()


@pytest.fixture
def answers():
    """Factory: ``answers("y")`` builds a scripted reader."""
    return Answers


@pytest.fixture
def fake_sleep():
    """A recording stand-in for ``time.sleep``."""
    calls: list[float] = []

    def sleep(seconds: float) -> None:
        calls.append(seconds)

    sleep.calls = calls
    return sleep
