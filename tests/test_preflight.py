"""
Tests for preflight — OS verdicts and the scoped sudo session.
"""

import pytest

from provisioner.core.errors import PrivilegeUnavailable, UnsupportedEnvironment
from provisioner.core.models.config import ProvisionConfig
from provisioner.core.models.facts import HostFacts
from provisioner.core.services.preflight import (
    PrivilegeSession,
    check_environment,
    parse_version,
    preflight_action,
)


class TestParseVersion:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("22.04", (22, 4)),
            ("20.04", (20, 4)),
            ("24.10", (24, 10)),
            ("12", (12,)),
            (" 22.04 ", (22, 4)),
        ],
    )
    def test_valid(self, raw, expected):
        assert parse_version(raw) == expected

    @pytest.mark.parametrize("raw", ["", "jammy", "22.04 LTS", "22..04"])
    def test_invalid(self, raw):
        assert parse_version(raw) is None

    def test_numeric_not_lexical(self):
        assert parse_version("9.10") < parse_version("20.04")


class TestCheckEnvironment:
    def test_ubuntu_supported(self, ubuntu_facts, config):
        verdict = check_environment(ubuntu_facts, config)
        assert verdict.ok
        assert verdict.reason == "Ubuntu 22.04.4 LTS (22.04) detected - compatible"

    def test_other_os_rejected(self, debian_facts, config):
        verdict = check_environment(debian_facts, config)
        assert not verdict.ok
        assert verdict.reason == (
            "This setup is designed for ubuntu. Detected: Debian GNU/Linux 12 (bookworm)"
        )

    @pytest.mark.parametrize(
        "os_id, name, version, codename",
        [
            ("linuxmint", "Linux Mint 20", "20", "focal"),
            ("linuxmint", "Linux Mint 21.3", "21.3", "jammy"),
            ("elementary", "elementary OS 7", "7", "jammy"),
            ("zorin", "Zorin OS 17", "17", "jammy"),
        ],
    )
    def test_derivative_checked_against_ubuntu_base(self, config, os_id, name, version, codename):
        derivative = HostFacts(
            os_id=os_id,
            os_id_like=("ubuntu", "debian"),
            os_name=name,
            os_version=version,
            ubuntu_codename=codename,
        )
        verdict = check_environment(derivative, config)
        assert verdict.ok, verdict.reason
        assert "(Ubuntu " in verdict.reason

    def test_derivative_with_ubuntu_numbering(self, config):
        pop = HostFacts(
            os_id="pop",
            os_id_like=("ubuntu", "debian"),
            os_name="Pop!_OS 22.04 LTS",
            os_version="22.04",
            ubuntu_codename="jammy",
        )
        verdict = check_environment(pop, config)
        assert verdict.ok
        assert verdict.reason == "Pop!_OS 22.04 LTS (22.04) detected - compatible"

    def test_derivative_on_old_base_rejected(self, config):
        mint19 = HostFacts(
            os_id="linuxmint",
            os_id_like=("ubuntu", "debian"),
            os_name="Linux Mint 19.3",
            os_version="19.3",
            ubuntu_codename="bionic",
        )
        verdict = check_environment(mint19, config)
        assert not verdict.ok
        assert verdict.reason == "Version 20.04 or newer required. Detected: 18.04"

    def test_derivative_without_ubuntu_codename_rejected(self, config):
        unknown_base = HostFacts(
            os_id="linuxmint",
            os_id_like=("ubuntu", "debian"),
            os_name="Linux Mint 22",
            os_version="22",
        )
        verdict = check_environment(unknown_base, config)
        assert not verdict.ok
        assert "Cannot determine the Ubuntu release" in verdict.reason

    def test_old_release_rejected(self, ubuntu_facts, config):
        old = ubuntu_facts.model_copy(update={"os_version": "18.04", "os_name": "Ubuntu 18.04.6 LTS"})
        verdict = check_environment(old, config)
        assert not verdict.ok
        assert verdict.reason == "Version 20.04 or newer required. Detected: 18.04"

    def test_minimum_release_accepted(self, ubuntu_facts, config):
        exact = ubuntu_facts.model_copy(update={"os_version": "20.04"})
        assert check_environment(exact, config).ok

    def test_unknown_version_rejected(self, ubuntu_facts, config):
        unknown = ubuntu_facts.model_copy(update={"os_version": ""})
        verdict = check_environment(unknown, config)
        assert not verdict.ok
        assert "Cannot determine OS version" in verdict.reason

    def test_missing_os_release(self, config):
        verdict = check_environment(HostFacts(), config)
        assert not verdict.ok
        assert "Detected: unknown OS" in verdict.reason

    def test_configured_minimum(self, ubuntu_facts):
        config = ProvisionConfig(min_version="24.04")
        assert not check_environment(ubuntu_facts, config).ok


# ── Privilege session ────────────────────────────────────────────────


class TestPrivilegeSession:
    def test_root_needs_no_sudo(self, registry, mock_adapter):
        session = PrivilegeSession(registry, is_root=True)
        session.acquire()
        assert mock_adapter.call_count == 0
        assert not session.acquired

    def test_cached_credential(self, registry, mock_adapter):
        session = PrivilegeSession(registry)
        session.acquire()
        assert session.acquired
        assert [c.action.id for c in mock_adapter.call_log] == ["preflight:sudo -n true"]

    def test_prompts_when_not_cached(self, registry, mock_adapter):
        mock_adapter.set_failure("preflight:sudo -n true", error="sudo: a password is required")
        session = PrivilegeSession(registry)
        session.acquire()

        ids = [c.action.id for c in mock_adapter.call_log]
        assert ids == ["preflight:sudo -n true", "preflight:sudo -v"]
        assert mock_adapter.call_log[1].action.params["capture"] is False
        assert session.acquired

    def test_unavailable(self, registry, mock_adapter):
        mock_adapter.set_failure("preflight:sudo -n true")
        mock_adapter.set_failure("preflight:sudo -v", error="3 incorrect password attempts")
        session = PrivilegeSession(registry)

        with pytest.raises(PrivilegeUnavailable, match="3 incorrect password attempts"):
            session.acquire()
        assert not session.acquired

    def test_context_manager_drops_credential(self, registry, mock_adapter):
        with PrivilegeSession(registry) as session:
            session.acquire()
        assert mock_adapter.call_log[-1].action.id == "preflight:sudo -k"
        assert not session.acquired

    def test_release_without_acquire_is_noop(self, registry, mock_adapter):
        with PrivilegeSession(registry):
            pass
        assert mock_adapter.call_count == 0

    def test_release_failure_is_not_raised(self, registry, mock_adapter):
        mock_adapter.set_failure("preflight:sudo -k")
        session = PrivilegeSession(registry)
        session.acquire()
        session.release()
        assert not session.acquired


class TestPreflightAction:
    def test_passes(self, ubuntu_facts, config, registry):
        session = PrivilegeSession(registry)
        receipt = preflight_action(ubuntu_facts, config, session)()
        assert receipt.ok
        assert "compatible" in receipt.output
        assert session.acquired

    def test_unsupported_checks_before_sudo(self, debian_facts, config, registry, mock_adapter):
        session = PrivilegeSession(registry)
        with pytest.raises(UnsupportedEnvironment, match="designed for ubuntu"):
            preflight_action(debian_facts, config, session)()
        assert mock_adapter.call_count == 0

    def test_describe_names_the_class(self, debian_facts, config, registry):
        session = PrivilegeSession(registry)
        with pytest.raises(UnsupportedEnvironment) as exc_info:
            preflight_action(debian_facts, config, session)()
        assert exc_info.value.describe().startswith("UnsupportedEnvironment: ")
