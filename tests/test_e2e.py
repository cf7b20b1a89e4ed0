"""
End-to-end tests — the full provisioning run through the use case,
with every host command dispatched to the mock adapter.
"""

import pytest

from provisioner.core.models.step import StepOutcome
from provisioner.core.services.summary import REBOOT_ACTION
from provisioner.core.use_cases.provision import plan_provision, run_provision

MUTATING = [
    "update-system",
    "install-essentials",
    "configure-firewall",
    "install-fail2ban",
    "install-timeshift",
    "setup-flatpak",
    "install-zsh",
    "install-oh-my-zsh",
    "start-snapd",
    "snap-code",
    "snap-vlc",
    "snap-obs-studio",
    "snap-brave",
    "install-nvidia-drivers",
    "cleanup",
]


@pytest.fixture
def run(registry, answers, transcript, fake_sleep):
    """Run the pipeline with ``answer`` at the consent prompt."""

    def _run(facts, answer="y", **kwargs):
        kwargs.setdefault("registry", registry)
        return run_provision(
            read_line=answers(answer),
            write=transcript,
            facts=facts,
            sleep=fake_sleep,
            **kwargs,
        )

    return _run


def _mutating_calls(mock_adapter):
    return [c for c in mock_adapter.call_log if c.step in MUTATING]


# ── Fresh machine ────────────────────────────────────────────────────


class TestFreshUbuntuWithoutGpu:
    def test_outcomes(self, run, ubuntu_facts):
        result = run(ubuntu_facts)
        pipeline = result.pipeline

        assert [r.name for r in pipeline.executed] == ["preflight", "consent", *MUTATING]
        for record in pipeline.executed:
            expected = (
                StepOutcome.SKIPPED
                if record.name == "install-nvidia-drivers"
                else StepOutcome.SUCCESS
            )
            assert record.outcome == expected, record.name
        assert result.exit_code == 0

    def test_summary(self, run, ubuntu_facts):
        summary = run(ubuntu_facts).summary

        assert summary.status == "ok"
        assert summary.manual_actions[0] == REBOOT_ACTION
        assert "Set Zsh as default shell: chsh -s $(which zsh)" in summary.manual_actions
        assert "Configure Timeshift for automated backups" in summary.manual_actions
        assert not any("NVIDIA" in a for a in summary.manual_actions)

    def test_drivers_never_invoked(self, run, ubuntu_facts, mock_adapter):
        run(ubuntu_facts)
        assert mock_adapter.calls_for_step("install-nvidia-drivers") == []

    def test_snapd_settles_once(self, run, ubuntu_facts, fake_sleep):
        run(ubuntu_facts)
        assert fake_sleep.calls == [5.0]

    def test_credential_dropped_at_end(self, run, ubuntu_facts, mock_adapter):
        run(ubuntu_facts)
        assert mock_adapter.call_log[0].action.id == "preflight:sudo -n true"
        assert mock_adapter.call_log[-1].action.id == "preflight:sudo -k"


class TestGpuDriverFailure:
    def test_non_fatal_and_reported(self, run, gpu_facts, mock_adapter):
        mock_adapter.fail_prefix("install-nvidia-drivers:", error="No drivers found")

        result = run(gpu_facts)
        pipeline = result.pipeline

        assert pipeline.get("install-nvidia-drivers").outcome == StepOutcome.FAILED_NON_FATAL
        assert pipeline.get("cleanup").outcome == StepOutcome.SUCCESS
        assert result.exit_code == 0
        assert result.summary.status == "partial"
        actions = result.summary.manual_actions
        assert any("sudo ubuntu-drivers autoinstall" in a for a in actions)
        assert not any("reboot required" in a for a in actions)

    def test_success_adds_reboot_note(self, run, gpu_facts):
        result = run(gpu_facts)
        assert result.pipeline.get("install-nvidia-drivers").outcome == StepOutcome.SUCCESS
        assert (
            "NVIDIA drivers installed - reboot required for full functionality"
            in result.summary.manual_actions
        )


# ── Stops ────────────────────────────────────────────────────────────


class TestStops:
    def test_unsupported_os(self, run, debian_facts, mock_adapter):
        result = run(debian_facts)

        assert result.pipeline.executed == []
        assert result.pipeline.error.startswith("UnsupportedEnvironment: ")
        assert result.summary is None
        assert result.exit_code == 1
        assert mock_adapter.call_count == 0

    def test_no_sudo(self, run, ubuntu_facts, mock_adapter):
        mock_adapter.set_failure("preflight:sudo -n true")
        mock_adapter.set_failure("preflight:sudo -v", error="incorrect password")

        result = run(ubuntu_facts)

        assert result.pipeline.executed == []
        assert result.pipeline.error.startswith("PrivilegeUnavailable: ")
        assert result.exit_code == 1
        assert _mutating_calls(mock_adapter) == []

    @pytest.mark.parametrize("answer", ["n", "", "no", "yes please"])
    def test_declined(self, run, ubuntu_facts, mock_adapter, answer):
        result = run(ubuntu_facts, answer=answer)

        assert result.cancelled
        assert result.exit_code == 0
        assert result.summary is None
        assert [r.name for r in result.pipeline.executed] == ["preflight"]
        assert _mutating_calls(mock_adapter) == []

    def test_fatal_update_failure(self, run, ubuntu_facts, mock_adapter):
        mock_adapter.fail_prefix("update-system:", error="E: Could not get lock /var/lib/dpkg/lock")

        result = run(ubuntu_facts)
        pipeline = result.pipeline

        assert pipeline.executed[-1].name == "update-system"
        assert pipeline.executed[-1].outcome == StepOutcome.FAILED_FATAL
        assert pipeline.error.startswith("StepActionFailed: step 'update-system' failed:")
        assert "Could not get lock" in pipeline.error
        assert mock_adapter.calls_for_step("install-essentials") == []
        assert result.summary is None
        assert result.exit_code == 1

    def test_snap_failure_continues(self, run, ubuntu_facts, mock_adapter):
        mock_adapter.fail_prefix("snap-vlc:", error="error: cannot install \"vlc\"")

        result = run(ubuntu_facts)

        assert result.pipeline.get("snap-vlc").outcome == StepOutcome.FAILED_NON_FATAL
        assert result.pipeline.get("snap-brave").outcome == StepOutcome.SUCCESS
        assert "Install VLC manually: sudo snap install vlc" in result.summary.manual_actions

    def test_bad_config(self, run, ubuntu_facts, tmp_path, mock_adapter):
        path = tmp_path / "provision.yml"
        path.write_text("snap_apps: nope\n")

        result = run(ubuntu_facts, config_path=path)

        assert result.error is not None
        assert result.pipeline is None
        assert result.exit_code == 1
        assert mock_adapter.call_count == 0


# ── Re-runs and modes ────────────────────────────────────────────────


class TestRerun:
    def test_second_run_same_outcomes(self, run, ubuntu_facts):
        first = run(ubuntu_facts)
        second = run(ubuntu_facts)
        assert first.pipeline.outcomes == second.pipeline.outcomes
        assert second.exit_code == 0

    def test_existing_framework_skipped(self, run, ubuntu_facts, mock_adapter):
        configured = ubuntu_facts.model_copy(
            update={"has_oh_my_zsh": True, "login_shell": "/usr/bin/zsh"}
        )
        result = run(configured)

        assert result.pipeline.get("install-oh-my-zsh").outcome == StepOutcome.SKIPPED
        assert mock_adapter.calls_for_step("install-oh-my-zsh") == []
        assert not any("chsh" in a for a in result.summary.manual_actions)


class TestMockMode:
    def test_built_in_mock_registry(self, ubuntu_facts, answers, transcript):
        def forbidden_sleep(_seconds):
            raise AssertionError("mock mode must not wait")

        result = run_provision(
            read_line=answers("y"),
            write=transcript,
            facts=ubuntu_facts,
            mock_mode=True,
            sleep=forbidden_sleep,
        )
        assert result.exit_code == 0
        assert result.pipeline.completed

    def test_to_dict(self, run, ubuntu_facts):
        d = run(ubuntu_facts).to_dict()
        assert d["exit_code"] == 0
        assert d["pipeline"]["status"] == "ok"
        assert d["summary"]["manual_actions"][0] == REBOOT_ACTION
        assert d["facts"]["os_id"] == "ubuntu"


class TestPlan:
    def test_plan(self, ubuntu_facts):
        result = plan_provision(facts=ubuntu_facts)
        assert result.error is None
        assert [r["name"] for r in result.rows] == ["preflight", "consent", *MUTATING]
        d = result.to_dict()
        assert d["name"] == "Phoenix32 Ubuntu Setup"

    def test_plan_bad_config(self, tmp_path, ubuntu_facts):
        path = tmp_path / "provision.yml"
        path.write_text("[1, 2]\n")
        result = plan_provision(config_path=path, facts=ubuntu_facts)
        assert "Expected a YAML mapping" in result.error
        assert result.to_dict() == {"error": result.error}
