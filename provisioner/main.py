"""
Ubuntu Provisioner — CLI entrypoint.

Usage:
    provision                 # same as `provision run`
    provision run --mock
    provision plan
    provision facts --json
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from provisioner import __version__
from provisioner.core.engine.runner import PipelineObserver
from provisioner.core.models.step import Step, StepOutcome, StepRecord
from provisioner.core.observability.logging_config import setup_from_env


class ConsoleObserver(PipelineObserver):
    """Prints step progress as the runner reports it."""

    def __init__(self, verbose: bool = False):
        self._verbose = verbose

    def step_started(self, step: Step) -> None:
        click.secho(f"\n🔧 {step.title}", fg="yellow")

    def step_finished(self, step: Step, record: StepRecord) -> None:
        timing = f" ({record.duration_ms}ms)" if self._verbose and record.duration_ms else ""
        if record.outcome == StepOutcome.SUCCESS:
            click.secho(f"✅ {step.title} — done{timing}", fg="green")
        elif record.outcome == StepOutcome.SKIPPED:
            click.secho(f"⊘ {step.title} — skipped (not applicable to this host)", fg="cyan")
        elif record.outcome == StepOutcome.FAILED_NON_FATAL:
            click.secho(f"⚠️  Warning: {step.title} failed: {record.error}", fg="yellow")
        # Fatal failures are reported once, after the run ends.


def _read_answer() -> str:
    """One blocking line from stdin; EOF and Ctrl-C read as an empty answer."""
    try:
        return click.get_text_stream("stdin").readline()
    except (KeyboardInterrupt, click.Abort):
        click.echo()
        return ""


def _echo_command_output(line: str) -> None:
    click.secho(f"   {line}", dim=True)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="provision")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to provision.yml (default: auto-detect, else built-in defaults).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Ubuntu Provisioner — set up a fresh Ubuntu machine in one run."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_from_env(debug=debug, verbose=verbose, quiet=quiet)

    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--mock", is_flag=True, help="Use mock adapter (no real execution).")
@click.pass_context
def run(ctx: click.Context, as_json: bool = False, mock: bool = False) -> None:
    """Run the provisioning pipeline (asks for confirmation first).

    Examples:

        provision

        provision run --mock
    """
    from provisioner.core.use_cases.provision import run_provision

    quiet = ctx.obj.get("quiet", False)
    verbose = ctx.obj.get("verbose", False)

    if not as_json and not quiet:
        mode_label = " [mock]" if mock else ""
        click.secho(f"🔥 Ubuntu setup{mode_label} — let's get you loaded! 🔥", fg="magenta", bold=True)
        click.secho("=" * 48, fg="blue")

    observer = PipelineObserver() if as_json else ConsoleObserver(verbose=verbose)
    stream_output = None if as_json or quiet else _echo_command_output

    result = run_provision(
        read_line=_read_answer,
        write=lambda line: click.echo(line, err=as_json),
        config_path=ctx.obj.get("config_path"),
        observer=observer,
        mock_mode=mock,
        echo=stream_output,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    pipeline = result.pipeline
    assert pipeline is not None  # guaranteed when there is no error

    if pipeline.cancelled:
        click.echo("Setup cancelled by user - no changes made")
        sys.exit(0)

    if pipeline.halted:
        click.echo()
        click.secho(f"❌ {pipeline.error}", fg="red", bold=True)
        sys.exit(pipeline.exit_code)

    from provisioner.core.services.summary import format_summary

    summary = result.summary
    assert summary is not None  # set whenever the pipeline completed

    color = {"ok": "green", "partial": "yellow"}.get(summary.status, "white")
    click.echo()
    click.secho("🎉 " + "=" * 44, fg="magenta")
    click.secho(format_summary(summary), fg=color)
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def plan(ctx: click.Context, as_json: bool) -> None:
    """Show the step table for this host without running anything."""
    from provisioner.core.use_cases.provision import plan_provision

    result = plan_provision(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    assert result.config is not None
    assert result.facts is not None

    click.secho(f"\n📋 {result.config.name}", fg="cyan", bold=True)
    click.echo(f"   Host: {result.facts.os_name or 'unknown'}")
    click.echo()

    width = max((len(row["name"]) for row in result.rows), default=0)
    for row in result.rows:
        if row["gate"]:
            policy = "gate"
        elif row["fatal"]:
            policy = "fatal"
        else:
            policy = "non-fatal"
        line = f"   {row['index']:>2}. {row['name'].ljust(width)}  [{policy}]"
        if not row["applies"]:
            click.secho(f"{line}  → skipped on this host", fg="cyan")
        else:
            click.echo(line)

    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def facts(ctx: click.Context, as_json: bool) -> None:
    """Show what was detected about this host."""
    from provisioner.core.config.loader import ConfigError, load_config
    from provisioner.core.services.host_facts import probe_host_facts

    try:
        config = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    host = probe_host_facts(framework_dir=config.shell.framework_dir)

    if as_json:
        click.echo(json.dumps(host.to_dict(), indent=2))
        return

    click.secho("\n🔍 Host facts", fg="cyan", bold=True)
    click.echo(f"   OS:          {host.os_name or 'unknown'} ({host.os_id or '?'} {host.os_version})")
    click.echo(f"   Ubuntu-like: {'yes' if host.is_ubuntu_like else 'no'}")
    if host.os_codename:
        click.echo(f"   Codename:    {host.os_codename}")
    gpu = host.gpu_model if host.has_nvidia_gpu else "none detected"
    click.echo(f"   NVIDIA GPU:  {gpu}")
    click.echo(f"   User:        {host.user}{' (root)' if host.is_root else ''}")
    click.echo(f"   Shell:       {host.login_shell or 'unknown'}")
    click.echo(f"   Oh My Zsh:   {'installed' if host.has_oh_my_zsh else 'not installed'}")
    click.echo()


if __name__ == "__main__":
    cli()
