"""The `pbjail` command-line interface."""

import importlib.metadata
from pathlib import Path
from typing import cast

import click

from .context import HostContext
from .exceptions import CommandError, ConfigError
from .manifest import Manifest, load_manifest
from .models import Ensure
from .reconcile.applier import OpStatus, PlanApplier
from .reconcile.operations import FileOp, Plan
from .reconcile.planner import JailEnvironmentReconciler

try:
    __version__ = importlib.metadata.version("portbuild-jail")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0-dev"

_STATUS_COLOURS = {
    OpStatus.CHANGED: "yellow",
    OpStatus.UNCHANGED: "green",
    OpStatus.SKIPPED: "magenta",
    OpStatus.FAILED: "red",
}

manifest_option = click.option(
    "--manifest",
    "manifest_path",
    default="poudriere.toml",
    envvar="PBJAIL_MANIFEST",
    show_default=True,
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    help="Path to the TOML manifest describing ports trees and jails.",
)
jail_option = click.option(
    "--jail",
    "jails",
    multiple=True,
    help="Restrict to this jail (repeatable). Defaults to every jail.",
)


def _load(manifest_path: str) -> Manifest:
    try:
        return load_manifest(Path(manifest_path))
    except ConfigError as e:
        click.secho(f"❌ Invalid manifest:\n{e}", fg="red", err=True)
        raise click.Abort() from e


def _plans(
    manifest: Manifest, context: HostContext, jails: tuple[str, ...]
) -> list[Plan]:
    try:
        plans = manifest.plans(context, only=list(jails))
    except ConfigError as e:
        raise click.UsageError(str(e)) from e
    for plan in plans:
        for warning in plan.warnings:
            click.secho(f"⚠️  {warning}", fg="yellow", err=True)
    return plans


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.version_option(
    __version__,
    "-V",
    "--version",
    prog_name="pbjail",
    message="%(prog)s version %(version)s",
)
def cli() -> None:
    """Declarative poudriere jail management."""
    pass


@cli.command("validate")
@manifest_option
def validate_command(manifest_path: str) -> None:
    """Checks the manifest and reports warnings without touching the host."""
    manifest = _load(manifest_path)
    _plans(manifest, manifest.context(), ())
    click.secho(
        f"✅ Manifest is valid: {len(manifest.jails)} jail(s), "
        f"{len(manifest.ports_trees)} ports tree(s).",
        fg="green",
    )


@cli.command("plan")
@manifest_option
@jail_option
def plan_command(manifest_path: str, jails: tuple[str, ...]) -> None:
    """Prints the operations a reconciliation pass would perform."""
    manifest = _load(manifest_path)
    for plan in _plans(manifest, manifest.context(), jails):
        click.secho(f"📋 {plan.name}", bold=True)
        for op in plan.operations:
            requires = f"  [after {', '.join(op.requires)}]" if op.requires else ""
            click.echo(f"  {op.key}: {op.describe()}{requires}")


@cli.command("apply")
@manifest_option
@jail_option
@click.option(
    "--check",
    "-C",
    is_flag=True,
    default=False,
    help="Report what would change without changing anything.",
)
def apply_command(manifest_path: str, jails: tuple[str, ...], check: bool) -> None:
    """Reconciles the host with the manifest."""
    manifest = _load(manifest_path)
    context = manifest.context()
    plans = _plans(manifest, context, jails)
    applier = PlanApplier(context, check=check)

    failures = 0
    for plan in plans:
        click.echo(f"🚀 Reconciling {plan.name}...")
        report = applier.apply(plan)
        for result in report.results:
            detail = ""
            if result.detail and result.status is not OpStatus.FAILED:
                detail = f" ({result.detail})"
            click.secho(
                f"  {result.status:<9} {result.key}{detail}",
                fg=_STATUS_COLOURS[result.status],
            )
        if report.failed:
            failures += 1
            stderr_info = ""
            if isinstance(report.error, CommandError) and report.error.stderr:
                stderr_info = f"\n  Stderr: {report.error.stderr.strip()}"
            click.secho(
                f"❌ {plan.name} failed: {report.error}{stderr_info}", fg="red", err=True
            )

    if failures:
        click.secho(f"❌ {failures} plan(s) failed.", fg="red", err=True)
        raise click.Abort()
    verb = "would be reconciled" if check else "reconciled"
    click.secho(f"✅ {len(plans)} plan(s) {verb}.", fg="green")


@cli.command("render")
@manifest_option
@click.argument("jail")
@click.option(
    "--file",
    "which",
    type=click.Choice(["make.conf", "list", "cron"]),
    default="list",
    show_default=True,
    help="Which managed file to print.",
)
def render_command(manifest_path: str, jail: str, which: str) -> None:
    """Prints the content pbjail would write for one jail."""
    manifest = _load(manifest_path)
    try:
        spec = manifest.jail(jail)
    except KeyError as e:
        raise click.UsageError(f"Jail '{jail}' is not defined in the manifest.") from e

    context = manifest.context()
    context.declare_ports_trees(
        t.name for t in manifest.ports_trees if t.ensure is Ensure.PRESENT
    )
    reconciler = JailEnvironmentReconciler(context)

    if which == "cron":
        click.echo(reconciler.cron_command(spec))
        return

    plan = reconciler.plan(spec)
    key = f"make.conf:{spec.jail}" if which == "make.conf" else f"pkglist:{spec.jail}"
    op = cast(FileOp, plan.get(key))
    try:
        if op.source is not None:
            click.echo(op.source.read_text(), nl=False)
        else:
            click.echo(op.content or "", nl=False)
    except OSError as e:
        click.secho(f"❌ Could not render {which}: {e}", fg="red", err=True)
        raise click.Abort() from e


main = cli

if __name__ == "__main__":
    main()
