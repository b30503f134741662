"""Turns jail, ports-tree and host specs into ordered, guarded operation plans."""

from collections.abc import Collection, Mapping
import shlex
from typing import Any

from pyvider.telemetry import logger

from ..context import HostContext
from ..models import (
    Ensure,
    JailSpec,
    MakefileRef,
    PackageFileRef,
    PortsTreeSpec,
    PortsTreeUndeclared,
)
from ..rendering.generator import (
    render_make_conf,
    render_package_list,
    render_poudriere_conf,
)
from .operations import (
    BuildOptionsDirOp,
    ConfigFileOp,
    CronScheduleOp,
    DesiredStateSet,
    FileState,
    JailLifecycleOp,
    MakeConfFileOp,
    Operation,
    PackageListFileOp,
    Plan,
    PortsTreeLifecycleOp,
)

# Old releases defaulted ports_tree to this misspelling of "default".
LEGACY_PORTS_TREE = "defaut"


def desired_states(ensure: Ensure, cron_enable: bool) -> DesiredStateSet:
    if ensure is Ensure.ABSENT:
        # Recursive removal is not a combination the applier supports.
        return DesiredStateSet(
            file_state=FileState.ABSENT,
            dir_state=FileState.ABSENT,
            dir_recurse=False,
            cron_present=False,
        )
    return DesiredStateSet(
        file_state=FileState.FILE,
        dir_state=FileState.DIRECTORY,
        dir_recurse=True,
        cron_present=cron_enable,
    )


class JailEnvironmentReconciler:
    """Plans the lifecycle, config files and cron entry for one jail."""

    def __init__(self, context: HostContext) -> None:
        self.context = context

    def check_ports_tree(self, spec: JailSpec) -> list[PortsTreeUndeclared]:
        if spec.ports_tree in self.context.declared_ports_trees:
            return []
        if spec.ports_tree == LEGACY_PORTS_TREE:
            message = (
                f"Jail '{spec.jail}' uses ports tree '{LEGACY_PORTS_TREE}', the misspelled "
                "default of older releases, and no such ports tree is declared. "
                "Declare it or set ports_tree = \"default\"."
            )
        else:
            message = (
                f"Jail '{spec.jail}' references ports tree '{spec.ports_tree}', "
                "which has not been declared."
            )
        logger.warning(message, jail=spec.jail, ports_tree=spec.ports_tree)
        return [PortsTreeUndeclared(jail=spec.jail, ports_tree=spec.ports_tree, message=message)]

    def create_command(self, spec: JailSpec) -> list[str]:
        command = [self.context.binary, "jail", "-c", "-j", spec.jail, "-v", spec.version]
        if spec.arch:
            command.extend(["-a", spec.arch])
        command.extend(["-p", spec.ports_tree])
        return command

    def destroy_command(self, spec: JailSpec) -> list[str]:
        return [self.context.binary, "jail", "-d", "-j", spec.jail]

    def bulk_command(self, spec: JailSpec) -> list[str]:
        return [
            self.context.binary,
            "bulk",
            "-f",
            str(self.context.package_list_path(spec.jail)),
            "-j",
            spec.jail,
            "-J",
            str(spec.parallel_jobs),
            "-p",
            spec.ports_tree,
        ]

    def cron_command(self, spec: JailSpec) -> str:
        bulk = shlex.join(self.bulk_command(spec))
        if spec.cron_always_mail:
            return bulk
        # cron mails any output; only print it when the build failed.
        return f"OUTPUT=$({bulk} 2>&1) || echo $OUTPUT"

    def plan(self, spec: JailSpec) -> Plan:
        warnings = self.check_ports_tree(spec)
        states = desired_states(spec.ensure, spec.cron_enable)

        lifecycle = self._lifecycle_op(spec)
        requires = (lifecycle.key,)
        operations: list[Operation] = [
            lifecycle,
            self._make_conf_op(spec, states, requires),
            self._package_list_op(spec, states, requires),
        ]
        if spec.pkg_opts_dir is not None:
            operations.append(
                BuildOptionsDirOp(
                    key=f"options-dir:{spec.jail}",
                    path=self.context.options_dir(spec.jail),
                    source=spec.pkg_opts_dir,
                    state=states.dir_state,
                    recurse=states.dir_recurse,
                    requires=requires,
                )
            )
        operations.append(
            CronScheduleOp(
                key=f"cron:{spec.jail}",
                path=self.context.cron_file(spec.marker_name),
                present=states.cron_present,
                interval=spec.cron_interval,
                user=self.context.cron_user,
                command=self.cron_command(spec),
                jail=spec.jail,
                requires=requires,
            )
        )
        logger.info(
            "Planned jail reconciliation",
            jail=spec.jail,
            ensure=str(spec.ensure),
            operations=len(operations),
        )
        return Plan(name=spec.jail, operations=operations, warnings=warnings)

    def _lifecycle_op(self, spec: JailSpec) -> JailLifecycleOp:
        key = f"jail:{spec.jail}"
        if spec.ensure is Ensure.ABSENT:
            return JailLifecycleOp(
                key=key,
                ensure=spec.ensure,
                command=self.destroy_command(spec),
                list_command=(self.context.binary, "jail", "-l"),
                listed_name=spec.jail,
            )
        return JailLifecycleOp(
            key=key,
            ensure=spec.ensure,
            command=self.create_command(spec),
            creates=self.context.jail_marker(spec.marker_name),
        )

    def _make_conf_op(
        self, spec: JailSpec, states: DesiredStateSet, requires: tuple[str, ...]
    ) -> MakeConfFileOp:
        path = self.context.make_conf_path(spec.jail)
        key = f"make.conf:{spec.jail}"
        if states.file_state is FileState.ABSENT:
            return MakeConfFileOp(key=key, path=path, state=FileState.ABSENT, requires=requires)
        if isinstance(spec.build_options, MakefileRef):
            return MakeConfFileOp(
                key=key,
                path=path,
                state=states.file_state,
                source=spec.build_options.path,
                requires=requires,
            )
        return MakeConfFileOp(
            key=key,
            path=path,
            state=states.file_state,
            content=render_make_conf(spec.build_options),
            requires=requires,
        )

    def _package_list_op(
        self, spec: JailSpec, states: DesiredStateSet, requires: tuple[str, ...]
    ) -> PackageListFileOp:
        path = self.context.package_list_path(spec.jail)
        key = f"pkglist:{spec.jail}"
        if states.file_state is FileState.ABSENT:
            return PackageListFileOp(key=key, path=path, state=FileState.ABSENT, requires=requires)
        if isinstance(spec.packages, PackageFileRef):
            return PackageListFileOp(
                key=key,
                path=path,
                state=states.file_state,
                source=spec.packages.path,
                requires=requires,
            )
        return PackageListFileOp(
            key=key,
            path=path,
            state=states.file_state,
            content=render_package_list(spec.packages.pkgs),
            requires=requires,
        )


class PortsTreeReconciler:
    def __init__(self, context: HostContext) -> None:
        self.context = context

    def plan(self, spec: PortsTreeSpec) -> Plan:
        binary = self.context.binary
        key = f"ports:{spec.name}"
        if spec.ensure is Ensure.ABSENT:
            op = PortsTreeLifecycleOp(
                key=key,
                ensure=spec.ensure,
                command=[binary, "ports", "-d", "-p", spec.name],
                list_command=(binary, "ports", "-l"),
                listed_name=spec.name,
            )
        else:
            command = [binary, "ports", "-c", "-p", spec.name, "-m", spec.method]
            if spec.branch:
                command.extend(["-B", spec.branch])
            if spec.path is not None:
                command.extend(["-M", str(spec.path)])
            op = PortsTreeLifecycleOp(
                key=key,
                ensure=spec.ensure,
                command=command,
                creates=self.context.ports_marker(spec.name),
            )
        return Plan(name=f"ports/{spec.name}", operations=[op])


def plan_poudriere_conf(context: HostContext, settings: Mapping[str, Any]) -> Plan:
    op = ConfigFileOp(
        key="poudriere.conf",
        path=context.poudriere_conf_path,
        state=FileState.FILE,
        content=render_poudriere_conf(settings),
    )
    return Plan(name="poudriere.conf", operations=[op])


def plan_manifest(
    context: HostContext,
    jails: Collection[JailSpec],
    ports_trees: Collection[PortsTreeSpec] = (),
    settings: Mapping[str, Any] | None = None,
) -> list[Plan]:
    """Plans a whole manifest.

    Order: poudriere.conf, ports trees being created, jails, then ports trees
    being removed so no jail loses its tree mid-pass.
    """
    context.declare_ports_trees(
        tree.name for tree in ports_trees if tree.ensure is Ensure.PRESENT
    )
    ports = PortsTreeReconciler(context)
    reconciler = JailEnvironmentReconciler(context)

    plans: list[Plan] = []
    if settings:
        plans.append(plan_poudriere_conf(context, settings))
    plans.extend(ports.plan(t) for t in ports_trees if t.ensure is Ensure.PRESENT)
    plans.extend(reconciler.plan(jail) for jail in jails)
    plans.extend(ports.plan(t) for t in ports_trees if t.ensure is Ensure.ABSENT)
    return plans
