"""Loads the TOML manifest describing the host, its ports trees and its jails."""

from collections.abc import Mapping
from pathlib import Path
import tomllib
from typing import Any

from attrs import define, field
from pyvider.telemetry import logger

from .context import CommandRunner, HostContext
from .exceptions import ManifestError
from .models import Ensure, JailSpec, PortsTreeSpec
from .reconcile.operations import Plan
from .reconcile.planner import plan_manifest


@define(frozen=True, slots=True)
class Manifest:
    host: dict[str, Any] = field(factory=dict)
    settings: dict[str, Any] = field(factory=dict)
    ports_trees: tuple[PortsTreeSpec, ...] = field(default=(), converter=tuple)
    jails: tuple[JailSpec, ...] = field(default=(), converter=tuple)
    path: Path | None = None

    def jail(self, name: str) -> JailSpec:
        for spec in self.jails:
            if spec.name == name or spec.jail == name:
                return spec
        raise KeyError(name)

    def context(self, runner: CommandRunner | None = None) -> HostContext:
        return HostContext.from_mapping(self.host, runner=runner)

    def plans(
        self, context: HostContext, only: list[str] | None = None
    ) -> list[Plan]:
        """Plans the manifest.

        `only` restricts the result to the named jails and the present ports
        trees they build from. poudriere.conf and trees being removed are
        left alone.
        """
        if not only:
            return plan_manifest(context, self.jails, self.ports_trees, self.settings)
        jails = []
        for name in only:
            try:
                jails.append(self.jail(name))
            except KeyError:
                raise ManifestError(f"Jail '{name}' is not defined in the manifest.") from None
        used = {spec.ports_tree for spec in jails}
        trees = [
            tree
            for tree in self.ports_trees
            if tree.ensure is Ensure.PRESENT and tree.name in used
        ]
        return plan_manifest(context, jails, trees)


def _table(data: Mapping[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, Mapping):
        raise ManifestError(f"[{key}] must be a table.")
    return dict(value)


_PATH_FIELDS = ("makefile", "pkg_file", "pkg_opts_dir")


def _resolve_paths(jail: dict[str, Any], base: Path) -> dict[str, Any]:
    """Relative file references are relative to the manifest directory."""
    for key in _PATH_FIELDS:
        value = jail.get(key)
        if isinstance(value, str) and not Path(value).is_absolute():
            jail[key] = str(base / value)
    return jail


def _check_unique_jails(jails: list[JailSpec]) -> None:
    """Two tables may not manage the same poudriere jail or its marker and cron paths."""
    by_jail: dict[str, str] = {}
    by_marker: dict[str, str] = {}
    for spec in jails:
        if spec.jail in by_jail:
            raise ManifestError(
                f"Jails '{by_jail[spec.jail]}' and '{spec.name}' both manage "
                f"poudriere jail '{spec.jail}'."
            )
        if spec.marker_name in by_marker:
            raise ManifestError(
                f"Jails '{by_marker[spec.marker_name]}' and '{spec.name}' share "
                f"the marker name '{spec.marker_name}'."
            )
        by_jail[spec.jail] = spec.name
        by_marker[spec.marker_name] = spec.name


def parse_manifest(data: Mapping[str, Any], path: Path | None = None) -> Manifest:
    unknown = set(data) - {"poudriere", "portstrees", "jails"}
    if unknown:
        raise ManifestError(f"Unknown manifest sections: {', '.join(sorted(unknown))}")

    host = _table(data, "poudriere")
    settings = host.pop("conf", {})
    if not isinstance(settings, Mapping):
        raise ManifestError("[poudriere.conf] must be a table.")
    HostContext.from_mapping(host)

    trees_data = _table(data, "portstrees")
    ports_trees = [
        PortsTreeSpec.from_mapping(name, _table(trees_data, name)) for name in trees_data
    ]
    jails_data = _table(data, "jails")
    base = path.parent if path is not None else Path.cwd()
    jails = [
        JailSpec.from_mapping(name, _resolve_paths(_table(jails_data, name), base))
        for name in jails_data
    ]
    _check_unique_jails(jails)

    logger.debug(
        "Parsed manifest",
        path=str(path) if path else None,
        jails=len(jails),
        ports_trees=len(ports_trees),
    )
    return Manifest(
        host=host,
        settings=dict(settings),
        ports_trees=ports_trees,
        jails=jails,
        path=path,
    )


def load_manifest(path: Path) -> Manifest:
    if not path.is_file():
        raise ManifestError(f"Manifest not found at: {path}")
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ManifestError(f"Could not parse {path}: {e}") from e
    return parse_manifest(data, path=path)
