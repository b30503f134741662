import enum
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Self

from attrs import converters, define, field, validators

from .exceptions import ConflictingBuildOptions, ManifestError

SUPPORTED_ARCHES: frozenset[str] = frozenset(
    {
        "amd64",
        "i386",
        "arm64",
        "arm64.aarch64",
        "armv6",
        "arm.armv6",
        "armv7",
        "arm.armv7",
        "mips",
        "mips.mips",
        "mips64",
        "mips.mips64",
        "powerpc",
        "powerpc.powerpc",
        "powerpc64",
        "powerpc.powerpc64",
        "powerpc64le",
        "powerpc.powerpc64le",
        "riscv64",
        "riscv.riscv64",
        "sparc64",
        "sparc64.sparc64",
    }
)

PORTS_METHODS: frozenset[str] = frozenset(
    {"git", "git+http", "git+https", "git+ssh", "svn", "svn+http", "svn+https", "svn+ssh", "portsnap", "null"}
)

# One comma-separated element: "*", "5", "1-5", "mon", "*/15", "0-30/5".
_CRON_ELEMENT = r"(\*|[0-9A-Za-z]+(-[0-9A-Za-z]+)?)(/[0-9]+)?"
CRON_FIELD_RE = re.compile(rf"^{_CRON_ELEMENT}(,{_CRON_ELEMENT})*$")
NAME_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.:\-]*$")


class Ensure(enum.StrEnum):
    PRESENT = "present"
    ABSENT = "absent"


def _host_cpu_count() -> int:
    return os.cpu_count() or 1


def _non_empty(instance: Any, attribute: Any, value: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{attribute.name}' must be a non-empty string.")


def _positive_int(instance: Any, attribute: Any, value: int) -> None:
    # bool is an int subclass; TOML `true` must not become `-J True`.
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"'{attribute.name}' must be a positive integer, got {value!r}.")


def _str_tuple(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        raise TypeError(f"Expected a list of strings, got the string {value!r}.")
    return tuple(str(v) for v in value)


def _pkg_opts_tuple(value: Any) -> tuple[tuple[str, tuple[str, ...]], ...]:
    if isinstance(value, Mapping):
        items = value.items()
    else:
        items = value
    return tuple((str(origin), _str_tuple(opts)) for origin, opts in items)


@define(frozen=True, slots=True)
class CronInterval:
    minute: str = field(default="0", converter=str, validator=validators.matches_re(CRON_FIELD_RE))
    hour: str = field(default="0", converter=str, validator=validators.matches_re(CRON_FIELD_RE))
    monthday: str = field(default="*", converter=str, validator=validators.matches_re(CRON_FIELD_RE))
    month: str = field(default="*", converter=str, validator=validators.matches_re(CRON_FIELD_RE))
    weekday: str = field(default="*", converter=str, validator=validators.matches_re(CRON_FIELD_RE))

    @classmethod
    def parse(cls, value: str | Mapping[str, Any]) -> Self:
        """Accepts either a 5-field schedule string or a mapping of field names."""
        if isinstance(value, str):
            parts = value.split()
            if len(parts) != 5:
                raise ValueError(f"Cron schedule must have exactly 5 fields, got {len(parts)}: {value!r}")
            return cls(*parts)
        unknown = set(value) - {"minute", "hour", "monthday", "month", "weekday"}
        if unknown:
            raise ValueError(f"Unknown cron interval fields: {', '.join(sorted(unknown))}")
        return cls(**value)

    def fields(self) -> tuple[str, str, str, str, str]:
        return (self.minute, self.hour, self.monthday, self.month, self.weekday)

    def __str__(self) -> str:
        return " ".join(self.fields())


@define(frozen=True, slots=True)
class InlineBuildOptions:
    makeopts: tuple[str, ...] = field(default=(), converter=_str_tuple)
    pkg_makeopts: tuple[tuple[str, tuple[str, ...]], ...] = field(default=(), converter=_pkg_opts_tuple)


@define(frozen=True, slots=True)
class MakefileRef:
    path: Path = field(converter=Path)


BuildOptionsSource = InlineBuildOptions | MakefileRef


@define(frozen=True, slots=True)
class PackageList:
    pkgs: tuple[str, ...] = field(default=(), converter=_str_tuple)


@define(frozen=True, slots=True)
class PackageFileRef:
    path: Path = field(converter=Path)


PackageSource = PackageList | PackageFileRef


def build_options_from_fields(
    makeopts: Any = None, pkg_makeopts: Any = None, makefile: Any = None
) -> BuildOptionsSource:
    """Folds the three loose build-option fields into a single source."""
    if makefile is not None:
        if makeopts or pkg_makeopts:
            raise ConflictingBuildOptions(
                "'makefile' cannot be combined with 'makeopts' or 'pkg_makeopts'."
            )
        return MakefileRef(makefile)
    return InlineBuildOptions(makeopts or (), pkg_makeopts or ())


def packages_from_fields(pkgs: Any = None, pkg_file: Any = None) -> PackageSource:
    if pkg_file is not None:
        return PackageFileRef(pkg_file)
    return PackageList(pkgs or ())


@define(frozen=True, slots=True)
class JailSpec:
    name: str = field(validator=validators.matches_re(NAME_RE))
    version: str = field(validator=_non_empty)
    ensure: Ensure = field(default=Ensure.PRESENT, converter=Ensure)
    arch: str | None = field(
        default=None, validator=validators.optional(validators.in_(SUPPORTED_ARCHES))
    )
    build_options: BuildOptionsSource = field(
        factory=InlineBuildOptions,
        validator=validators.instance_of((InlineBuildOptions, MakefileRef)),
    )
    packages: PackageSource = field(
        factory=PackageList,
        validator=validators.instance_of((PackageList, PackageFileRef)),
    )
    pkg_opts_dir: Path | None = field(default=None, converter=converters.optional(Path))
    ports_tree: str = field(default="default", validator=_non_empty)
    parallel_jobs: int = field(factory=_host_cpu_count, validator=_positive_int)
    cron_enable: bool = field(default=False, validator=validators.instance_of(bool))
    cron_always_mail: bool = field(default=False, validator=validators.instance_of(bool))
    cron_interval: CronInterval = field(factory=CronInterval)
    jail_name: str | None = field(
        default=None, validator=validators.optional(validators.matches_re(NAME_RE))
    )

    @property
    def jail(self) -> str:
        """The poudriere jail name; defaults to `name`."""
        return self.jail_name or self.name

    @property
    def marker_name(self) -> str:
        return self.jail.replace(":", "_")

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> Self:
        data = dict(data)
        if "portstree" in data and "ports_tree" not in data:
            data["ports_tree"] = data.pop("portstree")

        unknown = set(data) - _JAIL_FIELDS
        if unknown:
            raise ManifestError(f"Jail '{name}' has unknown fields: {', '.join(sorted(unknown))}")
        if "version" not in data:
            raise ManifestError(f"Jail '{name}' is missing the required 'version' field.")

        try:
            build_options = build_options_from_fields(
                data.pop("makeopts", None),
                data.pop("pkg_makeopts", None),
                data.pop("makefile", None),
            )
            packages = packages_from_fields(data.pop("pkgs", None), data.pop("pkg_file", None))
            if "cron_interval" in data:
                data["cron_interval"] = CronInterval.parse(data["cron_interval"])
            return cls(name=name, build_options=build_options, packages=packages, **data)
        except (TypeError, ValueError) as e:
            raise ManifestError(f"Invalid jail '{name}': {e}") from e


_JAIL_FIELDS = frozenset(
    {
        "version",
        "ensure",
        "arch",
        "makeopts",
        "pkg_makeopts",
        "makefile",
        "pkgs",
        "pkg_file",
        "pkg_opts_dir",
        "ports_tree",
        "parallel_jobs",
        "cron_enable",
        "cron_always_mail",
        "cron_interval",
        "jail_name",
    }
)


@define(frozen=True, slots=True)
class PortsTreeSpec:
    name: str = field(validator=validators.matches_re(NAME_RE))
    ensure: Ensure = field(default=Ensure.PRESENT, converter=Ensure)
    method: str = field(default="git+https", validator=validators.in_(PORTS_METHODS))
    branch: str | None = None
    path: Path | None = field(default=None, converter=converters.optional(Path))

    def __attrs_post_init__(self) -> None:
        if self.method == "null" and self.path is None:
            raise ValueError("Ports tree method 'null' requires a 'path'.")

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> Self:
        unknown = set(data) - {"ensure", "method", "branch", "path"}
        if unknown:
            raise ManifestError(
                f"Ports tree '{name}' has unknown fields: {', '.join(sorted(unknown))}"
            )
        try:
            return cls(name=name, **data)
        except (TypeError, ValueError) as e:
            raise ManifestError(f"Invalid ports tree '{name}': {e}") from e


@define(frozen=True, slots=True)
class PortsTreeUndeclared:
    """Non-fatal: a jail references a ports tree nobody declared."""

    jail: str
    ports_tree: str
    message: str

    def __str__(self) -> str:
        return self.message
