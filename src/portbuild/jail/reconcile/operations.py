"""Declarative operations emitted by the planners and consumed by the applier."""

import enum
from pathlib import Path

from attrs import define, field

from ..models import CronInterval, Ensure, PortsTreeUndeclared

LIFECYCLE_TIMEOUT = 3600


class FileState(enum.StrEnum):
    FILE = "file"
    DIRECTORY = "directory"
    ABSENT = "absent"


@define(frozen=True, slots=True)
class DesiredStateSet:
    file_state: FileState
    dir_state: FileState
    dir_recurse: bool
    cron_present: bool


@define(frozen=True, slots=True)
class LifecycleOp:
    """An external command guarded so that re-running it is a no-op.

    Creation is guarded by `creates` (skip when the path exists); destruction
    by `list_command` (run only when `listed_name` appears in its output).
    """

    key: str
    ensure: Ensure
    command: tuple[str, ...] = field(converter=tuple)
    creates: Path | None = None
    list_command: tuple[str, ...] | None = None
    listed_name: str | None = None
    timeout: int = LIFECYCLE_TIMEOUT
    requires: tuple[str, ...] = ()

    def describe(self) -> str:
        if self.creates is not None:
            guard = f"unless {self.creates} exists"
        elif self.list_command is not None:
            guard = f"if '{' '.join(self.list_command)}' lists {self.listed_name}"
        else:
            guard = "always"
        return f"run `{' '.join(self.command)}` ({guard})"


@define(frozen=True, slots=True)
class JailLifecycleOp(LifecycleOp):
    pass


@define(frozen=True, slots=True)
class PortsTreeLifecycleOp(LifecycleOp):
    pass


@define(frozen=True, slots=True)
class FileOp:
    """A file that is either rendered from `content` or copied from `source`."""

    key: str
    path: Path
    state: FileState
    content: str | None = None
    source: Path | None = None
    requires: tuple[str, ...] = ()

    def describe(self) -> str:
        if self.state is FileState.ABSENT:
            return f"remove file {self.path}"
        if self.source is not None:
            return f"copy {self.source} -> {self.path}"
        return f"render {self.path}"


@define(frozen=True, slots=True)
class MakeConfFileOp(FileOp):
    pass


@define(frozen=True, slots=True)
class PackageListFileOp(FileOp):
    pass


@define(frozen=True, slots=True)
class ConfigFileOp(FileOp):
    pass


@define(frozen=True, slots=True)
class BuildOptionsDirOp:
    key: str
    path: Path
    source: Path
    state: FileState
    recurse: bool
    force: bool = True
    requires: tuple[str, ...] = ()

    def describe(self) -> str:
        if self.state is FileState.ABSENT:
            return f"remove directory {self.path}"
        return f"mirror {self.source}/ -> {self.path}/"


@define(frozen=True, slots=True)
class CronScheduleOp:
    key: str
    path: Path
    present: bool
    interval: CronInterval
    user: str
    command: str
    jail: str
    requires: tuple[str, ...] = ()

    def describe(self) -> str:
        if not self.present:
            return f"remove cron entry {self.path}"
        return f"schedule '{self.interval}' as {self.user}: {self.command}"


Operation = LifecycleOp | FileOp | BuildOptionsDirOp | CronScheduleOp


@define(frozen=True, slots=True)
class Plan:
    name: str
    operations: tuple[Operation, ...] = field(converter=tuple)
    warnings: tuple[PortsTreeUndeclared, ...] = field(default=(), converter=tuple)

    @property
    def keys(self) -> list[str]:
        return [op.key for op in self.operations]

    def get(self, key: str) -> Operation:
        for op in self.operations:
            if op.key == key:
                return op
        raise KeyError(key)
