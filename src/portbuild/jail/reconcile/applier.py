"""Executes plans against a HostContext in dependency order."""

import enum
import os
from pathlib import Path
import shutil

from attrs import define, field
from pyvider.telemetry import logger

from ..context import HostContext
from ..exceptions import CommandError
from ..rendering.generator import render_cron_entry
from .operations import (
    BuildOptionsDirOp,
    CronScheduleOp,
    FileOp,
    FileState,
    LifecycleOp,
    Operation,
    Plan,
)


class OpStatus(enum.StrEnum):
    CHANGED = "changed"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    FAILED = "failed"


@define(frozen=True, slots=True)
class OpResult:
    key: str
    status: OpStatus
    detail: str = ""


@define
class ApplyReport:
    plan: str
    results: list[OpResult] = field(factory=list)
    error: Exception | None = None

    @property
    def changed(self) -> bool:
        return any(r.status is OpStatus.CHANGED for r in self.results)

    @property
    def failed(self) -> bool:
        return self.error is not None

    def status_of(self, key: str) -> OpStatus:
        for result in self.results:
            if result.key == key:
                return result.status
        raise KeyError(key)

    def raise_for_failure(self) -> None:
        if self.error is not None:
            raise self.error


class PlanApplier:
    """Applies each operation once its `requires` have succeeded.

    A failed operation is recorded on the report and everything depending on
    it is skipped. Nothing is rolled back and nothing is retried; running the
    same plan again converges.
    """

    def __init__(self, context: HostContext, check: bool = False) -> None:
        self.context = context
        self.check = check

    def apply(self, plan: Plan) -> ApplyReport:
        report = ApplyReport(plan=plan.name)
        succeeded: set[str] = set()
        for op in plan.operations:
            unmet = [key for key in op.requires if key not in succeeded]
            if unmet:
                report.results.append(
                    OpResult(op.key, OpStatus.SKIPPED, f"requires {', '.join(unmet)}")
                )
                logger.warning("Skipping operation", key=op.key, unmet=unmet)
                continue
            try:
                status = self._apply_op(op)
            except (CommandError, OSError) as e:
                logger.error("Operation failed", key=op.key, error=str(e))
                report.results.append(OpResult(op.key, OpStatus.FAILED, str(e)))
                if report.error is None:
                    report.error = e
                continue
            succeeded.add(op.key)
            report.results.append(OpResult(op.key, status))
            logger.debug("Operation applied", key=op.key, status=str(status), check=self.check)
        return report

    def _apply_op(self, op: Operation) -> OpStatus:
        if isinstance(op, LifecycleOp):
            return self._apply_lifecycle(op)
        if isinstance(op, FileOp):
            return self._apply_file(op)
        if isinstance(op, BuildOptionsDirOp):
            return self._apply_directory(op)
        if isinstance(op, CronScheduleOp):
            return self._apply_cron(op)
        raise TypeError(f"Unsupported operation type: {type(op).__name__}")

    def _apply_lifecycle(self, op: LifecycleOp) -> OpStatus:
        if op.creates is not None and op.creates.exists():
            logger.debug("Guard path exists, not running", key=op.key, creates=str(op.creates))
            return OpStatus.UNCHANGED
        if op.list_command is not None and not self.context.runner.lists(
            list(op.list_command), op.listed_name or ""
        ):
            logger.debug("Not listed, not running", key=op.key, name=op.listed_name)
            return OpStatus.UNCHANGED
        if not self.check:
            self.context.runner.run(list(op.command), timeout=op.timeout)
        return OpStatus.CHANGED

    def _apply_file(self, op: FileOp) -> OpStatus:
        if op.state is FileState.ABSENT:
            return self._remove(op.path)
        if op.source is not None:
            data = op.source.read_bytes()
        else:
            data = (op.content or "").encode()
        return self._write(op.path, data)

    def _apply_directory(self, op: BuildOptionsDirOp) -> OpStatus:
        if op.state is FileState.ABSENT:
            if not op.path.exists():
                return OpStatus.UNCHANGED
            if not self.check:
                if op.path.is_dir() and not op.path.is_symlink():
                    shutil.rmtree(op.path)
                else:
                    op.path.unlink()
            return OpStatus.CHANGED

        if not op.source.is_dir():
            raise FileNotFoundError(f"Options directory not found: {op.source}")
        if op.path.exists() and not op.path.is_dir():
            if not op.force:
                raise FileExistsError(f"Not a directory: {op.path}")
            if not self.check:
                op.path.unlink()
            stale = True
        else:
            stale = bool(_out_of_sync(op.source, op.path, op.recurse))
        if not stale:
            return OpStatus.UNCHANGED
        if not self.check:
            if op.recurse:
                shutil.copytree(op.source, op.path, dirs_exist_ok=True)
            else:
                op.path.mkdir(parents=True, exist_ok=True)
                for child in op.source.iterdir():
                    if child.is_file():
                        shutil.copy2(child, op.path / child.name)
        return OpStatus.CHANGED

    def _apply_cron(self, op: CronScheduleOp) -> OpStatus:
        if not op.present:
            return self._remove(op.path)
        entry = render_cron_entry(op.jail, op.interval, op.user, op.command)
        return self._write(op.path, entry.encode())

    def _write(self, path: Path, data: bytes) -> OpStatus:
        if path.is_file() and path.read_bytes() == data:
            return OpStatus.UNCHANGED
        if not self.check:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            logger.info("Wrote file", path=str(path), size=len(data))
        return OpStatus.CHANGED

    def _remove(self, path: Path) -> OpStatus:
        if not path.exists():
            return OpStatus.UNCHANGED
        if not self.check:
            path.unlink()
            logger.info("Removed file", path=str(path))
        return OpStatus.CHANGED


def _out_of_sync(source: Path, target: Path, recurse: bool) -> list[Path]:
    """Relative paths under `source` that are missing or differ in `target`."""
    if not target.is_dir():
        return [Path(".")]
    stale: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(source):
        rel_dir = Path(dirpath).relative_to(source)
        if not recurse:
            dirnames.clear()
        for name in dirnames:
            if not (target / rel_dir / name).is_dir():
                stale.append(rel_dir / name)
        for name in filenames:
            dest = target / rel_dir / name
            if not dest.is_file() or dest.read_bytes() != (Path(dirpath) / name).read_bytes():
                stale.append(rel_dir / name)
    return stale
